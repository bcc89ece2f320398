"""SQLAlchemy-backed unit of work for review records.

The adapter is process-wide: call :func:`startup` once (the CLI does this through
``stratareview.app``), then open a :class:`SqlAlchemyReviewUnitOfWork` per operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stratareview.config.storage import get_database_config
from stratareview.domain.ports.unit_of_work import ReviewRepositories

from .repositories import SqlAlchemyRecordRepository
from .tables import create_all_tables

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the review database is used before :func:`startup` or twice over."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False) if engine else None

    def session_factory(self) -> sessionmaker[Session]:
        if self.sessions is None:
            msg = (
                "Review database not started. Call "
                "stratareview.adapters.sqlalchemy.startup() before opening a unit of work."
            )
            raise StartupError(msg)
        return self.sessions


_STATE = _AdapterState()


def engine_for(database_uri: str) -> Engine:
    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        # one shared connection, otherwise every session sees a blank database
        return create_engine(
            database_uri,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(database_uri)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or one built from the URI) and create the tables."""

    if _STATE.engine is not None and not force:
        msg = "Review database already started. Pass force=True to rebind."
        raise StartupError(msg)

    resolved = engine or engine_for(database_uri or get_database_config().uri)
    create_all_tables(resolved)
    _STATE.bind(resolved)
    log.debug("Review database bound to %s", resolved.url)


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; a no-op when nothing was started."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


class SqlAlchemyReviewUnitOfWork:
    """One session per ``with`` block; leaving the block without ``commit()`` discards writes."""

    def __init__(self) -> None:
        self._sessions = _STATE.session_factory()
        self._session: Session | None = None
        self._repositories: ReviewRepositories | None = None

    def __enter__(self) -> SqlAlchemyReviewUnitOfWork:
        if self._session is not None:
            msg = "Unit of work is already open"
            raise StartupError(msg)
        self._session = self._sessions()
        self._repositories = ReviewRepositories(
            records=SqlAlchemyRecordRepository(self._session)
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self._open_session()
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    def commit(self) -> None:
        self._open_session().commit()

    def rollback(self) -> None:
        self._open_session().rollback()

    @property
    def repositories(self) -> ReviewRepositories:
        if self._repositories is None:
            msg = "Unit of work is not open; use it as a context manager"
            raise StartupError(msg)
        return self._repositories

    def _open_session(self) -> Session:
        if self._session is None:
            msg = "Unit of work is not open; use it as a context manager"
            raise StartupError(msg)
        return self._session


if TYPE_CHECKING:
    from stratareview.domain.ports.unit_of_work import ReviewUnitOfWork

    _uow_check: ReviewUnitOfWork = SqlAlchemyReviewUnitOfWork()
