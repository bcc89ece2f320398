from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from stratareview.app import (
    create_review,
    delete_review,
    flag_item,
    get_review,
    list_reviews,
    list_targets,
    next_phase,
    resolve_item,
    run_phase,
    run_targeted_reverify,
    submit_evidence,
    unflag_item,
)
from stratareview.config import configure_logging
from stratareview.domain.model import Domain, EvidenceBatch, ResolutionKind, ReviewPhase, Severity
from stratareview.domain.review import ValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from stratareview.domain.model import ReviewRecord

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run multi-phase strata audit reviews")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create an empty review")
    create.add_argument("name", help="Display name, e.g. the strata plan number")

    evidence = subparsers.add_parser("evidence", help="Attach evidence files to a review")
    evidence.add_argument("record_id")
    evidence.add_argument("paths", nargs="+", type=Path, help="Evidence files to upload")
    evidence.add_argument(
        "--batch",
        choices=[batch.value for batch in EvidenceBatch],
        help="Evidence batch (defaults to additional once expenses have been vouched)",
    )

    next_cmd = subparsers.add_parser("next", help="Show the phase a review needs next")
    next_cmd.add_argument("record_id")

    run = subparsers.add_parser("run", help="Run a review phase")
    run.add_argument("record_id")
    run.add_argument(
        "--phase",
        choices=[phase.value for phase in ReviewPhase],
        help="Phase to run (defaults to the next phase)",
    )

    targets = subparsers.add_parser("targets", help="List items eligible for re-verification")
    targets.add_argument("record_id")

    reverify = subparsers.add_parser("reverify", help="Re-verify outstanding items only")
    reverify.add_argument("record_id")

    flag = subparsers.add_parser("flag", help="Add an item to the triage list")
    flag.add_argument("record_id")
    flag.add_argument("--domain", required=True, choices=[domain.value for domain in Domain])
    flag.add_argument("--item-id", required=True, help="Item id, e.g. exp_3 or levy_variance")
    flag.add_argument("--title", required=True)
    flag.add_argument("--comment", default="")
    flag.add_argument("--severity", choices=[severity.value for severity in Severity])

    unflag = subparsers.add_parser("unflag", help="Remove a triage item")
    unflag.add_argument("record_id")
    unflag.add_argument("triage_id")

    resolve = subparsers.add_parser("resolve", help="Record a disposition for an item")
    resolve.add_argument("record_id")
    resolve.add_argument("--domain", required=True, choices=[domain.value for domain in Domain])
    resolve.add_argument("--item-id", required=True)
    resolve.add_argument(
        "--kind",
        choices=[kind.value for kind in ResolutionKind],
        default=ResolutionKind.RESOLVED.value,
    )
    resolve.add_argument("--comment", required=True)
    resolve.add_argument("--by", dest="resolved_by", help="Who made the call")

    show = subparsers.add_parser("show", help="Print a review (or list all reviews)")
    show.add_argument("record_id", nargs="?")

    delete = subparsers.add_parser("delete", help="Delete a review")
    delete.add_argument("record_id")

    return parser.parse_args(list(argv))


def _summarise(record: ReviewRecord) -> dict[str, object]:
    return {
        "record_id": record.record_id,
        "name": record.name,
        "status": str(record.status),
        "failure": record.failure.message if record.failure else None,
        "evidence": len(record.evidence),
        "expense_runs": [run.run_id for run in record.expense_runs],
        "triage": [
            {"id": item.id, "key": item.key, "severity": str(item.severity), "title": item.title}
            for item in record.triage
        ],
        "resolutions": [
            {"key": entry.item_key, "kind": str(entry.kind), "comment": entry.comment}
            for entry in record.resolutions
        ],
    }


def _emit(payload: object) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def _dispatch(args: argparse.Namespace) -> int:  # noqa: C901, PLR0911, PLR0912
    command = args.command
    if command == "create":
        record = create_review(args.name)
        _emit({"record_id": record.record_id})
    elif command == "evidence":
        batch = EvidenceBatch(args.batch) if args.batch else None
        _emit(_summarise(submit_evidence(args.record_id, args.paths, batch=batch)))
    elif command == "next":
        _emit({"next_phase": str(next_phase(args.record_id))})
    elif command == "run":
        record = run_phase(args.record_id, args.phase)
        _emit(_summarise(record))
        return 1 if record.failure is not None else 0
    elif command == "targets":
        _emit(
            [
                {
                    "domain": str(target.domain),
                    "item_id": target.item_id,
                    "description": target.description,
                    "source": str(target.source),
                }
                for target in list_targets(args.record_id)
            ]
        )
    elif command == "reverify":
        result = run_targeted_reverify(args.record_id)
        _emit(
            [
                {
                    "item": row.item,
                    "issue_identified": row.issue_identified,
                    "conduct": row.conduct,
                    "result": row.result,
                    "status": row.status,
                }
                for row in result.resolution_table
            ]
        )
        return 1 if result.record.failure is not None else 0
    elif command == "flag":
        record = flag_item(
            args.record_id,
            domain=Domain(args.domain),
            item_id=args.item_id,
            title=args.title,
            comment=args.comment,
            severity=Severity(args.severity) if args.severity else None,
        )
        _emit(_summarise(record))
    elif command == "unflag":
        _emit(_summarise(unflag_item(args.record_id, args.triage_id)))
    elif command == "resolve":
        record = resolve_item(
            args.record_id,
            domain=Domain(args.domain),
            item_id=args.item_id,
            kind=ResolutionKind(args.kind),
            comment=args.comment,
            resolved_by=args.resolved_by,
        )
        _emit(_summarise(record))
    elif command == "show":
        if args.record_id:
            _emit(_summarise(get_review(args.record_id)))
        else:
            _emit(list_reviews())
    elif command == "delete":
        delete_review(args.record_id)
        log.info("Deleted review %s", args.record_id)
    else:
        raise ValueError(f"Unsupported command: {command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else None)

    try:
        exit_code = _dispatch(parsed_args)
    except ValidationError as exc:
        log.error("Rejected: %s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during review")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
