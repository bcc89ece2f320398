#!/usr/bin/env python3
"""``python -m stratareview.main``: same as the ``stratareview`` console script."""

from __future__ import annotations

from stratareview.ui.cli import main, run

__all__ = ["main", "run"]


if __name__ == "__main__":
    run()
