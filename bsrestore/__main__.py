"""
Module entrypoint for the bsrestore CLI.

This file exists so that `python -m bsrestore ...` works even when the
console-script wrapper is not installed. It contains no business logic.
"""

from __future__ import annotations

from bsrestore.cli import main


def _run() -> None:
    """
    Execute the bsrestore command line interface.

    Raises
    ------
    SystemExit
        Always, carrying the CLI exit code.
    """
    raise SystemExit(main())


if __name__ == "__main__":
    _run()
