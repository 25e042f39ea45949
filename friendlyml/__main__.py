"""`python -m friendlyml …` forwards to the Typer CLI."""

from __future__ import annotations

from friendlyml.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
