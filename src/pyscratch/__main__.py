"""Package entry point.

Preferred invocation is via the installed console script:

    pyscratch ...

For convenience we also support:

    python -m pyscratch ...
"""

from __future__ import annotations

from .cli import app


def main() -> None:
    """Entry point used by `python -m pyscratch`."""

    app()


if __name__ == "__main__":
    main()
