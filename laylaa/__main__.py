"""Entry point for ``python -m laylaa``."""

import sys

from laylaa.cli import main

if __name__ == "__main__":
    sys.exit(main())
