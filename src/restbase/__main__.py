"""Entry point for `python -m restbase` command."""

import sys

from restbase.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
