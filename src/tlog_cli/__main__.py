"""Entry point for ``python -m tlog_cli``."""

import sys

from tlog_cli.main import main

if __name__ == "__main__":
    sys.exit(main())
