"""Entry point for running bh_infra as a module."""

import sys

from bh_infra.cli import main

if __name__ == "__main__":
    sys.exit(main())
