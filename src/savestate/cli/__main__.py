"""Main entry point for the savestate CLI when run as a module."""

import sys

from savestate.cli import main

if __name__ == "__main__":
    sys.exit(main())
