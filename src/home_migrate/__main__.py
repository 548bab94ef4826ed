#!/usr/bin/env python3
"""home-migrate - Module entry point."""
import sys

from home_migrate.cli import main

if __name__ == "__main__":
    sys.exit(main())
