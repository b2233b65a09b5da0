"""
Main entry point for running the package as a module.

Usage:
    python -m assetsync sync
    python -m assetsync status
    python -m assetsync serve --port 8787
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
