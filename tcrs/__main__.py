"""
Main entry point for running the package as a module.

Usage:
    python -m tcrs week --date 2025-01-06
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
