"""
Entry point for running kernel-janitor as a module.

Usage:
    python -m kernel_janitor [options]
"""

import sys
from kernel_janitor.cli import main

if __name__ == "__main__":
    sys.exit(main())
