"""process-helper entry point.

Supports: python -m process_helper
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
