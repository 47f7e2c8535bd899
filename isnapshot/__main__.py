"""Allow running isnapshot as ``python -m isnapshot``."""

import sys

from isnapshot.cli import main


if __name__ == "__main__":
    sys.exit(main())
