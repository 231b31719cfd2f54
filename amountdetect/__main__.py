"""Allow ``python -m amountdetect``."""
from __future__ import annotations

import sys

from amountdetect.cli import main

if __name__ == "__main__":
    sys.exit(main())
