from __future__ import annotations

import sys

from hystrix_monitor.server import main

if __name__ == "__main__":
    sys.exit(main())
