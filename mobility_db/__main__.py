"""Allow ``python -m mobility_db``."""

import sys

from mobility_db.cli import main

sys.exit(main())
