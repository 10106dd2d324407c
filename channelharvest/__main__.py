"""Allow ``python -m channelharvest``."""

import sys

from channelharvest.cli import main

sys.exit(main())
