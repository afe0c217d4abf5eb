"""Allow ``python -m wayback_autosave``."""

import sys

from wayback_autosave.cli import main

sys.exit(main())
