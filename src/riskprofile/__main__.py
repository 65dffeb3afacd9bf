"""Allow ``python -m riskprofile``."""

import sys

from riskprofile.cli import main

sys.exit(main())
