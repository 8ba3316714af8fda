import sys

from price_verification.cli import main

sys.exit(main())
