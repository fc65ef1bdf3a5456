import sys

from review_engine.cli import main

sys.exit(main())
