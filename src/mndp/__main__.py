import sys

from mndp.cli import main

sys.exit(main())
