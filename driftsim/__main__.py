import sys

from driftsim.cli import main

sys.exit(main())
