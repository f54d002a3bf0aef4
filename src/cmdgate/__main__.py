import sys

from cmdgate.cli import main

sys.exit(main())
