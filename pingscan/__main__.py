import sys

from pingscan.cli import main

sys.exit(main())
