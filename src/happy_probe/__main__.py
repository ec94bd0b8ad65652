import sys

from happy_probe.cli import main

sys.exit(main())
