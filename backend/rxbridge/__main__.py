import sys

from rxbridge.cli import main

sys.exit(main())
