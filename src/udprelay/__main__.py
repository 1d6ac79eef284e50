import sys

from udprelay.cli import main

sys.exit(main())
