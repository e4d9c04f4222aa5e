import sys

from sqlpack.cli import main

sys.exit(main())
