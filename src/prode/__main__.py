import sys

from prode.cli import main

sys.exit(main())
