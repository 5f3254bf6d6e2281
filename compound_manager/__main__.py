import sys

from compound_manager.cli import main

sys.exit(main())
