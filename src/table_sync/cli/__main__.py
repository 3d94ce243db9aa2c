import sys

from table_sync.cli import main

sys.exit(main())
