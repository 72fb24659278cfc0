import sys

from ..cli import register_workers_main

sys.exit(register_workers_main())
