# modkeeper/__main__.py
import sys

from modkeeper.cli import main

sys.exit(main())
