# packsmith/__main__.py
import sys

from packsmith.main import main

sys.exit(main())
