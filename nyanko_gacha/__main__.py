import sys

from .seeker import main

sys.exit(main())
