import sys

from dotege.main import main

sys.exit(main())
