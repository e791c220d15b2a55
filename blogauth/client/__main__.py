import sys

from blogauth.client.cli import main

sys.exit(main())
