import sys

from bqsync.main import main

if __name__ == "__main__":
    sys.exit(main())
