import sys

from veo3ops.cli import main

if __name__ == "__main__":
    sys.exit(main())
