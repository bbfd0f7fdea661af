"""Allow `python -m imessage_mcp` to start the server."""

import sys

from imessage_mcp.server import main

if __name__ == "__main__":
    sys.exit(main())
