import logging
import sys

import uvicorn

from .config import SERVER_HOST, SERVER_PORT
from .server import app

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Port from command-line argument or fallback to env/default
    port = int(sys.argv[1]) if len(sys.argv) > 1 else SERVER_PORT

    print(f"Starting csvboard server at http://{SERVER_HOST}:{port}")
    uvicorn.run(app, host=SERVER_HOST, port=port)
