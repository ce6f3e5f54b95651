from __future__ import annotations

import logging
import os
import sys
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from interface.api import app
from interface.cli import main as cli_main


def serve() -> None:
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("main:app", host=os.getenv("HOST", "127.0.0.1"), port=port, reload=False)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        serve()
    else:
        cli_main()
