"""Run the Hearthstead rules engine over HTTP.

Logging is configured from the ``LOG_LEVEL`` setting unless ``--log-level``
overrides it.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from hearthstead.api.app import app
from hearthstead.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Hearthstead API server")
    parser.add_argument("--host", default="127.0.0.1", help="Host interface to bind")
    parser.add_argument("--port", type=int, default=8000, help="TCP port to listen on")
    parser.add_argument("--log-level", default=None, help="Root logging level")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    logging.basicConfig(
        level=(args.log_level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.reload:
        # Reload needs an import string so the worker can re-import the app.
        uvicorn.run("hearthstead.api.app:app", host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
