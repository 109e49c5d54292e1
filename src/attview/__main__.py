"""Attendance viewer entrypoint.

Run with:
  python -m attview
"""

import logging
import os

import uvicorn


def main() -> None:
    host = os.getenv("ATTVIEW_HOST", "127.0.0.1")
    port = int(os.getenv("ATTVIEW_PORT", "8000"))
    reload = os.getenv("ATTVIEW_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    log_level = os.getenv("ATTVIEW_LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("attview.app:app", host=host, port=port, reload=reload, log_level=log_level)


if __name__ == "__main__":
    main()
