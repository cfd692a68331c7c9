#!/usr/bin/env python3
import logging, os, webbrowser

import uvicorn

from app import app

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3000"))
OPEN_BROWSER = os.getenv("OPEN_BROWSER", "1") != "0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print(f"todo API running at http://{HOST}:{PORT}")
    if OPEN_BROWSER:
        webbrowser.open(f"http://{HOST}:{PORT}/api/health")
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
