# start_app.py
"""Launch the printer API server."""

from __future__ import annotations

import argparse

import uvicorn
from dotenv import load_dotenv


def main(argv: list[str] | None = None) -> None:
    """Load ``.env`` then start the API."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    load_dotenv()  # load environment variables from a .env file

    uvicorn.run(
        "tillprint.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
