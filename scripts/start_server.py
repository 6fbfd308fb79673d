#!/usr/bin/env python3
"""
Serve the STV tabulation API.
"""

import argparse
import socket
import sys
from pathlib import Path

import uvicorn

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from web.main import set_database_path  # noqa: E402


def first_free_port(host, start_port, max_attempts=10):
    for port in range(start_port, start_port + max_attempts):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind((host, port))
                return port
        except OSError:
            continue
    return None


def main():
    parser = argparse.ArgumentParser(description="Serve the STV tabulation API")
    parser.add_argument("--db", required=True, help="DuckDB file with ballots_long")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument(
        "--auto-port",
        action="store_true",
        help="Try the next ports if the requested one is taken",
    )
    args = parser.parse_args()

    db_path = Path(args.db).absolute()
    if not db_path.exists():
        print(f"Error: Database file not found: {db_path}")
        sys.exit(1)

    # Exported through RVA_DATABASE_PATH so the uvicorn import of web.main sees it
    set_database_path(str(db_path))

    port = args.port
    if args.auto_port:
        port = first_free_port(args.host, args.port)
        if port is None:
            print(f"Error: No available ports found starting from {args.port}")
            sys.exit(1)

    print(f"Serving STV API for {db_path} at http://{args.host}:{port}")
    uvicorn.run("web.main:app", host=args.host, port=port)


if __name__ == "__main__":
    main()
