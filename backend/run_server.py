"""Entry point for running the taxonomy API under uvicorn.

Usage:
    python run_server.py --port 8000 --db taxonomy.db
"""

import argparse
import os


def main() -> None:
    parser = argparse.ArgumentParser(description="Taxonomy DAG API server")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Interface to bind to")
    parser.add_argument("--db", type=str, default=None, help="SQLite database path")
    parser.add_argument("--cache", choices=["memory", "redis"], default=None)
    parser.add_argument("--search", choices=["memory", "elasticsearch"], default=None)
    args = parser.parse_args()

    if args.db:
        os.environ["TAXONOMY_DB_PATH"] = args.db
    if args.cache:
        os.environ["TAXONOMY_CACHE"] = args.cache
    if args.search:
        os.environ["TAXONOMY_SEARCH"] = args.search

    import uvicorn
    from taxonomy_api.main import app

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
