"""
Command-line interface.

Usage:
    bird-db serve [--data birdIndex.json] [--port 3022] [--dev]
    bird-db stats [--data birdIndex.json]
    bird-db search eagle [--exact] [--limit 10]
    bird-db query '$count($[IUCN_Red_List_Category = "CR"])'
"""

import argparse
import json
import logging
import sys

from bird_db.config import Config, get_config
from bird_db.errors import BirdDBError, LoadError
from bird_db.log_setup import configure_logging
from bird_db.query import BirdQueryEngine
from bird_db.records import ENGLISH_NAME_AVILIST, SCIENTIFIC_NAME
from bird_db.storage import DatasetStore

logger = logging.getLogger(__name__)


def load_store(config: Config) -> DatasetStore:
    """Load the dataset or exit with status 1."""
    store = DatasetStore(config.storage.data_file)
    try:
        store.load()
    except LoadError as e:
        logger.error(f"Failed to initialize bird query engine: {e}")
        sys.exit(1)
    return store


def cmd_serve(config: Config, args: argparse.Namespace) -> None:
    import uvicorn

    from bird_db.api.server import create_app

    store = load_store(config)
    app = create_app(config, store=store)

    base = f"http://localhost:{config.server.port}{config.server.path_prefix}"
    logger.info(f"Bird Data API Server running on port {config.server.port}")
    logger.info(f"API Documentation: {base}/api/docs")
    logger.info(f"Health Check: {base}/api/health")
    if config.server.dev_mode:
        logger.info("Running in development mode (higher rate limits)")

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
    )


def cmd_stats(config: Config, args: argparse.Namespace) -> None:
    engine = BirdQueryEngine(load_store(config))
    stats = engine.dataset_stats()

    print("Dataset Statistics:")
    print(f"  Total Records:   {stats['totalRecords']:,}")
    print(f"  Orders:          {stats['totalOrders']:,}")
    print(f"  Families:        {stats['totalFamilies']:,}")
    print(f"  Species:         {stats['totalSpecies']:,}")
    print(f"  Extinct Species: {stats['extinctSpecies']:,}")
    print(f"  IUCN Categories: {', '.join(str(c) for c in stats['iucnCategories'])}")


def cmd_search(config: Config, args: argparse.Namespace) -> None:
    engine = BirdQueryEngine(load_store(config))
    results = engine.search_by_name(args.term, exact=args.exact)

    print(f'Found {len(results)} birds matching "{args.term}"')
    for bird in results[: args.limit]:
        common = bird.get(ENGLISH_NAME_AVILIST) or "No common name"
        print(f"  {bird.get(SCIENTIFIC_NAME, '?')} - {common}")


def cmd_query(config: Config, args: argparse.Namespace) -> None:
    engine = BirdQueryEngine(load_store(config))
    print(json.dumps(engine.execute(args.expression), indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bird-db", description="Query a bird taxonomy dataset with JSONata"
    )
    parser.add_argument("--data", help="Dataset file (overrides STORAGE_DATA_FILE)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Bind port")
    serve.add_argument(
        "--dev", action="store_true", help="Development mode (relaxed rate limits)"
    )
    serve.set_defaults(func=cmd_serve)

    stats = subparsers.add_parser("stats", help="Print dataset statistics")
    stats.set_defaults(func=cmd_stats)

    search = subparsers.add_parser("search", help="Search by scientific or common name")
    search.add_argument("term")
    search.add_argument("--exact", action="store_true", help="Exact name match")
    search.add_argument("--limit", type=int, default=10, help="Results to print")
    search.set_defaults(func=cmd_search)

    query = subparsers.add_parser("query", help="Evaluate a raw JSONata expression")
    query.add_argument("expression")
    query.set_defaults(func=cmd_query)

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    config = get_config()
    if args.data:
        config.storage.data_file = args.data
    if getattr(args, "host", None):
        config.server.host = args.host
    if getattr(args, "port", None):
        config.server.port = args.port
    if getattr(args, "dev", False):
        config.server.dev_mode = True

    configure_logging(config)

    try:
        args.func(config, args)
    except BirdDBError as e:
        print(f"Error: {e.message}" + (f" ({e.details})" if e.details else ""), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
