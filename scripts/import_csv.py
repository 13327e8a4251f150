"""CLI entry point for CSV import.

Usage:
    python -m scripts.import_csv --store-url http://localhost:5984/bucket [--password PW]
        [--doctype TYPE] [--columns a,b,c] [--workers 8] [--min-batch 10000] file.csv [...]

The store URL and password may also be given as CSV2STORE_URL / CSV2STORE_PASSWORD.
"""

import argparse
import csv
import logging
import os
import sys

from csv2store import create_store, verify_connectivity
from csv2store.errors import ConnectivityError, Csv2StoreError
from csv2store.pipeline import import_file
from csv2store.uploader import MAX_RETRIES, MIN_BATCH, WORKER_COUNT, RetryPolicy, UploadEngine

logger = logging.getLogger(__name__)


def column_list(value: str) -> list[str]:
    columns = [c.strip() for c in value.split(",") if c.strip()]
    if not columns:
        raise argparse.ArgumentTypeError("expected at least one column name")
    return columns


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import CSV files into a document store")
    parser.add_argument("files", nargs="+", help="CSV files to import")
    parser.add_argument(
        "--store-url",
        default=os.environ.get("CSV2STORE_URL"),
        help="Store URL (memory://, sqlite:///, postgresql://, http(s)://host:port/bucket)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("CSV2STORE_PASSWORD"),
        help="Store password / bucket password",
    )
    parser.add_argument("--doctype", help="Document type tag added as a field and key prefix")
    parser.add_argument(
        "--columns",
        type=column_list,
        help="Comma-separated list of columns to import (default: all)",
    )
    parser.add_argument("--workers", type=int, default=WORKER_COUNT, help="Upload threads")
    parser.add_argument(
        "--min-batch",
        type=int,
        default=MIN_BATCH,
        help="Batches smaller than this are uploaded on a single thread",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=MAX_RETRIES,
        help="Transient failures tolerated per record before it is skipped",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Pad or truncate rows whose value count does not match the headers",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("CSV2STORE_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not args.store_url:
        logger.error("No store URL given. Use --store-url or set CSV2STORE_URL.")
        sys.exit(1)

    try:
        store = create_store(args.store_url, args.password, pool_size=args.workers)
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)

    try:
        try:
            store.connect()
            verify_connectivity(store)
        except ConnectivityError as e:
            logger.error("%s", e)
            sys.exit(1)
        except Exception as e:
            logger.error("unable to connect to store: %s", e)
            sys.exit(1)

        engine = UploadEngine(
            store,
            workers=args.workers,
            min_batch=args.min_batch,
            retry=RetryPolicy(max_attempts=args.max_retries),
        )
        total = sent = 0
        for filename in args.files:
            try:
                outcome = import_file(
                    store,
                    filename,
                    columns=args.columns,
                    doctype=args.doctype,
                    engine=engine,
                    strict=not args.lenient,
                )
            except FileNotFoundError:
                logger.error("unable to find '%s'", filename)
                sys.exit(1)
            except (Csv2StoreError, csv.Error, OSError, UnicodeDecodeError) as e:
                logger.error("error loading file '%s': %s", filename, e)
                sys.exit(1)
            total += outcome.total
            sent += outcome.sent
            logger.info("%s: %d sent, %d skipped", filename, outcome.sent, outcome.skipped)

        logger.info("Done. %d of %d documents stored, %d skipped.", sent, total, total - sent)
    finally:
        store.close()


if __name__ == "__main__":
    main()
