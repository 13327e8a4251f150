"""File-level import: CSV file -> documents -> store."""

import logging
from pathlib import Path
from typing import Collection

from csv2store.converter import build_records
from csv2store.errors import UnknownColumnError
from csv2store.store import DocumentStore
from csv2store.table import Table
from csv2store.uploader import UploadEngine, UploadOutcome

logger = logging.getLogger(__name__)


def import_file(
    store: DocumentStore,
    file_path: str | Path,
    columns: Collection[str] | None = None,
    doctype: str | None = None,
    engine: UploadEngine | None = None,
    strict: bool = True,
) -> UploadOutcome:
    """Import one CSV file into ``store``.

    Parse errors, a missing file and unknown selected columns raise before
    anything is written. Per-record store failures only show up in the
    returned outcome's skipped count.
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"unable to find '{path}'")

    table = Table.from_path(path, strict=strict)
    logger.info("Loaded %s: %d rows, %d columns", path, table.row_count, len(table.headers))

    if columns is not None:
        for column in columns:
            if column not in table.columns:
                raise UnknownColumnError(column, role="selected column")

    records = build_records(table, columns, doctype)
    if not records:
        logger.info("No documents to upload from %s", path)
        return UploadOutcome(total=0, skipped=0)

    engine = engine or UploadEngine(store)
    outcome = engine.upload(records)
    if outcome.skipped:
        logger.warning("%s: %d of %d documents skipped", path, outcome.skipped, outcome.total)
    return outcome
