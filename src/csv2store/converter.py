"""Row-to-JSON document conversion and record key generation."""

import json
import logging
import math
import re
import secrets
import string
from typing import Collection, NamedTuple

from csv2store.errors import DuplicateColumnError
from csv2store.table import Row, Table

logger = logging.getLogger(__name__)

KEY_LENGTH = 16
KEY_ALPHABET = string.ascii_letters + string.digits
DOCTYPE_FIELD = "doctype"

# JSON number grammar (RFC 8259, section 6)
_JSON_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")


class UploadRecord(NamedTuple):
    key: str
    document: str


def generate_key(doctype: str | None = None, length: int = KEY_LENGTH) -> str:
    """Return a random alphanumeric key, prefixed ``<doctype>:`` when doctype is set."""
    key = "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))
    if doctype:
        key = f"{doctype}:{key}"
    return key


def encode_value(value: str) -> str:
    """Encode a raw CSV field as a JSON value.

    Finite numbers keep their original text, NaN and infinities become null,
    everything else is a JSON string.
    """
    try:
        number = float(value)
    except ValueError:
        return json.dumps(value)
    if math.isnan(number) or math.isinf(number):
        return "null"
    if _JSON_NUMBER.fullmatch(value):
        return value
    # float() accepts forms JSON does not ("+1", ".5", "1_000", " 7")
    return json.dumps(value)


def row_to_document(
    row: Row,
    columns: Collection[str] | None = None,
    doctype: str | None = None,
) -> str | None:
    """Convert a row into JSON document text.

    Only headers in ``columns`` are emitted when it is given. Returns None
    when no column field was emitted; a doctype field alone is not content.
    A ``doctype`` column that would be emitted next to a doctype tag raises
    DuplicateColumnError.
    """
    fields: list[str] = []
    if doctype:
        fields.append(f"{json.dumps(DOCTYPE_FIELD)}: {json.dumps(doctype)}")

    emitted = 0
    for i, header in enumerate(row.table.headers):
        if columns is not None and header not in columns:
            continue
        if doctype and header == DOCTYPE_FIELD:
            raise DuplicateColumnError(header)
        fields.append(f"{json.dumps(header)}: {encode_value(row[i])}")
        emitted += 1

    if not emitted:
        return None
    return "{" + ", ".join(fields) + "}"


def build_records(
    table: Table,
    columns: Collection[str] | None = None,
    doctype: str | None = None,
) -> list[UploadRecord]:
    """Convert every row of ``table`` into an UploadRecord, dropping empty documents."""
    records: list[UploadRecord] = []
    for row in table:
        document = row_to_document(row, columns, doctype)
        if document is None:
            continue
        records.append(UploadRecord(generate_key(doctype), document))

    dropped = table.row_count - len(records)
    if dropped:
        logger.info("Dropped %d rows with no selected fields", dropped)
    return records
