"""Shared test fixtures."""

import csv
from pathlib import Path

import pytest

from csv2store import MemoryDocumentStore, create_store


@pytest.fixture
def memory_store():
    """Provide a fresh in-memory DocumentStore for each test."""
    store = MemoryDocumentStore()
    store.connect()
    yield store
    store.close()


@pytest.fixture
def sqlite_store(tmp_path):
    """Provide a fresh SQLite DocumentStore for each test."""
    db_path = tmp_path / "test.db"
    store = create_store(f"sqlite:///{db_path}")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def write_csv(tmp_path):
    """Return a helper that writes headers + rows to a CSV file under tmp_path."""

    def _write(headers: list[str], rows: list[list[str]], name: str = "test.csv") -> Path:
        csv_file = tmp_path / name
        with open(csv_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows(rows)
        return csv_file

    return _write
