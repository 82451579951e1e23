"""Shared test fixtures for the questionkit test suite.

* ``sample_metadata``   -- in-memory catalog matching ``seed_db``
* ``structured_card`` / ``native_card`` / ``multi_card`` / ``saved_card``
* ``seed_db``           -- DuckDB file with ``customers`` and ``orders``
* ``client``            -- FastAPI TestClient backed by ``seed_db``

Ids in ``sample_metadata`` are the ones ``introspect_duckdb`` assigns to
``seed_db``: tables ordered by name, fields by column position.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import duckdb
import pytest
from fastapi.testclient import TestClient

from questionkit.api.server import create_app
from questionkit.metadata import Database, Field, Metadata, Table

# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------

DB_ID = 1
CUSTOMERS = 1
ORDERS = 2

CUSTOMER_ID = 1
CUSTOMER_NAME = 2
CUSTOMER_REGION = 3
ORDER_ID = 4
ORDER_CUSTOMER_ID = 5
ORDER_CREATED_AT = 6
ORDER_TOTAL = 7
ORDER_STATUS = 8


@pytest.fixture()
def sample_metadata() -> Metadata:
    return Metadata.from_lists(
        databases=[Database(id=DB_ID, name="sample")],
        tables=[
            Table(id=CUSTOMERS, db_id=DB_ID, name="customers"),
            Table(id=ORDERS, db_id=DB_ID, name="orders"),
        ],
        fields=[
            Field(id=CUSTOMER_ID, table_id=CUSTOMERS, name="id",
                  base_type="type/Integer", special_type="type/PK"),
            Field(id=CUSTOMER_NAME, table_id=CUSTOMERS, name="name", base_type="type/Text"),
            Field(id=CUSTOMER_REGION, table_id=CUSTOMERS, name="region", base_type="type/Text"),
            Field(id=ORDER_ID, table_id=ORDERS, name="id",
                  base_type="type/Integer", special_type="type/PK"),
            Field(id=ORDER_CUSTOMER_ID, table_id=ORDERS, name="customer_id",
                  base_type="type/Integer", special_type="type/FK"),
            Field(id=ORDER_CREATED_AT, table_id=ORDERS, name="created_at",
                  base_type="type/DateTime"),
            Field(id=ORDER_TOTAL, table_id=ORDERS, name="total", base_type="type/Float"),
            Field(id=ORDER_STATUS, table_id=ORDERS, name="status", base_type="type/Text"),
        ],
    )


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------

@pytest.fixture()
def structured_card() -> dict:
    """Unsaved card: count of orders by status."""
    return {
        "name": "Orders by status",
        "display": "bar",
        "visualization_settings": {},
        "dataset_query": {
            "type": "query",
            "database": DB_ID,
            "query": {
                "source_table": ORDERS,
                "aggregation": [["count"]],
                "breakout": [["field-id", ORDER_STATUS]],
            },
        },
    }


@pytest.fixture()
def native_card() -> dict:
    return {
        "name": "Big orders",
        "display": "table",
        "visualization_settings": {},
        "dataset_query": {
            "type": "native",
            "database": DB_ID,
            "native": {
                "query": "SELECT * FROM orders WHERE total > {{min_total}}",
                "template_tags": {
                    "min_total": {
                        "id": "tag-1",
                        "name": "min_total",
                        "display_name": "Min total",
                        "type": "number",
                        "default": 100,
                    }
                },
            },
        },
    }


@pytest.fixture()
def multi_card(structured_card, native_card) -> dict:
    return {
        "display": "line",
        "visualization_settings": {},
        "dataset_query": {
            "type": "multi",
            "queries": [structured_card["dataset_query"], native_card["dataset_query"]],
        },
    }


@pytest.fixture()
def saved_card(structured_card) -> dict:
    return {
        **structured_card,
        "id": 42,
        "description": "All orders grouped by status",
        "can_write": True,
        "public_uuid": None,
    }


# ---------------------------------------------------------------------------
# DuckDB
# ---------------------------------------------------------------------------

def _make_db_path() -> Path:
    """Create a temporary file for DuckDB and remove it so DuckDB can own it."""
    with tempfile.NamedTemporaryFile(suffix=".duckdb", delete=False) as f:
        db_path = Path(f.name)
    db_path.unlink()
    return db_path


@pytest.fixture()
def seed_db():
    """DuckDB database with exactly-known rows.

    customers (3): 1 Acme/North, 2 Beta/South, 3 Gamma/North
    orders (6):
        id  customer  created_at   total  status
        1   1         2024-01-05   100    completed
        2   1         2024-01-20   250    completed
        3   2         2024-02-01   75     pending
        4   3         2024-02-11   300    completed
        5   3         2024-03-02   50     refunded
        6   2         2024-03-15   125    pending
    """
    db_path = _make_db_path()
    conn = duckdb.connect(str(db_path))
    conn.execute("""
        CREATE TABLE customers (
            id INTEGER,
            name VARCHAR,
            region VARCHAR
        )
    """)
    conn.execute("""
        CREATE TABLE orders (
            id INTEGER,
            customer_id INTEGER,
            created_at TIMESTAMP,
            total DOUBLE,
            status VARCHAR
        )
    """)
    conn.execute("""
        INSERT INTO customers VALUES
        (1, 'Acme', 'North'),
        (2, 'Beta', 'South'),
        (3, 'Gamma', 'North')
    """)
    conn.execute("""
        INSERT INTO orders VALUES
        (1, 1, '2024-01-05 10:00:00', 100.0, 'completed'),
        (2, 1, '2024-01-20 11:00:00', 250.0, 'completed'),
        (3, 2, '2024-02-01 09:00:00', 75.0, 'pending'),
        (4, 3, '2024-02-11 15:30:00', 300.0, 'completed'),
        (5, 3, '2024-03-02 08:15:00', 50.0, 'refunded'),
        (6, 2, '2024-03-15 17:45:00', 125.0, 'pending')
    """)
    conn.close()

    yield db_path

    db_path.unlink(missing_ok=True)


@pytest.fixture()
def client(seed_db, tmp_path):
    """FastAPI TestClient backed by ``seed_db`` and an empty card store."""
    app = create_app(db_path=seed_db, cards_dir=tmp_path / "cards")
    return TestClient(app)
