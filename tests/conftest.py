"""
Pytest configuration and fixtures for csv-loader tests

This module provides shared fixtures for unit, integration, and E2E tests:
in-memory fakes for the blob store and the database, and a PostgreSQL
testcontainer for the tests that need a real database.
"""
import io
import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Generator

import psycopg
import pytest
from botocore.exceptions import ClientError

from csv_loader.core.models import Record


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )


# =======================
# FAKES
# =======================

class FakeBlobStore:
    """In-memory stand-in for the S3 object store."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.put_error: Exception | None = None
        self.opened_streams: list[io.BytesIO] = []

    def add(self, bucket: str, key: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.objects[(bucket, key)] = data

    def get_object(self, bucket: str, key: str):
        if (bucket, key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        stream = io.BytesIO(self.objects[(bucket, key)])
        self.opened_streams.append(stream)
        return stream

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        if self.put_error is not None:
            raise self.put_error
        self.objects[(bucket, key)] = body
        self.content_types[(bucket, key)] = content_type

    def reports(self, bucket: str) -> list[dict]:
        """Uploaded error reports, in upload order."""
        return [
            json.loads(body)
            for (b, key), body in self.objects.items()
            if b == bucket and key.endswith("-error-report.json")
        ]


class FakeDatabase:
    """Committed state of the fake csv_records table."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.commits = 0
        self.rollbacks = 0
        self.executions = 0
        self.fail_on_execution: int | None = None


class FakeCursor:
    """Applies executemany() to the connection's pending changes."""

    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def executemany(self, statement, params_seq) -> None:
        db = self.conn.db
        db.executions += 1
        if db.fail_on_execution == db.executions:
            raise psycopg.OperationalError("server closed the connection unexpectedly")

        is_update = "UPDATE" in repr(statement)
        affected = 0
        for params in params_seq:
            if is_update:
                name, description, amount, timestamp, status, record_id = params
            else:
                record_id, name, description, amount, timestamp, status = params
            row = {
                "id": record_id,
                "name": name,
                "description": description,
                "amount": amount,
                "timestamp": timestamp,
                "status": status,
            }
            exists = record_id in db.rows or record_id in self.conn.pending
            if is_update:
                if exists:
                    self.conn.pending[record_id] = row
                    affected += 1
            else:
                if exists:
                    raise psycopg.errors.UniqueViolation(
                        f'duplicate key value violates unique constraint "csv_records_pkey" ({record_id})'
                    )
                self.conn.pending[record_id] = row
                affected += 1
        self.rowcount = affected


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.autocommit = True
        self.pending: dict[str, dict] = {}

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.db.rows.update(self.pending)
        self.pending = {}
        self.db.commits += 1

    def rollback(self) -> None:
        self.pending = {}
        self.db.rollbacks += 1


class FakePool:
    """Stand-in for DatabaseConnectionPool backed by a FakeDatabase."""

    def __init__(self, db: FakeDatabase):
        self.db = db
        self.is_open = False
        self.open_error: Exception | None = None
        self.connections: list[FakeConnection] = []

    def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    @contextmanager
    def get_connection(self):
        conn = FakeConnection(self.db)
        self.connections.append(conn)
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise


# =======================
# FAKE FIXTURES
# =======================

@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_pool(fake_db) -> FakePool:
    return FakePool(fake_db)


def make_records(count: int, prefix: str = "R") -> list[Record]:
    """Build ``count`` valid records with ids R00001, R00002, ..."""
    base = datetime(2024, 1, 1, 0, 0, 0)
    return [
        Record(
            id=f"{prefix}{i:05d}",
            name=f"item-{i}",
            description="" if i % 2 else f"row {i}",
            amount=i * 1.25,
            timestamp=base + timedelta(minutes=i),
            status="OK",
        )
        for i in range(1, count + 1)
    ]


def make_csv(records: list[Record], header: str = "id,name,description,amount,timestamp,status") -> str:
    """Render records as CSV text in the source file layout."""
    lines = [header]
    for r in records:
        lines.append(
            f"{r.id},{r.name},{r.description},{r.amount!r},"
            f"{r.timestamp.strftime('%Y-%m-%d %H:%M:%S')},{r.status}"
        )
    return "\n".join(lines) + "\n"


# =======================
# LOGGING
# =======================

@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logger() so caplog keeps seeing package records."""
    yield
    package_logger = logging.getLogger("csv_loader")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the csv_records table created
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_loader",
        password="test_password",
        dbname="test_csvloader",
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )
        with open(init_sql_path, "r") as f:
            init_sql = f.read()

        with psycopg.connect(**_connect_kwargs(postgres)) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


def _connect_kwargs(postgres) -> dict:
    return {
        "host": postgres.get_container_host_ip(),
        "port": int(postgres.get_exposed_port(5432)),
        "dbname": "test_csvloader",
        "user": "test_loader",
        "password": "test_password",
    }


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator:
    """
    Open a DatabaseConnectionPool against the test container

    Yields:
        Open DatabaseConnectionPool, closed after the test
    """
    from csv_loader.warehouse.connection import DatabaseConnectionPool

    kwargs = _connect_kwargs(postgres_container)
    pool = DatabaseConnectionPool(
        host=kwargs["host"],
        port=kwargs["port"],
        database=kwargs["dbname"],
        user=kwargs["user"],
        password=kwargs["password"],
        min_size=1,
        max_size=2,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool):
    """
    Provide an empty csv_records table

    Yields:
        Open DatabaseConnectionPool
    """
    db_pool.execute_command("TRUNCATE TABLE csv_records")
    yield db_pool
