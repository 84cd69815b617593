"""
Statements and queries for the csv_records table.

Insert writes every column; update writes every column except the key and
selects by id. Values are bound as native float and naive datetime.
"""

from psycopg import sql

from csv_loader.core.models import Record, WriteMode

from .connection import DatabaseConnectionPool

DEFAULT_TABLE = "csv_records"

_INSERT = "INSERT INTO {table} (id, name, description, amount, timestamp, status) VALUES (%s, %s, %s, %s, %s, %s)"
_UPDATE = "UPDATE {table} SET name = %s, description = %s, amount = %s, timestamp = %s, status = %s WHERE id = %s"
_SELECT_ONE = "SELECT id, name, description, amount, timestamp, status FROM {table} WHERE id = %s"
_COUNT = "SELECT COUNT(*) AS count FROM {table}"


class RecordTable:
    """
    Parameterized statement shapes for one records table.
    """

    def __init__(self, table_name: str = DEFAULT_TABLE):
        """
        Initialize statement shapes.

        Args:
            table_name: Target table (quoted as an identifier)
        """
        self.table_name = table_name
        self._table = sql.Identifier(table_name)

    def statement(self, mode: WriteMode) -> sql.Composed:
        """Statement for the given mode."""
        template = _UPDATE if mode is WriteMode.UPDATE else _INSERT
        return sql.SQL(template).format(table=self._table)

    def params(self, record: Record, mode: WriteMode) -> tuple:
        """Bind parameters for one record, in statement order."""
        values = (
            record.name,
            record.description,
            record.amount,
            record.timestamp,
            record.status,
        )
        if mode is WriteMode.UPDATE:
            return values + (record.id,)
        return (record.id,) + values

    def select_one(self) -> sql.Composed:
        return sql.SQL(_SELECT_ONE).format(table=self._table)

    def count(self) -> sql.Composed:
        return sql.SQL(_COUNT).format(table=self._table)


class RecordRepository:
    """
    Read access to persisted records.
    """

    def __init__(self, pool: DatabaseConnectionPool, table: RecordTable | None = None):
        self.pool = pool
        self.table = table or RecordTable()

    def get(self, record_id: str) -> Record | None:
        """
        Load one record by id.

        Args:
            record_id: Business key

        Returns:
            Record or None when no row has this id
        """
        rows = self.pool.execute_query(self.table.select_one(), (record_id,))
        if not rows:
            return None
        return Record(**rows[0])

    def count(self) -> int:
        rows = self.pool.execute_query(self.table.count())
        return rows[0]["count"]
