import logging
import os
import pprint
import time
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Generator

from activerecord.database.Column import Column
from activerecord.database.Exceptions import ActiveRecordException, DatabaseException


class Database:
    """
    The connection capability every model talks to.

    Subclasses supply the driver specific parts: ``connect``, ``limit``,
    ``query_column_info`` and ``create_column``. Configure an adapter the usual way:

        class AppDatabase(Sqlite3Database):
            connection_string = "app.db"
    """

    connection = None
    connection_string: str = ""
    connection_dict: dict = {}

    QUOTE_CHARACTER = "`"
    driver_error: type[BaseException] = Exception

    def __init__(self, connection_string: str | None = None, connection_dict: dict | None = None):
        if connection_string is not None:
            self.connection_string = connection_string
        if connection_dict is not None:
            self.connection_dict = connection_dict

        self.connection = None
        self.last_cursor = None
        self.last_query: str | None = None

        self.logging_enabled = os.getenv("ORM_DEBUG", 'false').lower() == "true"
        self.logger = logging.getLogger("orm.sql")
        if not self.logger.handlers:  # prevent duplicate handlers
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s"
            ))
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)

    def _log_query(self, sql: str, params: tuple, elapsed_ms: float):
        if self.logging_enabled:
            log_entry = {
                "event": "sql_query",
                "sql": sql,
                "params": params,
                "elapsed_ms": round(elapsed_ms, 2),
                "database": self.__class__,
            }
            # pretty print dict instead of raw string
            self.logger.debug("\n" + pprint.pformat(log_entry, indent=2, width=80, compact=False) + "\n")

    class DotDict(dict):
        def __getattr__(self, key):
            return self.get(key)

        def __setattr__(self, key, value):
            self[key] = value

        def __delattr__(self, key):
            del self[key]

    # ----------------------------------------------------------------------
    # Driver hooks
    # ----------------------------------------------------------------------

    def connect(self):
        raise NotImplementedError

    def limit(self, sql: str, offset: int | None, limit: int | None) -> str:
        raise NotImplementedError

    def query_column_info(self, table: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def create_column(self, row: dict[str, Any]) -> Column:
        raise NotImplementedError

    def prepare_sql(self, sql: str, params: tuple) -> str:
        """Rewrite ``?`` markers into the driver's paramstyle when it differs."""
        return sql

    def new_cursor(self):
        return self.connection.cursor()

    # ----------------------------------------------------------------------
    # Execution
    # ----------------------------------------------------------------------

    def ensure_connected(self):
        if self.connection is None:
            self.connect()
        return self.connection

    def query(self, sql: str, values=None):
        """Execute ``sql`` with positional ``values`` and return the driver cursor."""
        params = tuple(values or ())
        self.last_query = sql
        self.ensure_connected()

        start_time = time.perf_counter()
        try:
            cursor = self.new_cursor()
            cursor.execute(self.prepare_sql(sql, params), params)
        except self.driver_error as e:
            self.logger.error(f"{e.__class__.__name__}: {e} [{sql}]")
            raise DatabaseException(e) from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._log_query(sql, params, elapsed_ms)
        self.last_cursor = cursor
        return cursor

    def fetch_all(self, sql: str, values=None) -> list[dict[str, Any]]:
        cursor = self.query(sql, values)
        if cursor.description is None:
            return []
        columns = [column[0] for column in cursor.description]
        return [self.DotDict(zip(columns, row)) for row in cursor.fetchall()]

    def query_and_fetch_one(self, sql: str, values=None) -> Any:
        cursor = self.query(sql, values)
        row = cursor.fetchone()
        return row[0] if row else None

    def columns(self, table: str) -> dict[str, Column]:
        columns = {}
        for row in self.query_column_info(table):
            column = self.create_column(row)
            columns[column.name] = column
        return columns

    def insert_id(self, sequence: str | None = None) -> Any:
        return self.last_cursor.lastrowid if self.last_cursor is not None else None

    def close(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    # ----------------------------------------------------------------------
    # Transactions
    # ----------------------------------------------------------------------

    def transaction(self):
        self.ensure_connected()
        self.query("BEGIN")

    def commit(self):
        self.ensure_connected().commit()

    def rollback(self):
        self.ensure_connected().rollback()

    @contextmanager
    def atomic(self) -> Generator["Database", None, None]:
        """
        A context manager for managing transactions.
        Commits the transaction on successful execution of the block
        or rolls back if an exception occurs.
        """
        self.transaction()
        try:
            yield self
        except Exception:
            self.rollback()
            self.logger.debug("Transaction rolled back")
            raise
        self.commit()

    # ----------------------------------------------------------------------
    # Dialect capabilities
    # ----------------------------------------------------------------------

    def quote_name(self, name: str) -> str:
        q = self.QUOTE_CHARACTER
        if not name or name[0] == q or name[-1] == q:
            return name
        return f"{q}{name}{q}"

    def escape(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def supports_sequences(self) -> bool:
        return False

    def get_sequence_name(self, table: str, column_name: str) -> str:
        return f"{table}_seq"

    def next_sequence_value(self, sequence_name: str) -> str | None:
        return None

    def get_next_sequence_value(self, sequence_name: str) -> Any:
        sql = self.next_sequence_value(sequence_name)
        if sql is None:
            raise ActiveRecordException(f"{self.__class__.__name__} does not support sequences")
        return self.query_and_fetch_one(f"SELECT {sql}")

    def accepts_limit_and_order_for_update_and_delete(self) -> bool:
        return False

    def empty_insert_sql(self, table: str) -> str:
        return f"INSERT INTO {table} DEFAULT VALUES"

    def date_to_string(self, value: date) -> str:
        return value.strftime("%Y-%m-%d")

    def datetime_to_string(self, value: datetime) -> str:
        return value.strftime("%Y-%m-%d %H:%M:%S")

    def string_to_datetime(self, value: str) -> datetime | None:
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
