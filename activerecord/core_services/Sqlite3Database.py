import os
import re
import sqlite3
from typing import Any

from activerecord.core_services.Database import Database
from activerecord.database.Column import Column
from activerecord.database.active_record.utils.Inflector import variablize


def parse_default(value: str | None) -> str | None:
    """pragma table_info reports defaults as SQL literals: 'abc', 0, NULL."""
    if value is None or value.upper() == "NULL":
        return None
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1].replace("''", "'")
    return value


class Sqlite3Database(Database):
    connection = None
    connection_string: str = ""

    QUOTE_CHARACTER = '"'
    driver_error = sqlite3.Error

    def connect(self):
        path = self.connection_string or os.getenv("SQLITE_PATH", ":memory:")
        # autocommit mode; transactions are opened explicitly with BEGIN
        self.connection = sqlite3.connect(path, isolation_level=None)
        return self.connection

    def limit(self, sql: str, offset: int | None, limit: int | None) -> str:
        offset = "" if offset is None else f"{int(offset)},"
        limit = -1 if limit is None else int(limit)
        return f"{sql} LIMIT {offset}{limit}"

    def query_column_info(self, table: str) -> list[dict[str, Any]]:
        return self.fetch_all(f"pragma table_info({table})")

    def create_column(self, row: dict[str, Any]) -> Column:
        c = Column(row["name"], variablize(row["name"]))
        c.nullable = not row["notnull"]
        c.pk = bool(row["pk"])

        raw = re.sub(r"[()]", " ", (row["type"] or "").strip())
        matches = raw.split()
        c.auto_increment = bool(matches) and matches[0].upper() == "INTEGER" and c.pk

        if matches:
            c.raw_type = matches[0].lower()
            if len(matches) > 1 and matches[1].isdigit():
                c.length = int(matches[1])

        c.map_raw_type()

        if c.type == Column.DATETIME:
            c.length = 19
        elif c.type == Column.DATE:
            c.length = 10

        # sqlite integers are stored in up to 8 bytes
        if c.type == Column.INTEGER and not c.length:
            c.length = 8

        c.default = c.cast(parse_default(row["dflt_value"]), self)
        return c

    def transaction(self):
        self.ensure_connected()
        self.query("BEGIN")

    def commit(self):
        if self.ensure_connected().in_transaction:
            self.query("COMMIT")

    def rollback(self):
        if self.ensure_connected().in_transaction:
            self.query("ROLLBACK")

    def accepts_limit_and_order_for_update_and_delete(self) -> bool:
        # stock sqlite builds are compiled without SQLITE_ENABLE_UPDATE_DELETE_LIMIT
        return False
