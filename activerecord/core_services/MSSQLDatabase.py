from typing import Any

import pyodbc

from activerecord.core_services.Database import Database
from activerecord.database.Column import Column
from activerecord.database.active_record.utils.Inflector import variablize


def handle_unsupported_dtype(v):
    return str(v)


class MSSQLDatabase(Database):
    connection = None
    connection_string: str = ""

    driver_error = pyodbc.Error

    def connect(self):
        self.connection = pyodbc.connect(self.connection_string, autocommit=True)
        self.connection.add_output_converter(-16, handle_unsupported_dtype)
        return self.connection

    def quote_name(self, name: str) -> str:
        if not name or name[0] == "[" or name[-1] == "]":
            return name
        return f"[{name}]"

    def limit(self, sql: str, offset: int | None, limit: int | None) -> str:
        # OFFSET/FETCH is only legal after an ORDER BY
        if " ORDER BY " not in sql.upper():
            sql += " ORDER BY (SELECT NULL)"
        sql += f" OFFSET {int(offset or 0)} ROWS"
        if limit is not None:
            sql += f" FETCH NEXT {int(limit)} ROWS ONLY"
        return sql

    def query_column_info(self, table: str) -> list[dict[str, Any]]:
        table = table.split(".")[-1].strip("[]")
        return self.fetch_all(
            "SELECT c.COLUMN_NAME AS name, c.DATA_TYPE AS type, c.IS_NULLABLE AS nullable, "
            "c.COLUMN_DEFAULT AS dflt, c.CHARACTER_MAXIMUM_LENGTH AS length, "
            "COLUMNPROPERTY(OBJECT_ID(c.TABLE_SCHEMA + '.' + c.TABLE_NAME), c.COLUMN_NAME, 'IsIdentity') AS is_identity, "
            "CASE WHEN k.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS pk "
            "FROM INFORMATION_SCHEMA.COLUMNS c "
            "LEFT JOIN INFORMATION_SCHEMA.TABLE_CONSTRAINTS t "
            "ON t.TABLE_NAME = c.TABLE_NAME AND t.CONSTRAINT_TYPE = 'PRIMARY KEY' "
            "LEFT JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE k "
            "ON k.CONSTRAINT_NAME = t.CONSTRAINT_NAME AND k.COLUMN_NAME = c.COLUMN_NAME "
            "WHERE c.TABLE_NAME = ? ORDER BY c.ORDINAL_POSITION",
            [table],
        )

    def create_column(self, row: dict[str, Any]) -> Column:
        c = Column(row["name"], variablize(row["name"]))
        c.nullable = row["nullable"] == "YES"
        c.pk = bool(row["pk"])
        c.auto_increment = bool(row["is_identity"])
        c.raw_type = (row["type"] or "").lower()
        c.length = row["length"]
        c.map_raw_type()

        # defaults come back wrapped like ((0)) or ('abc')
        default = row["dflt"]
        if default is not None:
            default = default.strip("()").strip("'")
        c.default = c.cast(default, self)
        return c

    def insert_id(self, sequence: str | None = None) -> Any:
        return self.query_and_fetch_one("SELECT @@IDENTITY")

    def transaction(self):
        self.ensure_connected().autocommit = False

    def commit(self):
        connection = self.ensure_connected()
        connection.commit()
        connection.autocommit = True

    def rollback(self):
        connection = self.ensure_connected()
        connection.rollback()
        connection.autocommit = True
