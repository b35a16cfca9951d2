import re
from typing import Any

import mysql.connector

from activerecord.core_services.Database import Database
from activerecord.database.Column import Column
from activerecord.database.active_record.utils.Inflector import variablize


class MySqlDatabase(Database):
    connection = None
    connection_string: str = ""
    connection_dict: dict = {}

    QUOTE_CHARACTER = "`"
    driver_error = mysql.connector.Error

    DEFAULT_PORT = 3306
    # largest unsigned bigint, MySQL has no "no limit" keyword
    NO_LIMIT = 18446744073709551615

    def connect(self):
        options = {"port": self.DEFAULT_PORT, **self.connection_dict}
        self.connection = mysql.connector.connect(**options)
        self.connection.autocommit = True
        return self.connection

    def new_cursor(self):
        # buffered so a result set never blocks the next statement
        return self.connection.cursor(buffered=True)

    def prepare_sql(self, sql: str, params: tuple) -> str:
        if not params:
            return sql

        out = []
        quotes = 0
        for i, ch in enumerate(sql):
            if ch == "%":
                ch = "%%"
            elif ch == "?" and quotes % 2 == 0:
                ch = "%s"
            elif ch == "'" and i > 0 and sql[i - 1] != "\\":
                quotes += 1
            out.append(ch)
        return "".join(out)

    def escape(self, value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"

    def limit(self, sql: str, offset: int | None, limit: int | None) -> str:
        offset = "" if offset is None else f"{int(offset)},"
        limit = self.NO_LIMIT if limit is None else int(limit)
        return f"{sql} LIMIT {offset}{limit}"

    def query_column_info(self, table: str) -> list[dict[str, Any]]:
        return self.fetch_all(f"SHOW COLUMNS FROM {table}")

    def create_column(self, row: dict[str, Any]) -> Column:
        row = {key.lower(): value.decode() if isinstance(value, bytes) else value for key, value in row.items()}

        c = Column(row["field"], variablize(row["field"]))
        c.nullable = row["null"] == "YES"
        c.pk = row["key"] == "PRI"
        c.auto_increment = row["extra"] == "auto_increment"

        type_ = row["type"]
        if type_ in ("timestamp", "datetime"):
            c.raw_type = "datetime"
            c.length = 19
        elif type_ == "date":
            c.raw_type = "date"
            c.length = 10
        elif type_ == "time":
            c.raw_type = "time"
            c.length = 8
        else:
            match = re.match(r"^([A-Za-z0-9_]+)(\(([0-9]+(,[0-9]+)?)\))?", type_)
            c.raw_type = match.group(1) if match else type_
            if match and match.group(3):
                c.length = int(match.group(3).split(",")[0])

        c.map_raw_type()
        c.default = c.cast(row["default"], self)
        return c

    def transaction(self):
        self.ensure_connected().start_transaction()

    def accepts_limit_and_order_for_update_and_delete(self) -> bool:
        return True

    def empty_insert_sql(self, table: str) -> str:
        return f"INSERT INTO {table}() VALUES()"

    def set_encoding(self, charset: str):
        self.query("SET NAMES ?", [charset])
