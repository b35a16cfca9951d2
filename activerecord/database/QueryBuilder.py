import re
from typing import Any, Self

from activerecord.database.Exceptions import ActiveRecordException
from activerecord.database.Expressions import Expressions
from activerecord.database.active_record.utils.Utils import flatten, is_hash


class QueryBuilder:
    """
    Accumulates the clauses of a single SELECT/INSERT/UPDATE/DELETE statement and
    renders dialect correct SQL through the connection it was built with.

        sql = QueryBuilder(conn, "authors").where("name=?", "Tito").order("id").limit(2)
        sql.to_s()          # SELECT * FROM authors WHERE name=? ORDER BY id LIMIT 2
        sql.bind_values()   # ['Tito']
    """

    def __init__(self, connection, table: str):
        if not connection:
            raise ActiveRecordException("A valid database connection is required.")

        self.connection = connection
        self.table = table
        self.operation = "SELECT"

        self._select = "*"
        self._joins = None
        self._order = None
        self._limit = None
        self._offset = None
        self._group = None
        self._having = None
        self._update = None

        self._where = None
        self._where_values: list[Any] = []

        self._data: dict[str, Any] | None = None
        self._sequence: tuple[str, str] | None = None

    def __str__(self):
        return self.to_s()

    def to_s(self) -> str:
        builder = getattr(self, f"_build_{self.operation.lower()}")
        return builder()

    def to_sql(self) -> str:
        return self.to_s()

    def get(self) -> tuple[str, list[Any]]:
        """Returns the rendered SQL together with its bind values."""
        return self.to_s(), self.bind_values()

    def bind_values(self) -> list[Any]:
        values = []
        if self._data:
            values = list(self._data.values())
        if self._where_values:
            values = values + list(self._where_values)
        return flatten(values)

    def get_where_values(self) -> list[Any]:
        return self._where_values

    # --------------------------------------------------------------------------
    # Clauses
    # --------------------------------------------------------------------------

    def where(self, *args: Any) -> Self:
        self._apply_where_conditions(args)
        return self

    def order(self, order: str | None) -> Self:
        self._order = order
        return self

    def group(self, group: str | None) -> Self:
        self._group = group
        return self

    def having(self, having: str | None) -> Self:
        self._having = having
        return self

    def limit(self, limit) -> Self:
        self._limit = int(limit) if limit is not None else None
        return self

    def offset(self, offset) -> Self:
        self._offset = int(offset) if offset is not None else None
        return self

    def select(self, select: str) -> Self:
        self.operation = "SELECT"
        self._select = select
        return self

    def joins(self, joins: str | None) -> Self:
        self._joins = joins
        return self

    # --------------------------------------------------------------------------
    # Write operations
    # --------------------------------------------------------------------------

    def insert(self, hash_: dict[str, Any], pk: str | None = None, sequence_name: str | None = None) -> Self:
        if not is_hash(hash_):
            raise ActiveRecordException("Inserting requires a hash.")

        self.operation = "INSERT"
        self._data = hash_

        if pk and sequence_name:
            self._sequence = (pk, sequence_name)
        return self

    def update(self, mixed: dict[str, Any] | str) -> Self:
        self.operation = "UPDATE"

        if is_hash(mixed):
            self._data = mixed
        elif isinstance(mixed, str):
            self._update = mixed
        else:
            raise ActiveRecordException("Updating requires a hash or string.")
        return self

    def delete(self, *args: Any) -> Self:
        self.operation = "DELETE"
        self._apply_where_conditions(args)
        return self

    # --------------------------------------------------------------------------
    # Helpers shared with finders
    # --------------------------------------------------------------------------

    @staticmethod
    def reverse_order(order: str | None) -> str | None:
        """
        Flip ASC/DESC on each comma separated segment; bare segments become DESC.

            reverse_order("id ASC, name DESC")  # id DESC, name ASC
        """
        if not order or not order.strip():
            return order

        parts = order.split(",")
        for i, part in enumerate(parts):
            lowered = part.lower()
            if " asc" in lowered:
                parts[i] = re.sub("asc", "DESC", part, flags=re.I)
            elif " desc" in lowered:
                parts[i] = re.sub("desc", "ASC", part, flags=re.I)
            else:
                parts[i] = part + " DESC"
        return ",".join(parts)

    @staticmethod
    def create_conditions_from_underscored_string(connection, name: str, values: list[Any] | None = None,
                                                  mapping: dict[str, str] | None = None) -> list[Any] | None:
        """
        Turn ``id_and_name_or_z`` plus positional values into ``[sql, *values]``.

        Missing or None values become ``IS NULL`` and are dropped from the values,
        list values become ``IN(?)``.
        """
        if not name:
            return None

        values = list(values or [])
        parts = re.split(r"(_and_|_or_)", name, flags=re.I)
        conditions: list[Any] = [""]

        for j, i in enumerate(range(0, len(parts), 2)):
            if i >= 2:
                glue = parts[i - 1].lower()
                conditions[0] += " AND " if glue == "_and_" else " OR "

            if j < len(values) and values[j] is not None:
                bind = " IN(?)" if isinstance(values[j], (list, tuple)) else "=?"
                conditions.append(values[j])
            else:
                bind = " IS NULL"

            field = parts[i]
            if mapping and field in mapping:
                field = mapping[field]

            conditions[0] += connection.quote_name(field) + bind
        return conditions

    @staticmethod
    def create_hash_from_underscored_string(name: str, values: list[Any] | None = None,
                                            mapping: dict[str, str] | None = None) -> dict[str, Any]:
        values = list(values or [])
        hash_ = {}
        for i, field in enumerate(re.split(r"_and_|_or_", name, flags=re.I)):
            if mapping and field in mapping:
                field = mapping[field]
            hash_[field] = values[i] if i < len(values) else None
        return hash_

    # --------------------------------------------------------------------------
    # Internals
    # --------------------------------------------------------------------------

    def _prepend_table_name_to_fields(self, hash_: dict[str, Any]) -> dict[str, Any]:
        table = self.connection.quote_name(self.table)
        return {f"{table}.{self.connection.quote_name(key)}": value for key, value in hash_.items()}

    def _apply_where_conditions(self, args: tuple) -> None:
        if len(args) == 1 and is_hash(args[0]):
            hash_ = args[0] if self._joins is None else self._prepend_table_name_to_fields(args[0])
            e = Expressions(self.connection, hash_)
            self._where = e.to_s()
            self._where_values = flatten(e.values())
        elif args:
            values = list(args[1:])

            # a nested list needs Expressions to expand its marker
            if any(isinstance(v, (list, tuple)) for v in values):
                e = Expressions(self.connection, args[0])
                e.bind_values(values)
                self._where = e.to_s()
                self._where_values = flatten(e.values())
                return

            self._where = args[0]
            self._where_values = values

    def _quoted_key_names(self) -> list[str]:
        return [self.connection.quote_name(key) for key in (self._data or {})]

    def _build_delete(self) -> str:
        sql = f"DELETE FROM {self.table}"

        if self._where:
            sql += f" WHERE {self._where}"

        if self.connection.accepts_limit_and_order_for_update_and_delete():
            if self._order:
                sql += f" ORDER BY {self._order}"
            if self._limit:
                sql = self.connection.limit(sql, None, self._limit)
        return sql

    def _build_insert(self) -> str:
        keys = ",".join(self._quoted_key_names())

        if self._sequence:
            pk, sequence_name = self._sequence
            columns = f"{keys}," if keys else ""
            markers = "?," if keys else ""
            sql = (f"INSERT INTO {self.table}({columns}{self.connection.quote_name(pk)}) "
                   f"VALUES({markers}{self.connection.next_sequence_value(sequence_name)})")
        elif not self._data:
            return self.connection.empty_insert_sql(self.table)
        else:
            sql = f"INSERT INTO {self.table}({keys}) VALUES(?)"

        e = Expressions(self.connection, sql, list((self._data or {}).values()))
        return e.to_s()

    def _build_select(self) -> str:
        sql = f"SELECT {self._select} FROM {self.table}"

        if self._joins:
            sql += f" {self._joins}"
        if self._where:
            sql += f" WHERE {self._where}"
        if self._group:
            sql += f" GROUP BY {self._group}"
        if self._having:
            sql += f" HAVING {self._having}"
        if self._order:
            sql += f" ORDER BY {self._order}"
        if self._limit or self._offset:
            sql = self.connection.limit(sql, self._offset, self._limit)
        return sql

    def _build_update(self) -> str:
        if self._update:
            set_ = self._update
        else:
            set_ = "=?, ".join(self._quoted_key_names()) + "=?"

        sql = f"UPDATE {self.table} SET {set_}"

        if self._where:
            sql += f" WHERE {self._where}"

        if self.connection.accepts_limit_and_order_for_update_and_delete():
            if self._order:
                sql += f" ORDER BY {self._order}"
            if self._limit:
                sql = self.connection.limit(sql, None, self._limit)
        return sql
