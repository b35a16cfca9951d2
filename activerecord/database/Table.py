import threading
from datetime import date, datetime
from typing import Any, Callable

from activerecord.core_services.ConnectionManager import ConnectionManager
from activerecord.database.CallBack import CallBack
from activerecord.database.Column import Column
from activerecord.database.Exceptions import RelationshipException
from activerecord.database.QueryBuilder import QueryBuilder
from activerecord.database.active_record.utils.Inflector import tableize
from activerecord.database.active_record.utils.ModelCollection import ModelCollection
from activerecord.database.active_record.utils.Utils import is_hash, wrap_in_list


class TableRegistry:
    """
    Process wide schema caches: one ``Table`` per model class and one column map per
    fully qualified table name. First population happens under a lock; once stored,
    entries are read without locking.
    """

    def __init__(self):
        self._tables: dict[type, "Table"] = {}
        self._columns: dict[str, dict[str, Column]] = {}
        # tables whose associations are still being built; only touched under the lock
        self._building: dict[type, "Table"] = {}
        # re-entrant: loading one table builds relationships that load others
        self._lock = threading.RLock()

    def load(self, model_class: type) -> "Table":
        table = self._tables.get(model_class)
        if table is not None:
            return table

        with self._lock:
            if model_class in self._tables:
                return self._tables[model_class]
            # associations may point back at a class that is still being built
            if model_class in self._building:
                return self._building[model_class]

            table = Table(model_class)
            self._building[model_class] = table
            try:
                table.set_associations()
            finally:
                self._building.pop(model_class, None)
            self._tables[model_class] = table
            return table

    def columns(self, key: str, loader: Callable[[], dict[str, Column]]) -> dict[str, Column]:
        columns = self._columns.get(key)
        if columns is not None:
            return columns

        with self._lock:
            if key not in self._columns:
                self._columns[key] = loader()
            return self._columns[key]

    def clear(self, model_class: type | None = None):
        with self._lock:
            if model_class is not None:
                self._tables.pop(model_class, None)
            else:
                self._tables = {}
                self._columns = {}
                self._building = {}


tables = TableRegistry()


class Table:
    """
    Schema and finder plumbing for one model class.

        table = Table.load(Author)
        table.pk                                    # ['author_id']
        table.find({"conditions": ["name=?", "Tito"], "limit": 1})
    """

    def __init__(self, model_class: type):
        self.klass = model_class
        self.conn = None
        self.pk: list[str] = []
        self.last_sql: str | None = None
        self.columns: dict[str, Column] = {}
        self.table: str = ""
        self.db_name: str | None = None
        self.sequence: str | None = None
        self.delegates: list[dict[str, Any]] = []
        self.relationships: dict[str, Any] = {}

        self.reestablish_connection(False)
        self.set_table_name()
        self.get_meta_data()
        self.set_primary_key()
        self.set_sequence_name()
        self.set_delegates()

        self.callback = CallBack(model_class)
        self.callback.register("before_save", lambda model: model.set_timestamps(), prepend=True)
        self.callback.register("after_save", lambda model: model.reset_dirty(), prepend=True)

    def __repr__(self):
        return f"<Table {self.get_fully_qualified_table_name(False)} for {self.klass.__name__}>"

    @classmethod
    def load(cls, model_class: type) -> "Table":
        return tables.load(model_class)

    @classmethod
    def clear_cache(cls, model_class: type | None = None):
        tables.clear(model_class)

    @staticmethod
    def cache_key(table_name: str) -> str:
        return f"get_meta_data-{table_name}"

    def reestablish_connection(self, close: bool = True):
        database = getattr(self.klass, "__database__", None)
        if close:
            ConnectionManager.drop_connection(database)
            self.clear_cache()
        self.conn = ConnectionManager.get_connection(database)
        return self.conn

    # ----------------------------------------------------------------------
    # SQL generation
    # ----------------------------------------------------------------------

    def create_joins(self, joins) -> str:
        """
        Turn a list of relationship names (or literal JOIN clauses) into join SQL.
        A second join to an already joined class is aliased by the relationship name.
        """
        if not isinstance(joins, (list, tuple)):
            return joins

        ret = []
        existing_tables: dict[str, int] = {}

        for value in joins:
            if "JOIN " in value.upper():
                ret.append(value)
                continue

            if value not in self.relationships:
                raise RelationshipException(
                    f"Relationship named {value} has not been declared for class: {self.klass.__name__}"
                )

            rel = self.get_relationship(value)
            if rel.class_name in existing_tables:
                alias = value
                existing_tables[rel.class_name] += 1
            else:
                existing_tables[rel.class_name] = 1
                alias = None

            ret.append(rel.construct_inner_join_sql(self, False, alias))
        return " ".join(ret)

    def options_to_sql(self, options: dict[str, Any]) -> QueryBuilder:
        options = dict(options)
        table = options.get("from") or self.get_fully_qualified_table_name()
        sql = QueryBuilder(self.conn, table)

        if "joins" in options:
            sql.joins(self.create_joins(options["joins"]))
            options.setdefault("select", f"{self.get_fully_qualified_table_name()}.*")

        if "select" in options:
            sql.select(options["select"])

        if options.get("conditions") is not None:
            conditions = options["conditions"]
            if not is_hash(conditions):
                if isinstance(conditions, str):
                    conditions = [conditions]
                sql.where(*conditions)
            else:
                if options.get("mapped_names"):
                    conditions = self.map_names(conditions, options["mapped_names"])
                sql.where(conditions)

        if "order" in options:
            sql.order(options["order"])
        if "limit" in options:
            sql.limit(options["limit"])
        if "offset" in options:
            sql.offset(options["offset"])
        if "group" in options:
            sql.group(options["group"])
        if "having" in options:
            sql.having(options["having"])
        return sql

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------

    def find(self, options: dict[str, Any]) -> ModelCollection:
        sql = self.options_to_sql(options)
        readonly = bool(options.get("readonly"))
        eager_load = options.get("include")
        return self.find_by_sql(sql.to_s(), sql.get_where_values(), readonly, eager_load)

    def find_by_sql(self, sql: str, values=None, readonly: bool = False, includes=None) -> ModelCollection:
        self.last_sql = sql
        collect_attrs_for_includes = includes is not None
        models, attrs = ModelCollection(), []

        for row in self.conn.fetch_all(sql, self.process_data(values)):
            model = self.klass(row, guard_attributes=False, instantiating_via_find=True, new_record=False)
            if readonly:
                model.readonly()
            if collect_attrs_for_includes:
                attrs.append(model.attributes())
            models.append(model)

        if collect_attrs_for_includes and models:
            self.execute_eager_load(models, attrs, includes)
        return models

    def execute_eager_load(self, models: list, attrs: list[dict[str, Any]], includes) -> None:
        """
        ``includes`` is a name, a list of names, or a dict for nested loads:

            include=["venue", {"events": ["host"]}]
        """
        for name in wrap_in_list(includes):
            if is_hash(name):
                for parent, nested in name.items():
                    self.get_relationship(parent, True).load_eagerly(models, attrs, nested, self)
            else:
                self.get_relationship(name, True).load_eagerly(models, attrs, [], self)

    # ----------------------------------------------------------------------
    # Metadata
    # ----------------------------------------------------------------------

    def get_column_by_inflected_name(self, inflected_name: str) -> Column | None:
        for column in self.columns.values():
            if column.inflected_name == inflected_name:
                return column
        return None

    def get_fully_qualified_table_name(self, quote_name: bool = True) -> str:
        table = self.conn.quote_name(self.table) if quote_name else self.table
        if self.db_name:
            table = f"{self.conn.quote_name(self.db_name)}.{table}"
        return table

    def get_relationship(self, name: str, strict: bool = False):
        if self.has_relationship(name):
            return self.relationships[name]

        if strict:
            raise RelationshipException(
                f"Relationship named {name} has not been declared for class: {self.klass.__name__}"
            )
        return None

    def has_relationship(self, name: str) -> bool:
        return name in self.relationships

    # ----------------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------------

    def insert(self, data: dict[str, Any], pk: str | None = None, sequence_name: str | None = None):
        data = self.process_data(data)
        sql = QueryBuilder(self.conn, self.get_fully_qualified_table_name())
        sql.insert(data, pk, sequence_name)
        self.last_sql = sql.to_s()
        return self.conn.query(self.last_sql, list(data.values()))

    def update(self, data: dict[str, Any], where: dict[str, Any]):
        data = self.process_data(data)
        sql = QueryBuilder(self.conn, self.get_fully_qualified_table_name())
        sql.update(data).where(where)
        self.last_sql = sql.to_s()
        return self.conn.query(self.last_sql, sql.bind_values())

    def delete(self, data: dict[str, Any]):
        data = self.process_data(data)
        sql = QueryBuilder(self.conn, self.get_fully_qualified_table_name())
        sql.delete(data)
        self.last_sql = sql.to_s()
        return self.conn.query(self.last_sql, sql.bind_values())

    # ----------------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------------

    def add_relationship(self, relationship) -> None:
        self.relationships[relationship.attribute_name] = relationship

    def get_meta_data(self) -> None:
        table_name = self.get_fully_qualified_table_name()
        self.columns = tables.columns(self.cache_key(table_name), lambda: self.conn.columns(table_name))

    @staticmethod
    def map_names(hash_: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
        return {mapping.get(name, name): value for name, value in hash_.items()}

    def process_data(self, data):
        """Render date/datetime values the way the connection expects them."""
        if not data:
            return data

        if is_hash(data):
            return {name: self._process_value(name, value) for name, value in data.items()}
        return [self._process_value(None, value) for value in data]

    def _process_value(self, name: str | None, value: Any) -> Any:
        if isinstance(value, datetime):
            column = self.columns.get(name) if name else None
            if column is not None and column.type == Column.DATE:
                return self.conn.date_to_string(value)
            return self.conn.datetime_to_string(value)
        if isinstance(value, date):
            return self.conn.date_to_string(value)
        if isinstance(value, (list, tuple)):
            return [self._process_value(None, v) for v in value]
        return value

    def set_primary_key(self) -> None:
        pk = getattr(self.klass, "__primary_key__", None)
        if pk:
            self.pk = wrap_in_list(pk)
        else:
            self.pk = [c.inflected_name for c in self.columns.values() if c.pk]

    def set_table_name(self) -> None:
        self.table = getattr(self.klass, "__table__", None) or tableize(self.klass.__name__)
        self.db_name = getattr(self.klass, "__db_name__", None)

    def set_sequence_name(self) -> None:
        if not self.conn.supports_sequences():
            return

        self.sequence = getattr(self.klass, "__sequence__", None)
        if not self.sequence and self.pk:
            self.sequence = self.conn.get_sequence_name(self.table, self.pk[0])

    def set_delegates(self) -> None:
        self.delegates = []
        for definition in getattr(self.klass, "__delegate__", None) or []:
            if not is_hash(definition) or not definition.get("to"):
                continue
            self.delegates.append({
                "to": definition["to"],
                "prefix": definition.get("prefix"),
                "delegate": list(definition.get("delegate") or []),
            })

    def set_associations(self) -> None:
        for association in getattr(self.klass, "__relationships__", None) or []:
            self.add_relationship(association.build())
