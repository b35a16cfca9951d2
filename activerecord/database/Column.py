from datetime import date, datetime
from decimal import Decimal
from typing import Any


class Column:
    """Metadata for one physical column, built once per table by the connection adapter."""

    STRING = 1
    INTEGER = 2
    DECIMAL = 3
    DATETIME = 4
    DATE = 5
    TIME = 6

    TYPE_MAPPING = {
        "datetime": DATETIME,
        "timestamp": DATETIME,
        "date": DATE,
        "time": TIME,

        "int": INTEGER,
        "integer": INTEGER,
        "tinyint": INTEGER,
        "smallint": INTEGER,
        "mediumint": INTEGER,
        "bigint": INTEGER,
        "bool": INTEGER,
        "boolean": INTEGER,

        "float": DECIMAL,
        "double": DECIMAL,
        "real": DECIMAL,
        "numeric": DECIMAL,
        "decimal": DECIMAL,
        "dec": DECIMAL,
    }

    def __init__(self, name: str = None, inflected_name: str = None):
        self.name = name
        self.inflected_name = inflected_name or name
        self.type = None
        self.raw_type = None
        self.length = None
        self.nullable = True
        self.pk = False
        self.default = None
        self.auto_increment = False
        self.sequence = None

    def __repr__(self):
        return f"<Column {self.name} {self.raw_type} pk={self.pk}>"

    def map_raw_type(self) -> int:
        if self.raw_type == "integer":
            self.raw_type = "int"

        self.type = self.TYPE_MAPPING.get(self.raw_type, self.STRING)
        return self.type

    def cast(self, value: Any, connection) -> Any:
        """Cast a value coming from the database or from user code to this column's type."""
        if value is None:
            return None

        if self.type == self.STRING:
            if isinstance(value, bytes):
                return value
            return str(value)

        if self.type == self.INTEGER:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, int):
                return value
            if isinstance(value, str) and value.strip() == "":
                return None
            try:
                return int(value)
            except (TypeError, ValueError):
                pass
            try:
                return int(float(value))
            except (TypeError, ValueError, OverflowError):
                # left as given so numericality validation can report it
                return value

        if self.type == self.DECIMAL:
            if isinstance(value, str) and value.strip() == "":
                return None
            if isinstance(value, Decimal):
                return value
            try:
                return float(value)
            except (TypeError, ValueError):
                return value

        if self.type in (self.DATETIME, self.DATE):
            if value == "":
                return None
            if isinstance(value, datetime):
                return value if self.type == self.DATETIME else value.date()
            if isinstance(value, date):
                return datetime(value.year, value.month, value.day) if self.type == self.DATETIME else value
            parsed = connection.string_to_datetime(str(value))
            if parsed is None:
                return None
            return parsed if self.type == self.DATETIME else parsed.date()

        return value
