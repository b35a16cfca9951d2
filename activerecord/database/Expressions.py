from typing import Any

from activerecord.database.Exceptions import ExpressionsException


class Expressions:
    """
    A SQL fragment with positional ``?`` markers and the values bound to them.

    List values expand their single marker into a comma separated run of markers
    (``id IN(?)`` with ``[1, 2]`` renders ``id IN(?,?)``). Markers inside single
    quoted literals are left alone.

        Expressions(conn, "name=? AND id IN(?)", "Tito", [1, 2]).to_s()
        # name=? AND id IN(?,?)
    """

    PARAMETER_MARKER = "?"

    def __init__(self, connection, expressions: str | dict | None = None, *values: Any, glue: str = " AND "):
        self.connection = connection
        self.expressions = None
        self._values: list[Any] = []

        if isinstance(expressions, dict):
            expressions, values = self._build_sql_from_hash(expressions, glue)

        if expressions:
            self._values = list(values)
            self.expressions = expressions

    def __str__(self):
        return self.to_s()

    def bind(self, parameter_number: int, value: Any) -> None:
        if parameter_number <= 0:
            raise ExpressionsException(f"Invalid parameter index: {parameter_number}")

        index = parameter_number - 1
        while len(self._values) <= index:
            self._values.append(None)
        self._values[index] = value

    def bind_values(self, values: list[Any]) -> None:
        self._values = list(values)

    def values(self) -> list[Any]:
        return self._values

    def to_s(self, substitute: bool = False, values: list[Any] | None = None) -> str:
        """
        Render the expression.

        Args:
            substitute: inline literal values instead of markers (debug output only).
            values: render against these values instead of the bound ones.
        """
        if self.expressions is None:
            return ""

        values = self._values if values is None else values
        out = []
        quotes = 0
        j = 0

        for i, ch in enumerate(self.expressions):
            if ch == self.PARAMETER_MARKER:
                if quotes % 2 == 0:
                    if j > len(values) - 1:
                        raise ExpressionsException(f"No bound parameter for index {j}")
                    ch = self._substitute(values[j], substitute)
                    j += 1
            elif ch == "'" and i > 0 and self.expressions[i - 1] != "\\":
                quotes += 1

            out.append(ch)
        return "".join(out)

    def _build_sql_from_hash(self, hash_: dict[str, Any], glue: str) -> tuple[str, list[Any]]:
        parts = []
        for name, value in hash_.items():
            if self.connection is not None:
                name = self.connection.quote_name(name)

            if isinstance(value, (list, tuple)):
                parts.append(f"{name} IN(?)")
            elif value is None:
                parts.append(f"{name} IS ?")
            else:
                parts.append(f"{name}=?")
        return glue.join(parts), list(hash_.values())

    def _substitute(self, value: Any, substitute: bool) -> str:
        if isinstance(value, (list, tuple)):
            # an empty list still has to render valid SQL: IN(NULL) matches nothing
            if not value:
                return "NULL"
            if substitute:
                return ",".join(self._stringify_value(v) for v in value)
            return ",".join([self.PARAMETER_MARKER] * len(value))

        if substitute:
            return self._stringify_value(value)
        return self.PARAMETER_MARKER

    def _stringify_value(self, value: Any) -> str:
        if value is None:
            return "NULL"
        if isinstance(value, str):
            return self._quote_string(value)
        return str(value)

    def _quote_string(self, value: str) -> str:
        if self.connection is not None:
            return self.connection.escape(value)
        return "'" + value.replace("'", "''") + "'"
