from typing import Any, Iterable


def is_hash(value: Any) -> bool:
    return isinstance(value, dict)


def flatten(values: Iterable[Any]) -> list[Any]:
    """Flatten arbitrarily nested lists/tuples into a single list."""
    out = []
    for value in values:
        if isinstance(value, (list, tuple)):
            out.extend(flatten(value))
        else:
            out.append(value)
    return out


def all_none(values: Iterable[Any]) -> bool:
    return all(v is None for v in values)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def is_odd(number) -> bool:
    return int(number) % 2 == 1


def wrap_in_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def add_condition(conditions: list[Any] | None, condition, conjunction: str = "AND") -> list[Any]:
    """
    AND (or OR) a condition onto an existing conditions list without mutating it.

    Args:
        conditions: ``[sql, *values]`` or empty.
        condition: another ``[sql, *values]`` or a bare sql string.

    Returns:
        A new ``[sql, *values]`` list. List-valued bind values are kept intact
        so IN(?) expansion still happens downstream.
    """
    result = list(conditions or [])
    if isinstance(condition, (list, tuple)):
        condition = list(condition)
        if not result:
            return condition
        result[0] = f"{result[0]} {conjunction} {condition[0]}"
        result.extend(condition[1:])
    elif isinstance(condition, str):
        if not result:
            return [condition]
        result[0] = f"{result[0]} {conjunction} {condition}"
    return result
