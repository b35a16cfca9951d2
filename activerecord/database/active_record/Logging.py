import logging
import sys
import time
from contextlib import contextmanager

logger = logging.getLogger("orm.sql")
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.DEBUG)


@contextmanager
def query_logging(model_or_db, emit: bool = True):
    """
    Context manager that captures (and logs) every query executed inside its block.
    Accepts either a model class (anything with ``connection()``) or a Database instance.

        with query_logging(Venue) as queries:
            Venue.find(1, 2, include="events")
        len(queries)  # 2
    """
    from activerecord.core_services.Database import Database

    db = model_or_db if isinstance(model_or_db, Database) else model_or_db.connection()
    original_query = db.query
    captured: list[tuple[str, tuple]] = []

    def logged_query(sql, values=None):
        start = time.perf_counter()
        result = original_query(sql, values)
        elapsed = (time.perf_counter() - start) * 1000
        params = tuple(values or ())
        captured.append((sql, params))
        if emit:
            logger.debug("[SQL] %s\n[Params] %s\n[Took] %.2f ms", sql, params, elapsed)
        return result

    db.query = logged_query
    try:
        yield captured
    finally:
        db.query = original_query
