import threading

from activerecord.core_services.Database import Database
from activerecord.database.Exceptions import ConfigException


class ConnectionManager:
    """
    Registry of live connections, one per ``Database`` class.

    Models name their adapter with ``__database__``; models that don't use the
    default set here.

        ConnectionManager.set_default(AppDatabase)
    """

    _connections: dict[type, Database] = {}
    _default: type | Database | None = None
    _lock = threading.Lock()

    @classmethod
    def set_default(cls, database: type | Database | None):
        cls._default = database

    @classmethod
    def get_connection(cls, database: type | Database | None = None) -> Database:
        database = database or cls._default
        if database is None:
            raise ConfigException("No database configured. Set __database__ on the model or call ConnectionManager.set_default().")

        if isinstance(database, Database):
            return database

        if not (isinstance(database, type) and issubclass(database, Database)):
            raise ConfigException(f"{database!r} is not a Database adapter")

        with cls._lock:
            if database not in cls._connections:
                cls._connections[database] = database()
            return cls._connections[database]

    @classmethod
    def drop_connection(cls, database: type | Database | None = None):
        database = database or cls._default
        key = type(database) if isinstance(database, Database) else database
        with cls._lock:
            connection = cls._connections.pop(key, None)
        if connection is not None:
            connection.close()

    @classmethod
    def reset(cls):
        with cls._lock:
            connections = list(cls._connections.values())
            cls._connections = {}
            cls._default = None
        for connection in connections:
            connection.close()
