import sys
from pathlib import Path
from unittest import TestCase

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from activerecord import (
    ConnectionManager,
    Model,
    Sqlite3Database,
    Table,
    belongs_to,
    delegate,
    has_and_belongs_to_many,
    has_many,
    has_one,
)


class MemoryDatabase(Sqlite3Database):
    connection_string = ":memory:"


SCHEMA = [
    """CREATE TABLE authors(
        author_id INTEGER NOT NULL PRIMARY KEY,
        parent_author_id INT,
        name VARCHAR(25) NOT NULL DEFAULT 'default_name',
        updated_at datetime,
        created_at datetime,
        some_date date,
        encrypted_password varchar(50)
    )""",
    """CREATE TABLE books(
        book_id INTEGER NOT NULL PRIMARY KEY,
        author_id INT,
        secondary_author_id INT,
        name VARCHAR(50),
        numeric_test VARCHAR(10) DEFAULT '0',
        special NUMERIC(10,2) DEFAULT 0.0
    )""",
    """CREATE TABLE venues(
        id INTEGER NOT NULL PRIMARY KEY,
        name varchar(50),
        city varchar(60),
        state char(2),
        address varchar(50),
        phone varchar(10) default NULL,
        UNIQUE(name, address)
    )""",
    """CREATE TABLE events(
        id INTEGER NOT NULL PRIMARY KEY,
        venue_id int NULL,
        host_id int NOT NULL,
        title varchar(60) NOT NULL,
        description varchar(10),
        type varchar(15) default NULL
    )""",
    """CREATE TABLE hosts(
        id INTEGER NOT NULL PRIMARY KEY,
        name VARCHAR(25)
    )""",
    """CREATE TABLE employees(
        id INTEGER NOT NULL PRIMARY KEY,
        first_name VARCHAR(255) NOT NULL,
        last_name VARCHAR(255) NOT NULL,
        nick_name VARCHAR(255) NOT NULL
    )""",
    """CREATE TABLE positions(
        id INTEGER NOT NULL PRIMARY KEY,
        employee_id INTEGER NOT NULL,
        title VARCHAR(255) NOT NULL,
        active SMALLINT NOT NULL
    )""",
]

SEED = {
    "authors": (
        ["author_id", "parent_author_id", "name"],
        [(1, 3, "Tito"), (2, 2, "George W. Bush"), (3, 1, "Bill Clinton"), (4, 2, "Uncle Bob")],
    ),
    "books": (
        ["book_id", "author_id", "secondary_author_id", "name", "special"],
        [(1, 1, 2, "Ancient Art of Main Tanking", 0.0), (2, 2, 2, "Another Book", 0.0)],
    ),
    "venues": (
        ["id", "name", "city", "state", "address", "phone"],
        [
            (1, "Blender Theater at Gramercy", "New York", "NY", "127 East 23rd Street", "2125296599"),
            (2, "Warner Theatre", "Washington", "DC", "1299 Pennsylvania Ave NW", "2027834000"),
            (3, "Ukrainian National Home", "New York", "NY", "140 2nd Avenue", None),
        ],
    ),
    "events": (
        ["id", "venue_id", "host_id", "title", "description", "type"],
        [
            (1, 1, 1, "Monday Night Music Club feat. The Shivers", "", "Music"),
            (2, 2, 2, "Yeah Yeah Yeahs", "", "Music"),
            (3, 2, 3, "Love Overboard", "", "Music"),
            (4, 1, 2, "Scarlett", "", "Music"),
        ],
    ),
    "hosts": (
        ["id", "name"],
        [(1, "David Letterman"), (2, "Billy Crystal"), (3, "Jon Stewart")],
    ),
    "employees": (
        ["id", "first_name", "last_name", "nick_name"],
        [(1, "michio", "kaku", "kakz"), (2, "jacques", "fuentes", "jax"), (3, "kien", "la", "kla")],
    ),
    "positions": (
        ["id", "employee_id", "title", "active"],
        [(1, 2, "physicist", 0), (2, 2, "programmer", 1), (3, 1, "programmer", 1)],
    ),
}


def load_schema(connection):
    for statement in SCHEMA:
        connection.query(statement)

    for table, (columns, rows) in SEED.items():
        markers = ",".join("?" for _ in columns)
        for row in rows:
            connection.query(f"INSERT INTO {table}({','.join(columns)}) VALUES({markers})", row)


class DatabaseTestCase(TestCase):
    """Every test gets a fresh in-memory database and empty schema caches."""

    def setUp(self):
        ConnectionManager.reset()
        Table.clear_cache()
        ConnectionManager.set_default(MemoryDatabase)
        self.conn = ConnectionManager.get_connection()
        load_schema(self.conn)

    def tearDown(self):
        Table.clear_cache()
        ConnectionManager.reset()


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------

class Author(Model):
    __primary_key__ = "author_id"
    __relationships__ = [has_many("books")]
    __attr_protected__ = ["encrypted_password"]

    def get_upper_name(self):
        return self.name.upper()


class Book(Model):
    __relationships__ = [
        belongs_to("author"),
        belongs_to("secondary_author", class_name="Author", foreign_key="secondary_author_id"),
    ]


class Venue(Model):
    __relationships__ = [
        has_many("events", order="id asc"),
        has_many("hosts", through="events", order="hosts.id asc"),
    ]
    __alias_attribute__ = {"marquee": "name", "mycity": "city"}


class Event(Model):
    __relationships__ = [
        belongs_to("host"),
        belongs_to("venue"),
    ]
    __delegate__ = [
        delegate("state", "address", to="venue"),
        delegate("name", to="host", prefix="woot"),
    ]


class Host(Model):
    __relationships__ = [
        has_many("events"),
        has_many("venues", through="events"),
    ]


class Employee(Model):
    __relationships__ = [
        has_one("position"),
        has_many("positions", conditions=["active=?", 1]),
    ]


class Position(Model):
    __relationships__ = [belongs_to("employee")]


class Property(Model):
    __table__ = "venues"
    __relationships__ = [has_and_belongs_to_many("hosts")]
