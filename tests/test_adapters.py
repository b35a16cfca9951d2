from datetime import date, datetime
from decimal import Decimal
from unittest import TestCase, mock

import pytest

from fixtures import Author, Book, DatabaseTestCase, MemoryDatabase

from activerecord import ActiveRecordException, Database
from activerecord.core_services.MySqlDatabase import MySqlDatabase
from activerecord.core_services.Sqlite3Database import parse_default
from activerecord.database.Column import Column
from activerecord.database.QueryBuilder import QueryBuilder


class TestSqliteColumns(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.columns = Author.table().columns

    def test_primary_key(self):
        column = self.columns["author_id"]
        self.assertTrue(column.pk)
        self.assertTrue(column.auto_increment)
        self.assertFalse(column.nullable)
        self.assertEqual(column.type, Column.INTEGER)
        self.assertEqual(column.raw_type, "int")

    def test_string_with_default(self):
        column = self.columns["name"]
        self.assertEqual(column.type, Column.STRING)
        self.assertEqual(column.length, 25)
        self.assertEqual(column.default, "default_name")

    def test_integer_length(self):
        self.assertEqual(self.columns["parent_author_id"].length, 8)
        self.assertFalse(self.columns["parent_author_id"].auto_increment)

    def test_dates(self):
        self.assertEqual(self.columns["created_at"].type, Column.DATETIME)
        self.assertEqual(self.columns["created_at"].length, 19)
        self.assertEqual(self.columns["some_date"].type, Column.DATE)
        self.assertEqual(self.columns["some_date"].length, 10)

    def test_decimal_default(self):
        column = Book.table().columns["special"]
        self.assertEqual(column.type, Column.DECIMAL)
        self.assertEqual(column.default, 0.0)

    def test_columns_are_cached_per_table(self):
        with mock.patch.object(MemoryDatabase, "query_column_info") as info:
            Author.table()
        info.assert_not_called()

    def test_parse_default(self):
        self.assertIsNone(parse_default(None))
        self.assertIsNone(parse_default("NULL"))
        self.assertEqual(parse_default("'it''s'"), "it's")
        self.assertEqual(parse_default("0"), "0")

    def test_quote_name(self):
        self.assertEqual(self.conn.quote_name("authors"), '"authors"')
        self.assertEqual(self.conn.quote_name('"authors"'), '"authors"')

    def test_date_serialization_on_write(self):
        author = Author.create(name="Dated", some_date=date(2024, 1, 2))
        raw = Author.query("SELECT some_date FROM authors WHERE author_id = ?", [author.author_id]).fetchone()[0]
        self.assertEqual(raw, "2024-01-02")

    def test_datetime_serialization_in_conditions(self):
        Author.create(name="Timed")
        Author.query("UPDATE authors SET created_at = '2024-01-02 03:04:05' WHERE name = 'Timed'")
        found = Author.find_by("created_at", datetime(2024, 1, 2, 3, 4, 5))
        self.assertEqual(found.name, "Timed")

    def test_no_sequences(self):
        self.assertFalse(self.conn.supports_sequences())
        with self.assertRaises(ActiveRecordException):
            self.conn.get_next_sequence_value("authors_seq")

    def test_atomic(self):
        with self.assertRaises(ValueError):
            with self.conn.atomic():
                Author.create(name="Gone")
                raise ValueError("boom")
        self.assertEqual(Author.count(), 4)

        with self.conn.atomic():
            Author.create(name="Kept")
        self.assertEqual(Author.count(), 5)


class TestColumnCast(TestCase):
    def setUp(self):
        self.conn = MemoryDatabase()

    def column(self, raw_type):
        c = Column("c")
        c.raw_type = raw_type
        c.map_raw_type()
        return c

    def test_integer(self):
        c = self.column("integer")
        self.assertEqual(c.raw_type, "int")
        self.assertEqual(c.cast("12", self.conn), 12)
        self.assertEqual(c.cast("12.7", self.conn), 12)
        self.assertEqual(c.cast(True, self.conn), 1)
        self.assertIsNone(c.cast(" ", self.conn))
        self.assertIsNone(c.cast(None, self.conn))

    def test_unparseable_integer_is_kept(self):
        c = self.column("int")
        self.assertEqual(c.cast("abc", self.conn), "abc")
        self.assertEqual(c.cast("inf", self.conn), "inf")

    def test_decimal(self):
        c = self.column("decimal")
        self.assertEqual(c.cast("1.5", self.conn), 1.5)
        self.assertEqual(c.cast(Decimal("1.5"), self.conn), Decimal("1.5"))
        self.assertIsNone(c.cast("", self.conn))
        self.assertEqual(c.cast("abc", self.conn), "abc")

    def test_string(self):
        c = self.column("varchar")
        self.assertEqual(c.type, Column.STRING)
        self.assertEqual(c.cast(12, self.conn), "12")
        self.assertEqual(c.cast(b"raw", self.conn), b"raw")

    def test_datetime(self):
        c = self.column("datetime")
        self.assertEqual(c.cast("2024-01-02 03:04:05", self.conn), datetime(2024, 1, 2, 3, 4, 5))
        self.assertEqual(c.cast(date(2024, 1, 2), self.conn), datetime(2024, 1, 2))
        self.assertIsNone(c.cast("not a date", self.conn))
        self.assertIsNone(c.cast("", self.conn))

    def test_date(self):
        c = self.column("date")
        self.assertEqual(c.cast("2024-01-02", self.conn), date(2024, 1, 2))
        self.assertEqual(c.cast(datetime(2024, 1, 2, 3, 4), self.conn), date(2024, 1, 2))


class TestBaseDatabase(TestCase):
    def test_driver_hooks_are_abstract(self):
        db = Database()
        for call in (db.connect, lambda: db.limit("", 0, 1), lambda: db.query_column_info("t"),
                     lambda: db.create_column({})):
            with self.assertRaises(NotImplementedError):
                call()

    def test_escape(self):
        self.assertEqual(Database().escape("it's"), "'it''s'")


class TestMySqlDialect(TestCase):
    def setUp(self):
        self.conn = MySqlDatabase(connection_dict={"database": "test"})

    def test_quote_name(self):
        self.assertEqual(self.conn.quote_name("authors"), "`authors`")
        self.assertEqual(self.conn.quote_name("`authors`"), "`authors`")

    def test_prepare_sql(self):
        self.assertEqual(self.conn.prepare_sql("name=? AND x LIKE 'a%'", ("Tito",)), "name=%s AND x LIKE 'a%%'")
        self.assertEqual(self.conn.prepare_sql("SELECT '?%'", ()), "SELECT '?%'")

    def test_prepare_sql_skips_markers_in_literals(self):
        self.assertEqual(
            self.conn.prepare_sql("SELECT * FROM t WHERE title='Why?' AND id=?", (1,)),
            "SELECT * FROM t WHERE title='Why?' AND id=%s",
        )
        self.assertEqual(
            self.conn.prepare_sql("SELECT 'it\\'s?', ?", (1,)),
            "SELECT 'it\\'s?', %s",
        )

    def test_limit(self):
        self.assertEqual(self.conn.limit("SELECT 1", 5, 10), "SELECT 1 LIMIT 5,10")
        self.assertEqual(self.conn.limit("SELECT 1", 5, None), "SELECT 1 LIMIT 5,18446744073709551615")

    def test_escape(self):
        self.assertEqual(self.conn.escape("it's \\"), "'it\\'s \\\\'")

    def test_update_and_delete_accept_order_and_limit(self):
        sql = QueryBuilder(self.conn, "`authors`").delete({"id": 1}).order("id").limit(1)
        self.assertEqual(sql.to_s(), "DELETE FROM `authors` WHERE `id`=? ORDER BY id LIMIT 1")

        sql = QueryBuilder(self.conn, "`authors`").update({"name": "x"}).order("id").limit(2)
        self.assertEqual(sql.to_s(), "UPDATE `authors` SET `name`=? ORDER BY id LIMIT 2")

    def test_empty_insert(self):
        self.assertEqual(QueryBuilder(self.conn, "`authors`").insert({}).to_s(), "INSERT INTO `authors`() VALUES()")

    def test_create_column(self):
        c = self.conn.create_column({
            "Field": "id", "Type": "int(11)", "Null": "NO", "Key": "PRI", "Default": None, "Extra": "auto_increment",
        })
        self.assertEqual((c.name, c.raw_type, c.length, c.type), ("id", "int", 11, Column.INTEGER))
        self.assertTrue(c.pk)
        self.assertTrue(c.auto_increment)
        self.assertFalse(c.nullable)

    def test_create_decimal_column(self):
        c = self.conn.create_column({
            "Field": "Price", "Type": "decimal(10,2)", "Null": "YES", "Key": "", "Default": "0.00", "Extra": "",
        })
        self.assertEqual((c.inflected_name, c.length, c.type, c.default), ("price", 10, Column.DECIMAL, 0.0))
        self.assertTrue(c.nullable)

    def test_create_datetime_column(self):
        c = self.conn.create_column({
            "Field": "created_at", "Type": b"timestamp", "Null": "YES", "Key": "", "Default": None, "Extra": "",
        })
        self.assertEqual((c.type, c.length), (Column.DATETIME, 19))

    def test_connect_uses_default_port(self):
        with mock.patch("mysql.connector.connect") as connect:
            self.conn.connect()
        connect.assert_called_once_with(port=3306, database="test")
        self.assertTrue(connect.return_value.autocommit)

    def test_query_rewrites_markers(self):
        cursor = mock.Mock()
        self.conn.connection = mock.Mock(cursor=mock.Mock(return_value=cursor))
        self.conn.query("SELECT * FROM `authors` WHERE id=?", [1])
        cursor.execute.assert_called_once_with("SELECT * FROM `authors` WHERE id=%s", (1,))
        self.conn.connection.cursor.assert_called_once_with(buffered=True)


class TestMSSQLDialect(TestCase):
    def setUp(self):
        pytest.importorskip("pyodbc")
        from activerecord.core_services.MSSQLDatabase import MSSQLDatabase
        self.conn = MSSQLDatabase(connection_string="DSN=test")

    def test_quote_name(self):
        self.assertEqual(self.conn.quote_name("authors"), "[authors]")
        self.assertEqual(self.conn.quote_name("[authors]"), "[authors]")

    def test_limit_adds_order_when_missing(self):
        self.assertEqual(
            self.conn.limit("SELECT * FROM t", None, 5),
            "SELECT * FROM t ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY",
        )

    def test_limit_keeps_existing_order(self):
        self.assertEqual(
            self.conn.limit("SELECT * FROM t ORDER BY id", 10, None),
            "SELECT * FROM t ORDER BY id OFFSET 10 ROWS",
        )

    def test_create_column(self):
        c = self.conn.create_column({
            "name": "Id", "type": "INT", "nullable": "NO", "dflt": None, "length": None, "is_identity": 1, "pk": 1,
        })
        self.assertEqual((c.inflected_name, c.type), ("id", Column.INTEGER))
        self.assertTrue(c.pk)
        self.assertTrue(c.auto_increment)

    def test_create_column_default(self):
        c = self.conn.create_column({
            "name": "title", "type": "nvarchar", "nullable": "YES", "dflt": "('untitled')", "length": 50,
            "is_identity": 0, "pk": 0,
        })
        self.assertEqual((c.default, c.length, c.type), ("untitled", 50, Column.STRING))

    def test_insert_id_runs_its_own_query(self):
        with mock.patch.object(self.conn, "query_and_fetch_one", return_value=7) as fetch:
            self.assertEqual(self.conn.insert_id(), 7)
        fetch.assert_called_once_with("SELECT @@IDENTITY")
