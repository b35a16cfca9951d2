from unittest import TestCase

from fixtures import MemoryDatabase

from activerecord.database.Exceptions import ActiveRecordException
from activerecord.database.QueryBuilder import QueryBuilder


class TestQueryBuilder(TestCase):
    def setUp(self):
        self.conn = MemoryDatabase()

    def builder(self, table="authors"):
        return QueryBuilder(self.conn, table)

    def test_requires_connection(self):
        with self.assertRaises(ActiveRecordException):
            QueryBuilder(None, "authors")

    def test_no_conditions(self):
        self.assertEqual(self.builder().to_s(), "SELECT * FROM authors")

    def test_select(self):
        self.assertEqual(self.builder().select("id,name").to_s(), "SELECT id,name FROM authors")

    def test_where_with_values(self):
        sql = self.builder().where("id=? AND name IN(?)", 1, ["Tito", "Mexican"])
        self.assertEqual(sql.to_s(), "SELECT * FROM authors WHERE id=? AND name IN(?,?)")
        self.assertEqual(sql.get_where_values(), [1, "Tito", "Mexican"])

    def test_where_with_hash(self):
        sql = self.builder().where({"id": 1, "name": "Tito"})
        self.assertEqual(sql.to_s(), 'SELECT * FROM authors WHERE "id"=? AND "name"=?')
        self.assertEqual(sql.get_where_values(), [1, "Tito"])

    def test_where_with_hash_and_list(self):
        sql = self.builder().where({"id": 1, "name": ["Tito", "Mexican"]})
        self.assertEqual(sql.to_s(), 'SELECT * FROM authors WHERE "id"=? AND "name" IN(?,?)')
        self.assertEqual(sql.get_where_values(), [1, "Tito", "Mexican"])

    def test_where_hash_is_prefixed_with_table_when_joining(self):
        sql = self.builder().joins("INNER JOIN books ON(authors.id=books.author_id)").where({"id": 1})
        self.assertEqual(
            sql.to_s(),
            'SELECT * FROM authors INNER JOIN books ON(authors.id=books.author_id) WHERE "authors"."id"=?',
        )

    def test_where_with_empty_list(self):
        sql = self.builder().where("id IN(?)", [])
        self.assertEqual(sql.to_s(), "SELECT * FROM authors WHERE id IN(NULL)")

    def test_order(self):
        self.assertEqual(self.builder().order("name").to_s(), "SELECT * FROM authors ORDER BY name")

    def test_limit(self):
        self.assertEqual(self.builder().limit(10).to_s(), "SELECT * FROM authors LIMIT 10")

    def test_offset_without_limit(self):
        self.assertEqual(self.builder().offset(10).to_s(), "SELECT * FROM authors LIMIT 10,-1")

    def test_limit_and_offset(self):
        self.assertEqual(self.builder().limit(10).offset(5).to_s(), "SELECT * FROM authors LIMIT 5,10")

    def test_group_and_having(self):
        sql = self.builder().select("name, COUNT(*)").group("name").having("COUNT(*) > 1")
        self.assertEqual(sql.to_s(), "SELECT name, COUNT(*) FROM authors GROUP BY name HAVING COUNT(*) > 1")

    def test_all_clauses_in_order(self):
        sql = (self.builder().select("id").joins("INNER JOIN books ON(1=1)").where("id=?", 1)
               .group("id").having("id > 0").order("id").limit(2).offset(1))
        self.assertEqual(
            sql.to_s(),
            "SELECT id FROM authors INNER JOIN books ON(1=1) WHERE id=? GROUP BY id HAVING id > 0 "
            "ORDER BY id LIMIT 1,2",
        )

    def test_insert(self):
        sql = self.builder().insert({"id": 1, "name": "Tito"})
        self.assertEqual(sql.to_s(), 'INSERT INTO authors("id","name") VALUES(?,?)')
        self.assertEqual(sql.bind_values(), [1, "Tito"])

    def test_insert_requires_hash(self):
        with self.assertRaises(ActiveRecordException):
            self.builder().insert(["Tito"])

    def test_insert_without_data(self):
        self.assertEqual(self.builder().insert({}).to_s(), "INSERT INTO authors DEFAULT VALUES")

    def test_update_with_hash(self):
        sql = self.builder().update({"id": 1, "name": "Tito"}).where("id=1 AND name IN(?)", ["Tito", "Mexican"])
        self.assertEqual(sql.to_s(), 'UPDATE authors SET "id"=?, "name"=? WHERE id=1 AND name IN(?,?)')
        self.assertEqual(sql.bind_values(), [1, "Tito", "Tito", "Mexican"])

    def test_update_with_string(self):
        sql = self.builder().update("name='Bob'").where("id=?", 1)
        self.assertEqual(sql.to_s(), "UPDATE authors SET name='Bob' WHERE id=?")
        self.assertEqual(sql.bind_values(), [1])

    def test_update_requires_hash_or_string(self):
        with self.assertRaises(ActiveRecordException):
            self.builder().update(1)

    def test_update_ignores_limit_and_order_on_sqlite(self):
        sql = self.builder().update({"name": "Tito"}).where("id=?", 1).order("name").limit(1)
        self.assertEqual(sql.to_s(), 'UPDATE authors SET "name"=? WHERE id=?')

    def test_delete(self):
        self.assertEqual(self.builder().delete().to_s(), "DELETE FROM authors")

    def test_delete_with_conditions(self):
        sql = self.builder().delete("id=? or name in(?)", 1, ["Tito", "Mexican"])
        self.assertEqual(sql.to_s(), "DELETE FROM authors WHERE id=? or name in(?,?)")
        self.assertEqual(sql.bind_values(), [1, "Tito", "Mexican"])

    def test_delete_with_hash(self):
        sql = self.builder().delete({"id": 1, "name": ["Tito", "Mexican"]})
        self.assertEqual(sql.to_s(), 'DELETE FROM authors WHERE "id"=? AND "name" IN(?,?)')

    def test_get_returns_sql_and_values(self):
        sql, values = self.builder().where("id=?", 1).get()
        self.assertEqual(sql, "SELECT * FROM authors WHERE id=?")
        self.assertEqual(values, [1])

    def test_reverse_order(self):
        self.assertEqual(QueryBuilder.reverse_order("id ASC, name DESC"), "id DESC, name ASC")
        self.assertEqual(QueryBuilder.reverse_order("id ASC,name DESC"), "id DESC,name ASC")
        self.assertEqual(QueryBuilder.reverse_order("id"), "id DESC")
        self.assertEqual(QueryBuilder.reverse_order("id, name"), "id DESC, name DESC")
        self.assertEqual(QueryBuilder.reverse_order("id asc"), "id DESC")
        self.assertEqual(QueryBuilder.reverse_order(""), "")
        self.assertEqual(QueryBuilder.reverse_order("  "), "  ")
        self.assertIsNone(QueryBuilder.reverse_order(None))

    def test_create_conditions_from_underscored_string(self):
        conditions = QueryBuilder.create_conditions_from_underscored_string(
            self.conn, "id_and_my_name_or_z", [1, "Tito", "X"]
        )
        self.assertEqual(conditions, ['"id"=? AND "my_name"=? OR "z"=?', 1, "Tito", "X"])

    def test_create_conditions_with_missing_and_none_values(self):
        conditions = QueryBuilder.create_conditions_from_underscored_string(self.conn, "id_and_name_and_z", [1, None])
        self.assertEqual(conditions, ['"id"=? AND "name" IS NULL AND "z" IS NULL', 1])

    def test_create_conditions_with_list_value(self):
        conditions = QueryBuilder.create_conditions_from_underscored_string(self.conn, "id", [[1, 2]])
        self.assertEqual(conditions, ['"id" IN(?)', [1, 2]])

    def test_create_conditions_with_mapping(self):
        conditions = QueryBuilder.create_conditions_from_underscored_string(
            self.conn, "marquee_and_city", ["Warner", "DC"], {"marquee": "name"}
        )
        self.assertEqual(conditions, ['"name"=? AND "city"=?', "Warner", "DC"])

    def test_create_conditions_from_empty_string(self):
        self.assertIsNone(QueryBuilder.create_conditions_from_underscored_string(self.conn, ""))

    def test_create_hash_from_underscored_string(self):
        self.assertEqual(
            QueryBuilder.create_hash_from_underscored_string("id_and_my_name_or_z", [1, "Tito"]),
            {"id": 1, "my_name": "Tito", "z": None},
        )

    def test_create_hash_with_mapping(self):
        self.assertEqual(
            QueryBuilder.create_hash_from_underscored_string("marquee", ["Warner"], {"marquee": "name"}),
            {"name": "Warner"},
        )
