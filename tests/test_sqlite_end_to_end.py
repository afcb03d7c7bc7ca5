from datetime import date
from unittest import TestCase

from recordmapper.core_services.Sqlite3Database import Sqlite3Database
from recordmapper.database.ActiveRecord import ActiveRecord
from recordmapper.database.Events import RecordHooks
from recordmapper.database.Schema import Schema
from recordmapper.database.exceptions import MisuseError, RecordNotFound, StaleRecordError


class Counting(RecordHooks):
    def __init__(self):
        super().__init__()
        self.counts = {}

    def after_insert(self, record):
        self.counts["after_insert"] = self.counts.get("after_insert", 0) + 1

    def after_delete(self, record):
        self.counts["after_delete"] = self.counts.get("after_delete", 0) + 1


class TestSqliteLifecycle(TestCase):
    def setUp(self):
        self.db = Sqlite3Database(":memory:")
        self.db.executescript(
            "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, email TEXT, born TEXT);"
        )
        self.hooks = Counting()
        self.users = Schema("users", hooks=self.hooks)

    def tearDown(self):
        self.db.close()

    def new_user(self, **attributes):
        return self.users.new_record(self.db, **attributes)

    def rows(self):
        return self.db.query("SELECT * FROM users ORDER BY id")

    def test_insert_into_empty_table(self):
        user = self.new_user().set("name", "Bobby Tables")
        user.insert()

        self.assertEqual(user.get("id"), 1)
        self.assertFalse(user.is_dirty())
        self.assertFalse(user.is_new())
        self.assertEqual(self.hooks.counts, {"after_insert": 1})
        self.assertEqual(self.rows(), [{"id": 1, "name": "Bobby Tables", "email": None, "born": None}])

    def test_inserting_the_same_instance_twice(self):
        user = self.new_user(name="bobby").insert()
        user.set("name", "joe").insert()

        self.assertEqual(user.get("id"), 2)
        self.assertEqual([row["name"] for row in self.rows()], ["bobby", "joe"])

    def test_find_update_and_refresh(self):
        self.new_user(name="bobby", email="b@example.com").insert()

        user = ActiveRecord(self.db, schema=self.users).find(1)
        user.set("email", "tables@example.com").update()
        self.assertEqual(self.rows()[0]["email"], "tables@example.com")

        self.db.execute("UPDATE users SET name = ? WHERE id = ?", ("robert", 1))
        user.refresh()
        self.assertEqual(user.get("name"), "robert")
        self.assertFalse(user.is_dirty())

    def test_find_miss(self):
        record = ActiveRecord(self.db, schema=self.users)
        self.assertIsNone(record.find(42))
        with self.assertRaises(RecordNotFound):
            record.find_or_fail(42)

    def test_find_all_with_modifiers(self):
        for name in ("carol", "alice", "bob", "dave"):
            self.new_user(name=name).insert()

        record = ActiveRecord(self.db, schema=self.users)
        names = record.like("name", "%a%").order_by("name").find_all().pluck("name")
        self.assertEqual(names, ["alice", "carol", "dave"])

        page = record.order_by("id DESC").limit(1, 2).find_all()
        self.assertEqual(page.pluck("name"), ["bob", "alice"])

        self.assertEqual(record.in_("name", ["bob", "dave"]).count(), 2)
        self.assertEqual(record.count(), 4)

    def test_save_and_dates(self):
        user = self.new_user(name="bobby", born=date(2001, 9, 9).isoformat()).save()
        user.set("name", "robert").save()
        self.assertEqual(self.rows(), [{"id": 1, "name": "robert", "email": None, "born": "2001-09-09"}])

    def test_delete(self):
        user = self.new_user(name="bobby").insert()
        self.assertEqual(user.delete(), 1)
        self.assertEqual(self.rows(), [])
        self.assertEqual(self.hooks.counts["after_delete"], 1)
        with self.assertRaises(StaleRecordError):
            user.delete()

    def test_update_without_where_is_never_issued_for_new_records(self):
        with self.assertRaises(MisuseError):
            self.new_user(name="bobby").update()
        self.assertEqual(self.rows(), [])


class TestKeyScopedWrites(TestCase):
    def setUp(self):
        self.db = Sqlite3Database(":memory:")
        self.db.executescript("""
            CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, status TEXT);
            INSERT INTO users (name, status) VALUES ('a', 'x'), ('b', 'y'), ('c', 'x');
        """)
        self.users = Schema("users")

    def tearDown(self):
        self.db.close()

    def record(self):
        return ActiveRecord(self.db, schema=self.users)

    def test_delete_with_or_chain_removes_only_this_row(self):
        self.record().find(3).eq("status", "x").eq("status", "y", boolean="or").delete()
        self.assertEqual([row["id"] for row in self.db.query("SELECT id FROM users ORDER BY id")], [1, 2])

    def test_update_with_raw_or_leaves_other_rows(self):
        self.record().find(3).set("name", "zz").where("status = 'x' OR status = 'y'").update()
        self.assertEqual([row["name"] for row in self.db.query("SELECT name FROM users ORDER BY id")], ["a", "b", "zz"])

    def test_find_by_key_with_or_chain(self):
        found = self.record().eq("status", "nope").eq("status", "x", boolean="or").find(3)
        self.assertEqual(found.get("id"), 3)
