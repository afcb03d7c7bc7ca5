from unittest import TestCase, mock

from recordmapper.core_services.Sqlite3Database import Sqlite3Database
from recordmapper.database.ActiveRecord import ActiveRecord
from recordmapper.database.Relation import BELONGS_TO, HAS_MANY, RelationDescriptor, belongs_to, has_many, has_one
from recordmapper.database.Schema import Schema

SCHEMA_SQL = """
CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT);
CREATE TABLE contacts (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, email TEXT, kind TEXT);
CREATE TABLE profiles (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, bio TEXT);
"""


def build_schemas():
    users = Schema("users")
    contacts = Schema("contacts")
    profiles = Schema("profiles")
    users.relate("contacts", has_many(contacts, "user_id", back_reference="user"))
    users.relate("work_contacts", has_many(contacts, constraints={"eq": ("kind", "work"), "order_by": "id DESC"}))
    users.relate("profile", has_one(lambda: profiles, back_reference="user"))
    contacts.relate("user", belongs_to(users))
    return users, contacts, profiles


class RelationsTestCase(TestCase):
    def setUp(self):
        self.db = Sqlite3Database(":memory:")
        self.db.executescript(SCHEMA_SQL)
        self.db.executescript("""
            INSERT INTO users (name) VALUES ('Bobby'), ('Alice');
            INSERT INTO contacts (user_id, email, kind) VALUES
                (1, 'bobby@home.example', 'home'),
                (1, 'bobby@work.example', 'work'),
                (2, 'alice@work.example', 'work'),
                (1, 'tables@work.example', 'work');
            INSERT INTO profiles (user_id, bio) VALUES (2, 'Likes queries');
        """)
        self.users, self.contacts, self.profiles = build_schemas()

    def tearDown(self):
        self.db.close()

    def user(self, id_):
        return ActiveRecord(self.db, schema=self.users).find(id_)


class TestHasMany(RelationsTestCase):
    def test_loads_children_by_foreign_key(self):
        user = self.user(1)
        with mock.patch.object(self.db, "query", wraps=self.db.query) as query:
            contacts = user.get("contacts")
        query.assert_called_once_with('SELECT * FROM contacts WHERE "user_id" = ?', (1,))
        self.assertEqual(
            contacts.pluck("email"),
            ["bobby@home.example", "bobby@work.example", "tables@work.example"],
        )
        self.assertTrue(all(c.get("user_id") == 1 for c in contacts))

    def test_is_cached_after_first_access(self):
        user = self.user(1)
        with mock.patch.object(self.db, "query", wraps=self.db.query) as query:
            first = user.get("contacts")
            second = user["contacts"]
        self.assertIs(first, second)
        self.assertEqual(query.call_count, 1)

    def test_back_reference_needs_no_second_query(self):
        user = self.user(1)
        contacts = user.get("contacts")
        with mock.patch.object(self.db, "query", wraps=self.db.query) as query:
            owners = [contact.get("user") for contact in contacts]
        self.assertTrue(all(owner is user for owner in owners))
        query.assert_not_called()

    def test_constraints_apply_before_key_filter(self):
        user = self.user(1)
        user.get("work_contacts")
        self.assertEqual(
            user.get("work_contacts").pluck("email"),
            ["tables@work.example", "bobby@work.example"],
        )

    def test_callable_constraints(self):
        self.users.relate("first_contact", has_many(self.contacts, constraints=lambda q: q.order_by("id").limit(1)))
        self.assertEqual(self.user(1).get("first_contact").pluck("email"), ["bobby@home.example"])

    def test_or_constraints_stay_within_the_owner(self):
        self.users.relate("reachable", has_many(
            self.contacts,
            constraints=lambda q: q.eq("kind", "home").eq("kind", "work", boolean="or").order_by("id"),
        ))
        self.assertEqual(self.user(2).get("reachable").pluck("email"), ["alice@work.example"])

    def test_raw_where_constraints_stay_within_the_owner(self):
        self.users.relate("reachable", has_many(
            self.contacts, constraints={"where": "kind = 'home' OR kind = 'work'", "order_by": "id"},
        ))
        self.assertEqual(self.user(2).get("reachable").pluck("email"), ["alice@work.example"])

    def test_new_record_has_no_children_and_runs_no_query(self):
        user = ActiveRecord(self.db, schema=self.users, name="Nobody")
        with mock.patch.object(self.db, "query", wraps=self.db.query) as query:
            self.assertEqual(user.get("contacts"), [])
        query.assert_not_called()


class TestBelongsTo(RelationsTestCase):
    def test_loads_parent_by_local_key(self):
        contact = ActiveRecord(self.db, schema=self.contacts).find(3)
        owner = contact.get("user")
        self.assertEqual(owner.get("name"), "Alice")
        self.assertEqual(owner.get_table(), "users")

    def test_changing_the_key_drops_the_cached_parent(self):
        contact = ActiveRecord(self.db, schema=self.contacts).find(3)
        self.assertEqual(contact.get("user").get("name"), "Alice")
        contact.set("user_id", 1)
        self.assertEqual(contact.get("user").get("name"), "Bobby")

    def test_back_reference_returns_the_original_record(self):
        self.contacts.relate("owner", belongs_to(self.users, back_reference="contact"))
        contact = ActiveRecord(self.db, schema=self.contacts).find(2)
        with mock.patch.object(self.db, "query", wraps=self.db.query) as query:
            self.assertIs(contact.get("owner").get("contact"), contact)
        self.assertEqual(query.call_count, 1)

    def test_none_key_resolves_to_none(self):
        contact = ActiveRecord(self.db, schema=self.contacts, email="orphan@example")
        self.assertIsNone(contact.get("user"))


class TestHasOne(RelationsTestCase):
    def test_loads_single_child(self):
        profile = self.user(2).get("profile")
        self.assertEqual(profile.get("bio"), "Likes queries")

    def test_missing_child_is_none(self):
        self.assertIsNone(self.user(1).get("profile"))

    def test_to_dict_includes_loaded_relations(self):
        user = self.user(2)
        user.get("profile")
        data = user.to_dict()
        self.assertEqual(data["profile"]["bio"], "Likes queries")
        self.assertNotIn("contacts", data)


class TestDescriptor(TestCase):
    def test_key_guessing(self):
        users = Schema("users")
        user_contacts = Schema("user_contacts")
        owner = ActiveRecord(schema=users)
        self.assertEqual(has_many(user_contacts).key_for(owner), "user_id")
        contact = ActiveRecord(schema=user_contacts)
        self.assertEqual(belongs_to(users).key_for(contact), "user_id")
        self.assertEqual(has_many(users).key_for(contact), "user_contact_id")
        self.assertEqual(belongs_to(users, "owner_id").key_for(contact), "owner_id")

    def test_kind_helpers(self):
        self.assertEqual(has_many(Schema("a")).kind, HAS_MANY)
        self.assertTrue(has_many(Schema("a")).many)
        self.assertEqual(belongs_to(Schema("a")).kind, BELONGS_TO)
        self.assertFalse(has_one(Schema("a")).many)

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            RelationDescriptor("has_some", Schema("a"))

    def test_schema_from_model_name(self):
        self.assertEqual(Schema.from_name("UserContact").table, "user_contacts")
        self.assertEqual(Schema.from_name("User", primary_key="user_id").primary_key, "user_id")
