import os, sys, pdb, json
import unittest as test
from collections import OrderedDict

from apigen.base.config import ConfigurationException
from apigen.base.agent import Agent
from apigen.api import models

FIELDS = [
    models.Field("name", "str", required=True, queryable=True),
    models.Field("age", "int", queryable=True),
    models.Field("score", "float"),
    models.Field("active", "bool", default=True, queryable=True),
    models.Field("tags", "list", default=[]),
    models.Field("created", "str", writable=False)
]

class TestInMemoryRecordStore(test.TestCase):

    def setUp(self):
        self.store = models.InMemoryRecordStore()

    def test_next_id(self):
        self.assertEqual(self.store.next_id("users"), 1)
        self.assertEqual(self.store.next_id("users"), 2)
        self.assertEqual(self.store.next_id("groups"), 1)

        store = models.InMemoryRecordStore({"users": {4: {"id": 4}, 7: {"id": 7}}})
        self.assertEqual(store.next_id("users"), 8)

    def test_upsert_get_delete(self):
        self.assertIsNone(self.store.get("users", 1))
        self.assertFalse(self.store.exists("users", 1))
        self.assertTrue(self.store.upsert("users", {"id": 1, "name": "Bob"}))
        self.assertTrue(self.store.exists("users", 1))
        self.assertFalse(self.store.upsert("users", {"id": 1, "name": "Robert"}))
        self.assertEqual(self.store.get("users", 1), {"id": 1, "name": "Robert"})

        # returned data is a copy
        rec = self.store.get("users", 1)
        rec['name'] = "Gurn"
        self.assertEqual(self.store.get("users", 1)['name'], "Robert")

        self.assertTrue(self.store.delete("users", 1))
        self.assertFalse(self.store.delete("users", 1))
        self.assertIsNone(self.store.get("users", 1))

        with self.assertRaises(models.StoreException):
            self.store.upsert("users", {"name": "Bob"})

    def test_select(self):
        self.store.upsert("users", {"id": 1, "name": "Bob", "age": 30})
        self.store.upsert("users", {"id": 2, "name": "Alice", "age": 25})
        self.store.upsert("users", {"id": 3, "name": "Carol", "age": 30})
        self.assertEqual(len(list(self.store.select("users"))), 3)
        self.assertEqual([r['name'] for r in self.store.select("users", age=30)], ["Bob", "Carol"])
        self.assertEqual(list(self.store.select("users", age=31)), [])
        self.assertEqual(list(self.store.select("groups")), [])

class TestField(test.TestCase):

    def test_ctor(self):
        fld = models.Field("name")
        self.assertEqual(fld.name, "name")
        self.assertEqual(fld.type, "any")
        self.assertFalse(fld.required)
        self.assertTrue(fld.writable)
        self.assertFalse(fld.queryable)

        with self.assertRaises(ConfigurationException):
            models.Field("name", "string")

    def test_sortable(self):
        self.assertTrue(models.Field("name", "str").sortable)
        self.assertTrue(models.Field("on", "bool").sortable)
        self.assertFalse(models.Field("tags", "list").sortable)
        self.assertFalse(models.Field("extras", "dict").sortable)
        self.assertFalse(models.Field("tag").sortable)

    def test_from_config(self):
        fld = models.Field.from_config({"name": "age", "type": "int", "queryable": True})
        self.assertEqual(fld, models.Field("age", "int", False, None, True, True))
        with self.assertRaises(ConfigurationException):
            models.Field.from_config({"type": "int"})

    def test_accepts(self):
        fld = models.Field("age", "int")
        self.assertTrue(fld.accepts(3))
        self.assertTrue(fld.accepts(None))
        self.assertFalse(fld.accepts("3"))
        self.assertFalse(fld.accepts(True))
        self.assertFalse(models.Field("age", "int", required=True).accepts(None))
        self.assertTrue(models.Field("score", "float").accepts(3))
        self.assertTrue(models.Field("tags", "list").accepts(["a"]))
        self.assertTrue(models.Field("md", "dict").accepts({"a": 1}))
        self.assertTrue(models.Field("x").accepts([1, "a"]))

    def test_coerce(self):
        self.assertEqual(models.Field("age", "int").coerce("3"), 3)
        self.assertEqual(models.Field("score", "float").coerce("3.5"), 3.5)
        self.assertIs(models.Field("on", "bool").coerce("true"), True)
        self.assertIs(models.Field("on", "bool").coerce("0"), False)
        self.assertEqual(models.Field("name", "str").coerce("3"), "3")
        with self.assertRaises(ValueError):
            models.Field("age", "int").coerce("old")
        with self.assertRaises(ValueError):
            models.Field("on", "bool").coerce("maybe")
        with self.assertRaises(ValueError):
            models.Field("tags", "list").coerce("a")

class TestRecordModel(test.TestCase):

    def setUp(self):
        self.store = models.InMemoryRecordStore()
        self.factory = models.RecordModelFactory(self.store, "people", FIELDS, "person", "people",
                                                 "owner")

    def test_blank(self):
        ent = self.factory()
        self.assertEqual(ent.entity_name, "person")
        self.assertEqual(ent.plural_name, "people")
        self.assertIsNone(ent.id)
        self.assertIsNone(ent.owner)
        self.assertEqual(ent.get_messages(), [])
        self.assertEqual(ent.to_dict(), {"id": None, "name": None, "age": None, "score": None,
                                         "active": True, "tags": [], "created": None,
                                         "owner": None})
        self.assertEqual(ent.queryable_fields(), ["name", "age", "active", "owner"])
        self.assertEqual(ent.sortable_fields(),
                         ["id", "name", "age", "score", "active", "created", "owner"])

    def test_default_plural(self):
        ent = models.RecordModel(self.store, "users", FIELDS, "user")
        self.assertEqual(ent.plural_name, "users")

    def test_assign(self):
        ent = self.factory()
        self.assertTrue(ent.assign({"name": "Bob", "age": 30, "created": "today", "id": 5,
                                    "goober": "gurn"}))
        self.assertEqual(ent['name'], "Bob")
        self.assertIsNone(ent['created'])
        self.assertIsNone(ent.id)
        self.assertNotIn("goober", ent.to_dict())
        self.assertFalse(ent.assign({"name": "Bob"}))
        self.assertFalse(ent.assign({}))

    def test_save_and_find(self):
        ent = self.factory()
        ent.assign({"name": "Bob", "age": 30})
        ent.claim(Agent("test", Agent.USER, "bob"))
        self.assertTrue(ent.save(True))
        self.assertEqual(ent.id, 1)
        self.assertEqual(ent.owner, "bob")

        found = self.factory().find_first(1)
        self.assertEqual(found.to_dict()['name'], "Bob")
        self.assertEqual(found.owner, "bob")
        self.assertIsNotNone(self.factory().find_first("1"))
        self.assertIsNone(self.factory().find_first(2))
        self.assertIsNone(self.factory().find_first("bob"))
        self.assertEqual(self.factory().find_first("1.0").id, 1)
        self.assertEqual(self.factory().find_first("1e0").id, 1)
        self.assertIsNone(self.factory().find_first("1.5"))
        self.assertIsNone(self.factory().find_first("1e400"))

        found.assign({"age": 31})
        self.assertTrue(found.save(False))
        self.assertEqual(self.store.get("people", 1)['age'], 31)

    def test_claim_keeps_owner(self):
        ent = self.factory()
        ent.claim(Agent("test", Agent.USER, "bob"))
        ent.claim(Agent("test", Agent.USER, "alice"))
        self.assertEqual(ent.owner, "bob")

        ent = models.RecordModel(self.store, "users", FIELDS, "user")
        ent.claim(Agent("test", Agent.USER, "bob"))
        self.assertIsNone(ent.owner)

    def test_save_invalid(self):
        ent = self.factory()
        ent.assign({"age": "old", "tags": "a"})
        self.assertFalse(ent.save(True))
        self.assertEqual(ent.get_messages(),
                         ["name is required", "age must be of type int", "tags must be of type list"])
        self.assertIsNone(ent.id)
        self.assertEqual(list(self.store.select("people")), [])

        # messages are reset on each attempt
        ent.assign({"name": "Bob", "age": 3, "tags": []})
        self.assertTrue(ent.save(True))
        self.assertEqual(ent.get_messages(), [])

    def test_update_missing(self):
        ent = self.factory()
        ent.assign({"name": "Bob"})
        self.assertFalse(ent.save(False))
        self.assertEqual(ent.get_messages(), ["person does not exist"])

    def test_delete(self):
        ent = self.factory()
        self.assertFalse(ent.delete())
        self.assertEqual(ent.get_messages(), ["person does not exist"])

        ent.assign({"name": "Bob"})
        ent.save(True)
        self.assertTrue(ent.delete())
        self.assertIsNone(self.factory().find_first(ent.id))

    def test_to_dict_fields(self):
        ent = self.factory()
        ent.assign({"name": "Bob", "age": 30})
        self.assertEqual(list(ent.to_dict(["age", "name", "goober"]).keys()), ["name", "age"])
        self.assertEqual(ent.to_dict([]), {})

    def test_select(self):
        for name, age in [("Bob", 30), ("Alice", None), ("Carol", 25), ("Dave", 30)]:
            ent = self.factory()
            ent.assign({"name": name, "age": age})
            ent.save(True)

        ents, total = self.factory().select()
        self.assertEqual(total, 4)
        self.assertEqual([e['name'] for e in ents], ["Bob", "Alice", "Carol", "Dave"])

        ents, total = self.factory().select({"age": 30})
        self.assertEqual(total, 2)
        self.assertEqual([e['name'] for e in ents], ["Bob", "Dave"])

        ents, total = self.factory().select(sort="age")
        self.assertEqual([e['name'] for e in ents], ["Carol", "Bob", "Dave", "Alice"])
        ents, total = self.factory().select(sort="-name", offset=1, limit=2)
        self.assertEqual(total, 4)
        self.assertEqual([e['name'] for e in ents], ["Carol", "Bob"])

    def test_coerce_value(self):
        ent = self.factory()
        self.assertEqual(ent.coerce_value("age", "30"), 30)
        self.assertEqual(ent.coerce_value("owner", "bob"), "bob")
        with self.assertRaises(ValueError):
            ent.coerce_value("age", "thirty")

    def test_factory_from_config(self):
        fact = models.RecordModelFactory.from_config(self.store, "users", {
            "fields": [{"name": "name", "required": True}, {"name": "age", "type": "int"}]
        })
        ent = fact()
        self.assertEqual(ent.entity_name, "users")
        self.assertEqual(ent.plural_name, "userss")
        self.assertEqual(list(ent.to_dict().keys()), ["id", "name", "age"])

        fact = models.RecordModelFactory.from_config(self.store, "users",
                                                     {"entity_name": "user", "fields": []})
        self.assertEqual(fact().plural_name, "users")

        with self.assertRaises(ConfigurationException):
            models.RecordModelFactory.from_config(self.store, "users",
                                                  {"fields": [{"name": "x", "type": "blob"}]})


if __name__ == '__main__':
    test.main()
