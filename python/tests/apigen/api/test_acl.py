import os, sys, pdb
import unittest as test

from apigen.base.agent import Agent
from apigen.base.config import ConfigurationException
from apigen.api import acl
from apigen.api.errors import AuthorizationError
from apigen.api.models import Field, InMemoryRecordStore, RecordModel

class TestOwnerAcl(test.TestCase):

    def setUp(self):
        self.ent = RecordModel(InMemoryRecordStore(), "users", [Field("name")], "user",
                               owner_field="owner", data={"id": 1, "name": "Bob", "owner": "bob"})
        self.acl = acl.OwnerAcl(["admin"], ["update"])
        self.bob = Agent("test", Agent.USER, "bob")
        self.alice = Agent("test", Agent.USER, "alice")
        self.anon = Agent("test", Agent.UNKN)

    def test_authorized(self):
        self.assertTrue(self.acl.authorized(self.ent, "delete", self.bob))
        self.assertFalse(self.acl.authorized(self.ent, "delete", self.alice))
        self.assertFalse(self.acl.authorized(self.ent, "delete", self.anon))
        self.assertFalse(self.acl.authorized(self.ent, "delete", None))
        self.assertTrue(self.acl.authorized(self.ent, "delete", Agent("test", Agent.USER, "admin")))

        self.assertTrue(self.acl.authorized(self.ent, "create", self.alice))
        self.assertFalse(self.acl.authorized(self.ent, "create", self.anon))

        # public operation
        self.assertTrue(self.acl.authorized(self.ent, "update", self.anon))

        invalid = Agent("test", Agent.UNKN, "bob", Agent.INVALID)
        self.assertFalse(self.acl.authorized(self.ent, "delete", invalid))

    def test_unowned(self):
        ent = RecordModel(InMemoryRecordStore(), "users", [Field("name")], "user",
                          data={"id": 1, "name": "Bob"})
        self.assertFalse(self.acl.authorized(ent, "delete", self.bob))

    def test_authorize(self):
        self.acl.authorize(self.ent, "delete", self.bob)
        self.assertEqual(self.ent.get_messages(), [])

        with self.assertRaises(AuthorizationError) as cm:
            self.acl.authorize(self.ent, "delete", self.alice)
        self.assertIs(cm.exception.get_entity(), self.ent)
        self.assertEqual(self.ent.get_messages(), ["alice is not authorized to delete this user"])

        with self.assertRaises(AuthorizationError):
            self.acl.authorize(self.ent, "delete", None)
        self.assertEqual(self.ent.get_messages()[-1],
                         "anonymous is not authorized to delete this user")

class TestCreateAcl(test.TestCase):

    def test_create_acl(self):
        self.assertTrue(isinstance(acl.create_acl(None), acl.PermissiveAcl))
        self.assertTrue(isinstance(acl.create_acl({"type": "permissive"}), acl.PermissiveAcl))
        owner = acl.create_acl({"type": "owner", "superusers": ["admin"]})
        self.assertTrue(isinstance(owner, acl.OwnerAcl))
        self.assertEqual(owner.superusers, {"admin"})
        self.assertEqual(owner.public_ops, set())
        with self.assertRaises(ConfigurationException):
            acl.create_acl({"type": "rbac"})

    def test_permissive(self):
        ent = RecordModel(InMemoryRecordStore(), "users", [Field("name")], "user")
        acl.PermissiveAcl().authorize(ent, "delete", None)
        self.assertTrue(acl.PermissiveAcl().authorized(ent, "anything"))


if __name__ == '__main__':
    test.main()
