import os, sys, pdb, time, logging, tempfile
import unittest as test

import jwt

from apigen.base.agent import Agent
from apigen.base.config import ConfigurationException
from apigen.web.rest.base import Request
from apigen.api import login
from apigen.api.errors import TransportError

tmpdir = tempfile.TemporaryDirectory(prefix="_test_login.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_login.log"))
    loghdlr.setLevel(logging.DEBUG)
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

SECRET = "XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"

def make_request(auth=None, query=""):
    env = {'REQUEST_METHOD': "GET", 'PATH_INFO': '/users', 'QUERY_STRING': query}
    if auth:
        env['HTTP_AUTHORIZATION'] = auth
    return Request(env)

class TestAnonymousLogin(test.TestCase):

    def test_validate(self):
        who = login.AnonymousLogin("users").validate_login(make_request("Bearer goober"))
        self.assertTrue(who.anonymous)
        self.assertEqual(who.vehicle, "users")
        self.assertEqual(who.agent_class, Agent.PUBLIC)

class TestAuthKeyLogin(test.TestCase):

    def setUp(self):
        self.cfg = {
            "authorized": [
                { "auth_key": "SECRET1", "user": "bob", "client": "portal" },
                { "auth_key": "SECRET2" }
            ]
        }
        self.login = login.AuthKeyLogin("users", self.cfg, rootlog)

    def test_ctor(self):
        with self.assertRaises(ConfigurationException):
            login.AuthKeyLogin("users", {})
        with self.assertRaises(ConfigurationException):
            login.AuthKeyLogin("users", {"authorized": ["SECRET"]})

    def test_get_token(self):
        self.assertEqual(self.login.get_token(make_request("Bearer SECRET1")), "SECRET1")
        self.assertEqual(self.login.get_token(make_request(query="token=SECRET2")), "SECRET2")
        self.assertIsNone(self.login.get_token(make_request("Basic SECRET1")))
        self.assertIsNone(self.login.get_token(make_request()))

        lgn = login.AuthKeyLogin("users", dict(self.cfg, token_param=None))
        self.assertIsNone(lgn.get_token(make_request(query="token=SECRET2")))

    def test_validate(self):
        who = self.login.validate_login(make_request("Bearer SECRET1"))
        self.assertEqual(who.actor, "bob")
        self.assertEqual(who.agent_class, "portal")
        self.assertEqual(who.actor_type, Agent.AUTO)

        who = self.login.validate_login(make_request(query="token=SECRET2"))
        self.assertEqual(who.actor, "authorized")

        who = self.login.validate_login(make_request())
        self.assertTrue(who.anonymous)

        with self.assertRaises(TransportError) as cm:
            self.login.validate_login(make_request("Bearer GOOBER"))
        self.assertEqual(cm.exception.code, 401)
        self.assertEqual(cm.exception.message, "Unrecognized authentication token")

    def test_lenient(self):
        lgn = login.AuthKeyLogin("users", dict(self.cfg, raise_on_invalid=False))
        who = lgn.validate_login(make_request("Bearer GOOBER"))
        self.assertTrue(who.anonymous)
        self.assertEqual(who.agent_class, Agent.INVALID)

    def test_strict(self):
        lgn = login.AuthKeyLogin("users", dict(self.cfg, raise_on_anonymous=True))
        with self.assertRaises(TransportError) as cm:
            lgn.validate_login(make_request())
        self.assertEqual(cm.exception.code, 401)
        self.assertEqual(lgn.validate_login(make_request("Bearer SECRET1")).actor, "bob")

class TestJWTLogin(test.TestCase):

    def setUp(self):
        self.login = login.JWTLogin("users", {"key": SECRET}, rootlog)

    def make_token(self, claims, key=SECRET):
        return jwt.encode(claims, key, algorithm="HS256")

    def test_ctor(self):
        with self.assertRaises(ConfigurationException):
            login.JWTLogin("users", {})

    def test_validate(self):
        token = self.make_token({"sub": "bob", "exp": int(time.time()) + 600,
                                 "userEmail": "bob@example.com", "groups": ["staff"]})
        who = self.login.validate_login(make_request("Bearer " + token))
        self.assertEqual(who.actor, "bob")
        self.assertEqual(who.actor_type, Agent.USER)
        self.assertEqual(who.vehicle, "users")
        self.assertEqual(who.get_prop("userEmail"), "bob@example.com")
        self.assertTrue(who.is_in_group("staff"))

        who = self.login.validate_login(make_request(query="token=" + token))
        self.assertEqual(who.actor, "bob")

    def test_expired(self):
        token = self.make_token({"sub": "bob", "exp": int(time.time()) - 600})
        with self.assertRaises(TransportError) as cm:
            self.login.validate_login(make_request("Bearer " + token))
        self.assertEqual(cm.exception.code, 401)
        self.assertEqual(cm.exception.message, "Invalid authentication token")

    def test_bad_signature(self):
        token = self.make_token({"sub": "bob", "exp": int(time.time()) + 600},
                                "YYYYYYYYYYYYYYYYYYYYYYYYYYYYYYYY")
        with self.assertRaises(TransportError):
            self.login.validate_login(make_request("Bearer " + token))
        with self.assertRaises(TransportError):
            self.login.validate_login(make_request("Bearer goober"))

    def test_expiration_required(self):
        token = self.make_token({"sub": "bob"})
        with self.assertRaises(TransportError) as cm:
            self.login.validate_login(make_request("Bearer " + token))
        self.assertEqual(cm.exception.message, "Non-expiring authentication token rejected")

        lgn = login.JWTLogin("users", {"key": SECRET, "require_expiration": False})
        self.assertEqual(lgn.validate_login(make_request("Bearer " + token)).actor, "bob")

    def test_colliding_claims(self):
        token = self.make_token({"sub": "bob", "exp": int(time.time()) + 600,
                                 "vehicle": "elsewhere", "actortype": "auto", "actorid": "root",
                                 "agclass": "admin", "userName": "Bob"})
        who = self.login.validate_login(make_request("Bearer " + token))
        self.assertEqual(who.actor, "bob")
        self.assertEqual(who.vehicle, "users")
        self.assertEqual(who.actor_type, Agent.USER)
        self.assertEqual(who.agent_class, Agent.PUBLIC)
        self.assertIsNone(who.get_prop("vehicle"))
        self.assertIsNone(who.get_prop("agclass"))
        self.assertEqual(who.get_prop("userName"), "Bob")

    def test_anonymous(self):
        who = self.login.validate_login(make_request())
        self.assertTrue(who.anonymous)

class TestCreateLoginChecker(test.TestCase):

    def test_create(self):
        self.assertTrue(isinstance(login.create_login_checker("users", None), login.AnonymousLogin))
        self.assertTrue(isinstance(login.create_login_checker("users", {"type": "jwt", "key": SECRET}),
                                   login.JWTLogin))
        self.assertTrue(isinstance(login.create_login_checker("users",
                                                              {"type": "authkey", "authorized": []}),
                                   login.AuthKeyLogin))
        with self.assertRaises(ConfigurationException):
            login.create_login_checker("users", {"type": "oauth"})


if __name__ == '__main__':
    test.main()
