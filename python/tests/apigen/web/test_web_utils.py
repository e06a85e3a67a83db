import os, sys, pdb
import unittest as test

from apigen.web import utils

class TestUtils(test.TestCase):

    def test_is_content_type(self):
        self.assertTrue(utils.is_content_type("text/json"))
        self.assertTrue(utils.is_content_type("*/*"))
        self.assertFalse(utils.is_content_type("json"))

    def test_match_accept(self):
        self.assertEqual(utils.match_accept("text/json", "text/json"), "text/json")
        self.assertEqual(utils.match_accept("text/json", "text/*"), "text/json")
        self.assertEqual(utils.match_accept("text/*", "text/json"), "text/json")
        self.assertIsNone(utils.match_accept("text/json", "application/json"))
        self.assertIsNone(utils.match_accept("text/*", "application/json"))

    def test_acceptable(self):
        self.assertEqual(utils.acceptable("text/json", []), "text/json")
        self.assertEqual(utils.acceptable("text/json", ["application/json", "text/*"]),
                         "text/json")
        self.assertEqual(utils.acceptable("*/*", ["application/json", "text/*"]),
                         "application/json")
        self.assertIsNone(utils.acceptable("text/html", ["application/json", "text/json"]))

    def test_order_accepts(self):
        self.assertEqual(utils.order_accepts("text/html"), ["text/html"])
        self.assertEqual(
            utils.order_accepts('text/html, */*;q=0.8, application/xhtml+xml, application/xml;q=0.9'),
            "text/html application/xhtml+xml application/xml */*".split())
        self.assertEqual(utils.order_accepts(["text/html;q=0.5", "application/json"]),
                         ["application/json", "text/html"])
        self.assertEqual(utils.order_accepts("text/html;q=0, application/json"),
                         ["application/json"])
        self.assertEqual(utils.order_accepts(""), [])


if __name__ == '__main__':
    test.main()
