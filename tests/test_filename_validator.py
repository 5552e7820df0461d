"""Test cases for filename validation."""
import unittest

from mkcert_web.exceptions import InvalidFilename
from mkcert_web.security import FilenameValidator


class TestFilenameValidator(unittest.TestCase):

    def setUp(self):
        self.validator = FilenameValidator()

    def test_ordinary_names_are_returned_unchanged(self):
        for name in ("example.com.pem", "example.com-key.pem", "_wildcard.dev.pem", "CONSOLE.pem", ".hidden"):
            with self.subTest(name=name):
                self.assertEqual(self.validator.validate(name), name)

    def test_reserved_device_names_are_rejected(self):
        for name in ("CON.pem", "con", "PRN.txt", "aux", "NUL.pem", "COM1", "lpt9.pem"):
            with self.subTest(name=name):
                with self.assertRaises(InvalidFilename):
                    self.validator.validate(name)

    def test_separators_and_special_characters_are_rejected(self):
        for name in ("a/b.pem", "a\\b.pem", 'a"b', "a|b", "a*b", "a?b", "a<b", "a>b"):
            with self.subTest(name=name):
                with self.assertRaises(InvalidFilename):
                    self.validator.validate(name)

    def test_dot_names_are_rejected(self):
        for name in (".", "..", "a...b", "cert.", "cert.pem..", "cert.pem "):
            with self.subTest(name=name):
                with self.assertRaises(InvalidFilename):
                    self.validator.validate(name)

    def test_null_byte_is_rejected(self):
        with self.assertRaises(InvalidFilename):
            self.validator.validate("a\0b.pem")

    def test_length_limit(self):
        self.assertEqual(len(self.validator.validate("x" * 255)), 255)
        with self.assertRaises(InvalidFilename):
            self.validator.validate("x" * 256)

    def test_empty_and_non_string_names_are_rejected(self):
        for name in ("", None, 3):
            with self.subTest(name=name):
                with self.assertRaises(InvalidFilename):
                    self.validator.validate(name)


if __name__ == "__main__":
    unittest.main()
