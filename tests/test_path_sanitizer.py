"""Test cases for path sanitization."""
import os
import unittest

from mkcert_web.exceptions import AccessDenied, InvalidPath
from mkcert_web.security import PathSanitizer

BASE = "/app/certificates"


class TestPathSanitizer(unittest.TestCase):

    def setUp(self):
        self.sanitizer = PathSanitizer()

    def test_nested_relative_path_resolves_under_base(self):
        result = self.sanitizer.sanitize("sub/dir", BASE)
        self.assertTrue(result.safe)
        self.assertEqual(result.relative, "sub/dir")
        self.assertEqual(result.resolved, os.path.join(BASE, "sub", "dir"))

    def test_simple_filename(self):
        result = self.sanitizer.sanitize("example.com.pem", BASE)
        self.assertEqual(result.sanitized, "example.com.pem")
        self.assertEqual(result.resolved, os.path.join(BASE, "example.com.pem"))

    def test_percent_encoded_names_are_decoded(self):
        result = self.sanitizer.sanitize("my%20cert.pem", BASE)
        self.assertEqual(result.relative, "my cert.pem")

    def test_traversal_is_rejected(self):
        for path in ("../../etc/passwd", "..", "a/..", "sub/../../x", "..\\windows", "a\\..\\b"):
            with self.subTest(path=path):
                with self.assertRaises((InvalidPath, AccessDenied)):
                    self.sanitizer.sanitize(path, BASE)

    def test_encoded_traversal_is_rejected(self):
        with self.assertRaises(InvalidPath):
            self.sanitizer.sanitize("%2e%2e%2fetc%2fpasswd", BASE)

    def test_absolute_and_home_paths_are_rejected(self):
        for path in ("/etc/passwd", "~/secrets", "C:\\Windows"):
            with self.subTest(path=path):
                with self.assertRaises(InvalidPath):
                    self.sanitizer.sanitize(path, BASE)

    def test_special_characters_are_rejected(self):
        for path in ('a"b', "a|b", "a*b", "a?b", "a<b", "a//b", "dir/"):
            with self.subTest(path=path):
                with self.assertRaises(InvalidPath):
                    self.sanitizer.sanitize(path, BASE)

    def test_malformed_encoding_is_rejected(self):
        for path in ("%E0%A4%A", "%ZZ", "100%", "%C3%28"):
            with self.subTest(path=path):
                with self.assertRaises(InvalidPath):
                    self.sanitizer.sanitize(path, BASE)

    def test_encoded_null_byte_is_rejected(self):
        with self.assertRaises(InvalidPath):
            self.sanitizer.sanitize("a%00b.pem", BASE)

    def test_raw_null_bytes_are_stripped(self):
        result = self.sanitizer.sanitize("a\0b.pem", BASE)
        self.assertEqual(result.relative, "ab.pem")

    def test_empty_and_non_string_paths_are_rejected(self):
        for path in ("", None, 7):
            with self.subTest(path=path):
                with self.assertRaises(InvalidPath):
                    self.sanitizer.sanitize(path, BASE)

    def test_dot_prefixed_escape_is_denied(self):
        # passes the pattern checks but its relative form starts with ".."
        with self.assertRaises(AccessDenied):
            self.sanitizer.sanitize("..foo", BASE)

    def test_access_denied_is_a_validation_error(self):
        self.assertTrue(issubclass(AccessDenied, ValueError))
        self.assertEqual(AccessDenied.status_code, 403)


if __name__ == "__main__":
    unittest.main()
