"""Test cases for the command allowlist."""
import unittest

from mkcert_web.security import CommandValidator


class TestCommandValidator(unittest.TestCase):
    """Allowed shapes pass, everything else is blocked."""

    def setUp(self):
        self.validator = CommandValidator()

    def test_ca_management_commands_are_allowed(self):
        for command in ("mkcert -CAROOT", "mkcert -install", "mkcert -uninstall", "mkcert --help"):
            with self.subTest(command=command):
                self.assertTrue(self.validator.is_safe(command))

    def test_plain_domain_generation_is_allowed(self):
        self.assertTrue(self.validator.is_safe("mkcert example.com localhost 127.0.0.1"))
        self.assertTrue(self.validator.is_safe("mkcert *.example.com"))

    def test_dated_folder_generation_is_allowed(self):
        command = 'cd "/tmp/certs/2024-01-01" && mkcert -cert-file "x.pem" -key-file "x-key.pem" example.com'
        self.assertTrue(self.validator.is_safe(command))

    def test_explicit_file_names_are_allowed(self):
        command = 'mkcert -cert-file "site.pem" -key-file "site-key.pem" site.local www.site.local'
        self.assertTrue(self.validator.is_safe(command))

    def test_listing_is_allowed(self):
        self.assertTrue(self.validator.is_safe("ls -la *.pem"))
        self.assertTrue(self.validator.is_safe("ls *.pem"))

    def test_openssl_inspection_is_allowed(self):
        self.assertTrue(self.validator.is_safe("openssl version"))
        self.assertTrue(self.validator.is_safe('openssl x509 -in "/home/dev/certs/a.pem" -noout -enddate'))
        self.assertTrue(self.validator.is_safe(
            'openssl x509 -in "/home/dev/.local/share/mkcert/rootCA.pem" -noout -subject -issuer -dates -fingerprint -sha256'
        ))

    def test_openssl_may_read_from_system_directories(self):
        self.assertTrue(self.validator.is_safe('openssl x509 -in "/etc/ssl/certs/ca.pem" -noout -text'))

    def test_pkcs12_export_is_allowed(self):
        command = ('openssl pkcs12 -export -out "/tmp/x/a.pfx" -inkey "/c/a-key.pem" -in "/c/a.pem" '
                   '-certfile "/ca/rootCA.pem" -passout pass:secret -legacy')
        self.assertTrue(self.validator.is_safe(command))

    def test_surrounding_whitespace_is_ignored(self):
        self.assertTrue(self.validator.is_safe("   mkcert -CAROOT  "))

    def test_command_chaining_is_blocked(self):
        self.assertFalse(self.validator.is_safe("mkcert example.com; rm -rf /"))
        self.assertFalse(self.validator.is_safe("mkcert example.com && cat /etc/passwd"))
        self.assertFalse(self.validator.is_safe("mkcert example.com | sh"))

    def test_substitution_is_blocked(self):
        self.assertFalse(self.validator.is_safe("mkcert $(whoami).com"))
        self.assertFalse(self.validator.is_safe("mkcert `id`.com"))

    def test_grouping_and_redirection_are_blocked(self):
        for command in (
            "mkcert {a,b}.com",
            "mkcert a}.com",
            "mkcert [a].com",
            "mkcert a].com",
            "mkcert a.com < in.txt",
            "mkcert a.com > out.txt",
        ):
            with self.subTest(command=command):
                self.assertFalse(self.validator.is_safe(command))

    def test_cd_shape_does_not_allow_other_programs(self):
        self.assertFalse(self.validator.is_safe('cd "/tmp" && rm -rf /'))
        self.assertFalse(self.validator.is_safe('cd "../.." && mkcert -cert-file "a.pem" -key-file "a-key.pem" a.com'))

    def test_unknown_programs_are_blocked(self):
        for command in ("rm -rf /", "cat /etc/passwd", "curl http://evil", "sudo mkcert -install", "bash"):
            with self.subTest(command=command):
                self.assertFalse(self.validator.is_safe(command))

    def test_privilege_escalation_inside_domains_is_blocked(self):
        self.assertFalse(self.validator.is_safe("mkcert sudo example.com"))

    def test_empty_and_non_string_commands_are_blocked(self):
        for command in ("", "   ", None, 42, ["mkcert", "-install"]):
            with self.subTest(command=command):
                self.assertFalse(self.validator.is_safe(command))

    def test_rejection_reason_names_the_rule(self):
        self.assertEqual(self.validator.rejection_reason("rm -rf /"), "command does not match any allowed pattern")
        self.assertEqual(self.validator.rejection_reason(""), "empty command")
        self.assertIsNone(self.validator.rejection_reason("mkcert -CAROOT"))

    def test_rejections_are_logged(self):
        with self.assertLogs("mkcert_web.security.commands", level="WARNING") as logs:
            self.validator.is_safe("rm -rf /")
        self.assertIn("rm -rf /", logs.output[0])


if __name__ == "__main__":
    unittest.main()
