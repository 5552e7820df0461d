"""
Static validation tables shared by the command, path and filename validators.

``DEFAULT_RULES`` is built once at import time and handed to each validator
by reference; nothing mutates it afterwards.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Pattern, Tuple


# Named command shapes that are exempt from some dangerous patterns
CD_MKCERT = "cd_mkcert"
OPENSSL = "openssl"


@dataclass(frozen=True)
class AllowedPattern:
    """A command shape that a candidate command must fully match."""
    regex: Pattern
    description: str


@dataclass(frozen=True)
class DangerousPattern:
    """A pattern that forces rejection unless the command is in an exempt shape."""
    regex: Pattern
    description: str
    exempt_shapes: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ValidationRules:
    allowed_commands: Tuple[AllowedPattern, ...]
    dangerous_commands: Tuple[DangerousPattern, ...]
    command_shapes: Tuple[Tuple[str, Pattern], ...]
    path_rejections: Tuple[Pattern, ...]
    filename_rejections: Tuple[Pattern, ...]
    reserved_filename: Pattern
    max_filename_length: int = 255
    malformed_escape: Pattern = field(default=re.compile(r"%(?![0-9A-Fa-f]{2})"))

    def shapes_of(self, command: str) -> FrozenSet[str]:
        """Return the names of the exception shapes ``command`` belongs to."""
        return frozenset(name for name, rx in self.command_shapes if rx.match(command))


def _rx(pattern: str, flags: int = 0) -> Pattern:
    return re.compile(pattern, re.ASCII | flags)


_DOMAINS = r"[\w.\-\s*]+"
_QUOTED = r'"[^"]+"'

ALLOWED_COMMANDS = (
    AllowedPattern(_rx(r"mkcert\s+(-CAROOT|--help|-help|-install|-uninstall)"),
                   "mkcert CA management"),
    AllowedPattern(_rx(rf"mkcert\s+{_DOMAINS}"),
                   "mkcert certificate for domains"),
    AllowedPattern(_rx(rf"mkcert\s+-cert-file\s+{_QUOTED}\s+-key-file\s+{_QUOTED}\s+{_DOMAINS}"),
                   "mkcert certificate with explicit file names"),
    AllowedPattern(_rx(rf"cd\s+{_QUOTED}\s+&&\s+mkcert\s+-cert-file\s+{_QUOTED}\s+-key-file\s+{_QUOTED}\s+{_DOMAINS}"),
                   "mkcert certificate inside a dated folder"),
    AllowedPattern(_rx(r'ls\s+(-la\s+)?\*\.pem(\s+2>/dev/null(\s+\|\|\s+echo\s+"[^"]+")?)?'),
                   "list pem files"),
    AllowedPattern(_rx(r"openssl\s+version"),
                   "openssl version"),
    AllowedPattern(_rx(rf"openssl\s+x509\s+-in\s+{_QUOTED}\s+-noout\s+[^|;&`$(){{}}\[\]<>]+"),
                   "openssl certificate inspection"),
    AllowedPattern(_rx(rf"openssl\s+pkcs12\s+-export\s+-out\s+{_QUOTED}\s+-inkey\s+{_QUOTED}\s+-in\s+{_QUOTED}\s+"
                       rf"(-certfile\s+{_QUOTED}\s+)?-passout\s+(pass:[^;|&`$]*|file:{_QUOTED})(\s+-legacy)?"),
                   "openssl pkcs12 export"),
)

DANGEROUS_COMMANDS = (
    DangerousPattern(_rx(r"[;&|`$(){}\[\]<>]"), "shell metacharacter",
                     frozenset({CD_MKCERT, OPENSSL})),
    DangerousPattern(_rx(r"\.\./"), "directory traversal"),
    DangerousPattern(_rx(r"/etc/|/bin/|/usr/bin/|/sbin/"), "system directory",
                     frozenset({OPENSSL})),
    DangerousPattern(_rx(r"rm\s+|del\s+|format\s+", re.IGNORECASE), "deletion command",
                     frozenset({OPENSSL})),
    DangerousPattern(_rx(r">\s*/|>>\s*/"), "redirection to absolute path",
                     frozenset({OPENSSL})),
    DangerousPattern(_rx(r"sudo|su\s", re.IGNORECASE), "privilege escalation",
                     frozenset({OPENSSL})),
)

COMMAND_SHAPES = (
    (CD_MKCERT, _rx(rf"cd\s+{_QUOTED}\s+&&\s+mkcert")),
    (OPENSSL, _rx(r"openssl\s+(x509|pkcs12|version)")),
)

PATH_REJECTIONS = (
    _rx(r"\.\./"),          # traversal
    _rx(r"\.\.\\"),
    _rx(r"\.\.$"),          # ends with ..
    _rx(r"/\.\."),
    _rx(r"\\\.\."),
    _rx(r"^~/"),            # home directory
    _rx(r"^/[^/]"),         # absolute posix path
    _rx(r"^[A-Za-z]:\\"),   # absolute windows path
    _rx(r"\x00"),
    _rx(r'[<>"|*?]'),
    _rx(r"//"),
    _rx(r"\\\\"),
    _rx(r"[/\\]$"),         # trailing separator
)

FILENAME_REJECTIONS = (
    _rx(r"\.\.\."),
    _rx(r"^\.\.?$"),
    _rx(r'[<>"|*?\\/]'),
    _rx(r"\x00"),
    _rx(r"\s+$"),
    _rx(r"\.+$"),
)

RESERVED_FILENAME = _rx(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE)

DEFAULT_RULES = ValidationRules(
    allowed_commands=ALLOWED_COMMANDS,
    dangerous_commands=DANGEROUS_COMMANDS,
    command_shapes=COMMAND_SHAPES,
    path_rejections=PATH_REJECTIONS,
    filename_rejections=FILENAME_REJECTIONS,
    reserved_filename=RESERVED_FILENAME,
)
