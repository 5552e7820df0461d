"""
Input validation layer: command allowlisting, path confinement and filename checks.
"""
from .rules import DEFAULT_RULES, ValidationRules, AllowedPattern, DangerousPattern
from .commands import CommandValidator
from .paths import PathSanitizer, SanitizedPath
from .filenames import FilenameValidator

__all__ = [
    "DEFAULT_RULES",
    "ValidationRules",
    "AllowedPattern",
    "DangerousPattern",
    "CommandValidator",
    "PathSanitizer",
    "SanitizedPath",
    "FilenameValidator",
]
