"""Path sanitization: confine a user-supplied relative path to a base directory.

The traversal check runs twice, once on the decoded string before anything
touches the filesystem layer and once on the final path relative to the base.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import unquote

from ..exceptions import AccessDenied, InvalidPath
from .rules import DEFAULT_RULES, ValidationRules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SanitizedPath:
    safe: bool
    sanitized: str
    resolved: str
    relative: str


class PathSanitizer:
    """Decodes, normalizes and confines user paths to a base directory."""

    def __init__(self, rules: ValidationRules = DEFAULT_RULES):
        self.rules = rules

    def decode(self, user_path: str) -> str:
        """Percent-decode ``user_path``; malformed escapes raise InvalidPath."""
        if self.rules.malformed_escape.search(user_path):
            raise InvalidPath("Invalid path: malformed URI encoding")
        try:
            return unquote(user_path, errors="strict")
        except UnicodeDecodeError as exc:
            raise InvalidPath("Invalid path: malformed URI encoding") from exc

    def sanitize(self, user_path: Any, base_dir: Union[str, os.PathLike]) -> SanitizedPath:
        """
        Validate ``user_path`` and resolve it under ``base_dir``.

        Raises:
            InvalidPath: empty input, malformed encoding or a rejected pattern.
            AccessDenied: the resolved path lies outside ``base_dir``.
        """
        if not isinstance(user_path, str) or not user_path:
            raise InvalidPath("Invalid path: path must be a non-empty string")

        clean = user_path.replace("\0", "")
        decoded = self.decode(clean)

        for pattern in self.rules.path_rejections:
            if pattern.search(decoded):
                logger.warning("Rejected path with unsafe pattern: %r", decoded)
                raise InvalidPath(f"Invalid path: contains unsafe pattern '{decoded}'")

        base = os.path.abspath(os.fspath(base_dir))
        normalized = os.path.normpath(decoded)
        resolved = os.path.abspath(os.path.join(base, normalized))
        relative = os.path.relpath(resolved, base)

        if relative.startswith("..") or os.path.isabs(relative):
            logger.warning("Rejected path outside %s: %r", base, decoded)
            raise AccessDenied(f"Access denied: path outside allowed directory '{decoded}'")

        return SanitizedPath(safe=True, sanitized=normalized, resolved=resolved, relative=relative)
