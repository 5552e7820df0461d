"""
Allowlist check for the shell command strings assembled by the console.

Only ``mkcert`` and ``openssl`` in a handful of fixed argument shapes, or a
plain ``ls *.pem`` listing, are accepted. This is a closed allowlist, not a
shell parser: a new command shape needs a new regex in ``rules.py``.
"""

import logging
from typing import Any, Optional

from .rules import DEFAULT_RULES, ValidationRules

logger = logging.getLogger(__name__)


class CommandValidator:
    """Validates command strings against the allowed and dangerous pattern tables."""

    def __init__(self, rules: ValidationRules = DEFAULT_RULES):
        self.rules = rules

    def is_safe(self, command: Any) -> bool:
        """
        Return True if ``command`` may be executed.

        The trimmed command must fully match at least one allowed pattern and
        must not match any dangerous pattern, unless it belongs to a shape that
        the dangerous pattern exempts (``cd "<dir>" && mkcert ...`` may contain
        ``&``; ``openssl x509|pkcs12|version`` may contain ``|``, backtick and
        ``$``). Every rejection is logged at WARNING level.
        """
        return self.rejection_reason(command) is None

    def rejection_reason(self, command: Any) -> Optional[str]:
        """Return why ``command`` is rejected, or None when it is allowed."""
        if not isinstance(command, str) or not command.strip():
            logger.warning("Blocked empty or non-string command: %r", command)
            return "empty command"

        trimmed = command.strip()

        if not any(p.regex.fullmatch(trimmed) for p in self.rules.allowed_commands):
            logger.warning("Blocked potentially unsafe command: %s", trimmed)
            return "command does not match any allowed pattern"

        shapes = self.rules.shapes_of(trimmed)
        for pattern in self.rules.dangerous_commands:
            if shapes & pattern.exempt_shapes:
                continue
            if pattern.regex.search(trimmed):
                logger.warning("Blocked command with dangerous pattern (%s): %s", pattern.description, trimmed)
                return pattern.description

        return None
