"""Filename validation for names supplied by clients."""

import logging
from typing import Any

from ..exceptions import InvalidFilename
from .rules import DEFAULT_RULES, ValidationRules

logger = logging.getLogger(__name__)


class FilenameValidator:

    def __init__(self, rules: ValidationRules = DEFAULT_RULES):
        self.rules = rules

    def validate(self, name: Any) -> str:
        """Return ``name`` unchanged if it is a safe single filename, else raise InvalidFilename."""
        if not isinstance(name, str) or not name:
            raise InvalidFilename("Invalid filename: must be a non-empty string")

        if self.rules.reserved_filename.search(name):
            logger.warning("Rejected reserved device filename: %r", name)
            raise InvalidFilename(f"Invalid filename: reserved name '{name}'")

        for pattern in self.rules.filename_rejections:
            if pattern.search(name):
                logger.warning("Rejected filename with unsafe pattern: %r", name)
                raise InvalidFilename(f"Invalid filename: contains unsafe pattern '{name}'")

        if len(name) > self.rules.max_filename_length:
            raise InvalidFilename("Invalid filename: too long")

        return name
