"""
Credential verification.

The stores depend only on the CredentialPolicy interface
(hash_credential / verify / check_strength); BcryptCredentialPolicy is the
production implementation.
"""

from __future__ import annotations

import string
from typing import List, Protocol

import bcrypt

from ..core.config import CredentialSettings
from ..utils.exceptions import InvalidCredentialError


class CredentialPolicy(Protocol):
    def hash_credential(self, raw: str) -> str: ...

    def verify(self, raw: str, opaque: str) -> bool: ...

    def check_strength(self, raw: str) -> None: ...


def _character_classes(raw: str) -> int:
    classes = [
        any(c.islower() for c in raw),
        any(c.isupper() for c in raw),
        any(c.isdigit() for c in raw),
        any(c in string.punctuation or c.isspace() for c in raw),
    ]
    return sum(classes)


class BcryptCredentialPolicy:
    """bcrypt hashing plus length and character-class rules."""

    def __init__(self, settings: CredentialSettings | None = None):
        self.settings = settings or CredentialSettings()

    def violations(self, raw: str) -> List[str]:
        s = self.settings
        problems = []
        if len(raw) < s.min_length:
            problems.append(f"must be at least {s.min_length} characters")
        if len(raw.encode("utf-8")) > s.max_bytes:
            problems.append(f"must be at most {s.max_bytes} bytes")
        if _character_classes(raw) < s.min_character_classes:
            problems.append(
                f"must mix at least {s.min_character_classes} of: lowercase, uppercase, digits, symbols"
            )
        return problems

    def check_strength(self, raw: str) -> None:
        problems = self.violations(raw)
        if problems:
            raise InvalidCredentialError("Credential does not meet policy", problems)

    def hash_credential(self, raw: str) -> str:
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        return bcrypt.hashpw(raw.encode("utf-8"), salt).decode("utf-8")

    def verify(self, raw: str, opaque: str) -> bool:
        try:
            return bcrypt.checkpw(raw.encode("utf-8"), opaque.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or an over-long candidate.
            return False
