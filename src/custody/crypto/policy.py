# -*- coding: utf-8 -*-
"""
Passphrase policy: a replaceable business-rule layer on top of the passphrase gate.

The default institutional rule set requires a fixed prefix, a minimum total
length (prefix included) and at least one non-alphanumeric character.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable

from custody.exceptions import ValidationError

DEFAULT_PREFIX: Final[str] = "CA"
DEFAULT_MIN_LENGTH: Final[int] = 8
_SYMBOL_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9]")


@runtime_checkable
class PassphrasePolicy(Protocol):
    """Contract for passphrase rules applied before key material is touched."""

    def check(self, passphrase: object) -> None:
        """Raise ValidationError if passphrase violates the policy."""
        ...


@dataclass(frozen=True)
class InstitutionalPassphrasePolicy:
    """
    Prefix + length + symbol rule.

    Examples:
        >>> InstitutionalPassphrasePolicy().check("CA-Secret!1")
        >>> InstitutionalPassphrasePolicy().check("secret")
        Traceback (most recent call last):
        ...
        custody.exceptions.ValidationError: Passphrase must start with 'CA'
    """

    prefix: str = DEFAULT_PREFIX
    min_length: int = DEFAULT_MIN_LENGTH
    require_symbol: bool = True

    def __post_init__(self) -> None:
        if self.min_length < len(self.prefix):
            raise ValueError("min_length must cover the prefix")

    def check(self, passphrase: object) -> None:
        if not isinstance(passphrase, str) or passphrase == "":
            raise ValidationError("Passphrase is required")
        if self.prefix and not passphrase.startswith(self.prefix):
            raise ValidationError(f"Passphrase must start with '{self.prefix}'")
        if len(passphrase) < self.min_length:
            raise ValidationError(
                f"Passphrase must be at least {self.min_length} characters including '{self.prefix}'"
            )
        if self.require_symbol and not _SYMBOL_RE.search(passphrase):
            raise ValidationError("Passphrase must contain at least one symbol")


class PermissivePassphrasePolicy:
    """Accepts any non-empty string. For deployments that enforce rules elsewhere."""

    __slots__ = ()

    def check(self, passphrase: object) -> None:
        if not isinstance(passphrase, str) or passphrase == "":
            raise ValidationError("Passphrase is required")


__all__ = [
    "PassphrasePolicy",
    "InstitutionalPassphrasePolicy",
    "PermissivePassphrasePolicy",
]
