# -*- coding: utf-8 -*-
"""
RU: Конфигурация ядра: мастер-ключ из окружения, параметры PBKDF2 и правила парольной фразы.
EN: Custody core configuration: master key from the environment, PBKDF2 cost and
passphrase rules.

The master key is carried as base64 text and decoded lazily by load_master_key(),
so a misconfigured process fails on first use with ConfigurationError instead of
at import time. It never appears in repr() or in logs.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Final, Mapping, Optional

from custody.crypto import codec
from custody.crypto.envelope import KEY_LEN
from custody.crypto.gate import DEFAULT_ITERATIONS, MIN_ITERATIONS
from custody.exceptions import ConfigurationError, DecodeError

_LOGGER: Final = logging.getLogger(__name__)

ENV_MASTER_KEY: Final[str] = "MASTER_KEY_B64"
ENV_PBKDF2_ITERATIONS: Final[str] = "CUSTODY_PBKDF2_ITERATIONS"
ENV_PASSPHRASE_PREFIX: Final[str] = "CUSTODY_PASSPHRASE_PREFIX"
ENV_PASSPHRASE_MIN_LENGTH: Final[str] = "CUSTODY_PASSPHRASE_MIN_LENGTH"
ENV_STORE_PATH: Final[str] = "CUSTODY_STORE_PATH"


@dataclass(frozen=True)
class CustodyConfig:
    """
    Runtime configuration.

    Attributes:
        master_key_b64: Base64 of the 32-byte AES-GCM master key (None if unset).
        pbkdf2_iterations: Iterations for new passphrase hashes (>= 100_000).
        passphrase_prefix: Required passphrase prefix ("" disables the rule).
        passphrase_min_length: Minimum passphrase length, prefix included.
        passphrase_require_symbol: Require at least one non-alphanumeric character.
        store_path: JSON file store location; None selects the in-memory store.

    Examples:
        >>> cfg = CustodyConfig(pbkdf2_iterations=200_000)
        >>> cfg.passphrase_prefix
        'CA'
    """

    master_key_b64: Optional[str] = field(default=None, repr=False)
    pbkdf2_iterations: int = DEFAULT_ITERATIONS
    passphrase_prefix: str = "CA"
    passphrase_min_length: int = 8
    passphrase_require_symbol: bool = True
    store_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate parameters."""
        if not isinstance(self.pbkdf2_iterations, int) or self.pbkdf2_iterations < MIN_ITERATIONS:
            raise ValueError(f"pbkdf2_iterations must be >= {MIN_ITERATIONS}")
        if not isinstance(self.passphrase_prefix, str):
            raise ValueError("passphrase_prefix must be a string")
        if self.passphrase_min_length < len(self.passphrase_prefix):
            raise ValueError("passphrase_min_length must cover the prefix")
        if self.store_path is not None and not self.store_path:
            raise ValueError("store_path must be non-empty when set")

    @property
    def has_master_key(self) -> bool:
        return bool(self.master_key_b64)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CustodyConfig:
        """Build from a load_config()-style dictionary; unknown keys are ignored."""
        kwargs = {}
        for name in (
            "master_key_b64",
            "pbkdf2_iterations",
            "passphrase_prefix",
            "passphrase_min_length",
            "passphrase_require_symbol",
            "store_path",
        ):
            if data.get(name) is not None:
                kwargs[name] = data[name]
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> CustodyConfig:
        """
        Build from environment variables layered over defaults.

        Raises:
            ValueError: if a numeric variable is not an integer or a value fails validation.
        """
        env = os.environ if environ is None else environ
        data = dict(defaults or {})

        if env.get(ENV_MASTER_KEY):
            data["master_key_b64"] = env[ENV_MASTER_KEY].strip()
        if env.get(ENV_PBKDF2_ITERATIONS):
            data["pbkdf2_iterations"] = _int_env(env, ENV_PBKDF2_ITERATIONS)
        if ENV_PASSPHRASE_PREFIX in env:
            data["passphrase_prefix"] = env[ENV_PASSPHRASE_PREFIX]
        if env.get(ENV_PASSPHRASE_MIN_LENGTH):
            data["passphrase_min_length"] = _int_env(env, ENV_PASSPHRASE_MIN_LENGTH)
        if env.get(ENV_STORE_PATH):
            data["store_path"] = env[ENV_STORE_PATH]
        return cls.from_mapping(data)


def _int_env(env: Mapping[str, str], name: str) -> int:
    try:
        return int(env[name])
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def load_master_key(config: CustodyConfig) -> bytes:
    """
    Decode and check the configured master key.

    Raises:
        ConfigurationError: if the key is missing, not base64, or not 32 bytes.
    """
    if not config.master_key_b64:
        _LOGGER.error("Master key is not configured (%s)", ENV_MASTER_KEY)
        raise ConfigurationError("Master key is not configured")
    try:
        key = codec.decode(config.master_key_b64)
    except DecodeError as exc:
        _LOGGER.error("Master key is not valid base64")
        raise ConfigurationError("Master key is malformed") from exc
    if len(key) != KEY_LEN:
        _LOGGER.error("Master key has wrong length")
        raise ConfigurationError("Master key must be exactly 32 bytes")
    return key


__all__ = [
    "CustodyConfig",
    "load_master_key",
    "ENV_MASTER_KEY",
    "ENV_PBKDF2_ITERATIONS",
    "ENV_PASSPHRASE_PREFIX",
    "ENV_PASSPHRASE_MIN_LENGTH",
    "ENV_STORE_PATH",
]
