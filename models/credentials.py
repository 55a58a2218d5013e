"""Vendor credentials and the per-run platform configuration."""

import re
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, field_validator

from models.errors import ConfigurationError
from models.vendor import VendorType

Credential = dict[str, str]

PLACEHOLDER_PATTERNS = [
    re.compile(r"^YOUR_", re.IGNORECASE),
    re.compile(r"^X{3,}$", re.IGNORECASE),
    re.compile(r"^0{3,}$"),
]


class Mode(str, Enum):
    """Which credential set a call runs against."""

    TEST = "test"
    PRODUCTION = "production"

    @property
    def is_test(self) -> bool:
        return self == Mode.TEST


def is_placeholder(value: Any) -> bool:
    """
    Check whether a credential value is a sample placeholder.

    Args:
        value: Raw credential value

    Returns:
        True for blank values, ``YOUR_...``, all-X and all-zero strings
    """
    if value is None:
        return True
    text = str(value).strip()
    if not text:
        return True
    return any(pattern.match(text) for pattern in PLACEHOLDER_PATTERNS)


def normalize_credential(raw: Optional[dict]) -> Optional[Credential]:
    """Return the credential as strings, or None if every value is a placeholder."""
    if not raw:
        return None
    cleaned = {key: "" if value is None else str(value).strip() for key, value in raw.items()}
    if all(is_placeholder(value) for value in cleaned.values()):
        return None
    return cleaned


def require_fields(
    credential: Optional[Credential], fields: Iterable[str], vendor: str
) -> Credential:
    """
    Fail fast when a required credential field is missing or a placeholder.

    Raises:
        ConfigurationError: On the first bad field
    """
    if credential is None:
        raise ConfigurationError(f"{vendor} credentials are not configured")
    for field in fields:
        if is_placeholder(credential.get(field)):
            raise ConfigurationError(
                f"{vendor} credential '{field}' is missing or a placeholder"
            )
    return credential


class PlatformConfig(BaseModel):
    """Selected vendor plus its test and production credential sets."""

    provider: VendorType
    test: Optional[Credential] = None
    production: Optional[Credential] = None

    @field_validator("provider", mode="before")
    @classmethod
    def parse_provider(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("test", "production", mode="before")
    @classmethod
    def drop_placeholders(cls, v):
        return normalize_credential(v)

    def credential_for(self, mode: Mode) -> Optional[Credential]:
        """Credential set for ``mode``, or None when absent."""
        return self.test if Mode(mode) == Mode.TEST else self.production

    def has_credentials(self, mode: Mode) -> bool:
        return self.credential_for(mode) is not None
