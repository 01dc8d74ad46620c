"""
Main-project access token verification.

The gateway does not validate token signatures itself. Every request is
introspected against the main project's auth service, which is the only
authority on whether a session is still valid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

USER_INFO_PATH = "/auth/v1/user"
ROLE_METADATA_KEYS = ("user_metadata", "app_metadata")
ROLE_HINT_KEYS = ("role_id", "roleId")


@dataclass(frozen=True)
class CallerIdentity:
    id: str
    email: str
    role_hint: Optional[int] = None


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Optional[CallerIdentity]:
        ...


def _parse_role_value(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def extract_role_hint(user: dict) -> Optional[int]:
    """
    Find a numeric role hint in the user's metadata.

    ``user_metadata`` wins over ``app_metadata`` and ``role_id`` over
    ``roleId``; the first value that parses as an integer is returned.
    """
    for metadata_key in ROLE_METADATA_KEYS:
        metadata = user.get(metadata_key)
        if not isinstance(metadata, dict):
            continue
        for key in ROLE_HINT_KEYS:
            if key not in metadata:
                continue
            parsed = _parse_role_value(metadata[key])
            if parsed is not None:
                return parsed
    return None


@dataclass
class MainProjectTokenVerifier:
    """Introspects tokens with a single GET to the main project's user endpoint."""

    base_url: str
    anon_key: str
    timeout: Optional[float] = None

    def verify(self, token: str) -> Optional[CallerIdentity]:
        if not token:
            return None
        if not self.base_url or not self.anon_key:
            logger.error("Main project URL or anon key not configured")
            return None

        url = f"{self.base_url.rstrip('/')}{USER_INFO_PATH}"
        try:
            response = requests.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.anon_key,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Main project token introspection failed: %s", exc)
            return None

        if not response.ok:
            logger.warning(
                "Main project rejected access token: %s %s",
                response.status_code,
                response.text[:200],
            )
            return None

        try:
            user = response.json()
        except ValueError:
            logger.error("Main project returned a non-JSON user payload")
            return None
        if not isinstance(user, dict) or not user.get("id"):
            logger.error("Main project user payload has no id")
            return None

        return CallerIdentity(
            id=str(user["id"]),
            email=str(user.get("email") or ""),
            role_hint=extract_role_hint(user),
        )


@dataclass
class StaticTokenVerifier:
    """Test double resolving tokens from a fixed mapping."""

    identities: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)

    def verify(self, token: str) -> Optional[CallerIdentity]:
        if not token:
            return None
        self.calls.append(token)
        return self.identities.get(token)
