"""
Bridge between an external sign-in widget and a backend token endpoint.

The widget's callback hands over a basic profile and an ID token; the bridge
holds both in memory only, can forward the token as a form-encoded POST, and
revokes the provider session on sign-out.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from settings import Settings

logger = logging.getLogger(__name__)


class IdentityError(RuntimeError):
    pass


class IdentityState(str, enum.Enum):
    SIGNED_OUT = "signed-out"
    SIGNED_IN = "signed-in"
    TOKEN_SUBMITTED = "token-submitted"


@dataclass(frozen=True)
class IdentityProfile:
    id: str
    name: Optional[str]
    image_url: Optional[str]
    email: Optional[str]

    @classmethod
    def from_callback(cls, obj: Dict[str, Any]) -> "IdentityProfile":
        return cls(
            id=str(obj["id"]),
            name=obj.get("name"),
            image_url=obj.get("image_url"),
            email=obj.get("email"),
        )


class IdentityBridge:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.state = IdentityState.SIGNED_OUT
        self.profile: Optional[IdentityProfile] = None
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def signed_in(self) -> bool:
        return self.state is not IdentityState.SIGNED_OUT

    def _require_token(self) -> str:
        if self._token is None:
            raise IdentityError("Not signed in.")
        return self._token

    def sign_in(self, profile: IdentityProfile, token: str) -> IdentityState:
        if not token:
            raise IdentityError("Sign-in callback did not include an ID token.")
        with self._lock:
            self.profile = profile
            self._token = token
            self.state = IdentityState.SIGNED_IN
        logger.info(f"ID: {profile.id}")
        logger.info(f"Name: {profile.name}")
        logger.info(f"Image URL: {profile.image_url}")
        logger.info(f"Email: {profile.email}")
        logger.info(f"ID Token: {token}")
        return self.state

    def sign_out(self) -> IdentityState:
        with self._lock:
            token = self._require_token()
            self.profile = None
            self._token = None
            self.state = IdentityState.SIGNED_OUT

        if self.settings.revoke_url:
            # Provider response carries no payload we use
            try:
                requests.post(self.settings.revoke_url, data={"token": token}, timeout=self.settings.timeout)
            except requests.RequestException as e:
                logger.warning(f"Revoke request failed: {e}")
        logger.info("User signed out.")
        return self.state

    def submit_token(self) -> Optional[str]:
        """
        POST the held token as `idtoken=<token>` to the configured endpoint and
        return the raw response body. Transport failures are logged and
        yield None; non-2xx bodies are returned as-is.
        """
        with self._lock:
            token = self._require_token()
            if not self.settings.token_endpoint_url:
                raise IdentityError("TOKEN_ENDPOINT_URL is not configured.")
            self.state = IdentityState.TOKEN_SUBMITTED

        try:
            resp = requests.post(
                self.settings.token_endpoint_url,
                data={"idtoken": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Token submission failed: {e}")
            return None

        logger.info(f"Signed in as: {resp.text}")
        return resp.text
