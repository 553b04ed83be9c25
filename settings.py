"""
Runtime configuration, read from environment variables.

  GITHUB_USERNAME          whose profile and repositories are showcased
  GITHUB_TOKEN             optional; raises the REST rate limit
  GITHUB_API_BASE          REST host (default https://api.github.com)
  GITHUB_API_VERSION       X-GitHub-Api-Version header
  REPOS_PER_PAGE           page size for the repo listing, clamped to 1..100
  REQUEST_TIMEOUT_SECONDS  empty means requests never time out
  TOKEN_ENDPOINT_URL       backend that receives the identity token
  IDENTITY_REVOKE_URL      identity provider revoke endpoint
  LOG_LEVEL                logging level name
  PORT                     port for `python app.py`
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_USERNAME = "devtanc"
DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

# Max allowed by the GitHub REST API
REPOS_PER_PAGE = 100


def _page_size(raw: Optional[str]) -> int:
    """Clamp to 1..REPOS_PER_PAGE; GitHub silently caps larger page sizes."""
    return max(1, min(REPOS_PER_PAGE, int(raw or REPOS_PER_PAGE)))


def _optional_float(raw: Optional[str]) -> Optional[float]:
    raw = (raw or "").strip()
    if not raw:
        return None
    return float(raw)


@dataclass(frozen=True)
class Settings:
    username: str = DEFAULT_USERNAME
    api_base: str = DEFAULT_API_BASE
    token: str = ""
    api_version: str = DEFAULT_API_VERSION
    per_page: int = REPOS_PER_PAGE
    timeout: Optional[float] = None
    token_endpoint_url: str = ""
    revoke_url: str = DEFAULT_REVOKE_URL
    log_level: str = "INFO"
    port: int = 5000

    def __post_init__(self) -> None:
        if not 1 <= self.per_page <= REPOS_PER_PAGE:
            raise ValueError(f"per_page must be between 1 and {REPOS_PER_PAGE}, got {self.per_page}")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            username=os.getenv("GITHUB_USERNAME", DEFAULT_USERNAME).strip(),
            api_base=os.getenv("GITHUB_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            token=os.getenv("GITHUB_TOKEN", "").strip(),
            api_version=os.getenv("GITHUB_API_VERSION", DEFAULT_API_VERSION),
            per_page=_page_size(os.getenv("REPOS_PER_PAGE")),
            timeout=_optional_float(os.getenv("REQUEST_TIMEOUT_SECONDS")),
            token_endpoint_url=os.getenv("TOKEN_ENDPOINT_URL", "").strip(),
            revoke_url=os.getenv("IDENTITY_REVOKE_URL", DEFAULT_REVOKE_URL).strip(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "5000")),
        )
