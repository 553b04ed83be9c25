import datetime as dt
from typing import Any, Dict, List, Optional

import pytest

from settings import Settings

NOW = dt.datetime(2024, 6, 1, 12, 0, tzinfo=dt.timezone.utc)


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else repr(payload)

    def json(self) -> Any:
        return self._payload


def repo_json(name: str, *, fork: bool = False, days_ago: int = 0, **extra: Any) -> Dict[str, Any]:
    updated = NOW - dt.timedelta(days=days_ago)
    obj = {
        "name": name,
        "html_url": f"https://github.com/ann/{name}",
        "description": f"{name} description",
        "language": "Python",
        "stargazers_count": 3,
        "forks_count": 1,
        "homepage": None,
        "updated_at": updated.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "fork": fork,
    }
    obj.update(extra)
    return obj


PROFILE_JSON = {
    "login": "ann",
    "name": "Ann",
    "avatar_url": "https://avatars.example/ann.png",
    "bio": None,
    "public_repos": 3,
    "followers": 10,
    "following": 2,
    "company": "Acme",
    "location": None,
    "blog": "ann.dev",
}


class FakeGitHub:
    """Stands in for requests.get against /users/<u> and /users/<u>/repos."""

    def __init__(self, profile: Dict[str, Any], repos: List[Dict[str, Any]], per_page: int):
        self.profile = profile
        self.repos = repos
        self.per_page = per_page
        self.calls: List[Dict[str, Any]] = []
        self.fail_status: Optional[int] = None

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        if self.fail_status is not None:
            return FakeResponse({"message": "boom"}, status_code=self.fail_status)
        if url.endswith("/repos"):
            page = params["page"]
            start = (page - 1) * self.per_page
            return FakeResponse(self.repos[start:start + self.per_page])
        return FakeResponse(self.profile)

    @property
    def repo_calls(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"].endswith("/repos")]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        username="ann",
        api_base="https://api.github.test",
        per_page=2,
        token_endpoint_url="https://backend.test/tokensignin",
        revoke_url="https://idp.test/revoke",
    )


@pytest.fixture
def fake_github(monkeypatch, settings) -> FakeGitHub:
    repos = [
        repo_json("fork-new", fork=True, days_ago=1),
        repo_json("old", days_ago=400),
        repo_json("new", days_ago=0),
    ]
    fake = FakeGitHub(dict(PROFILE_JSON), repos, settings.per_page)
    monkeypatch.setattr("showcase.requests.get", fake)
    return fake

