import dataclasses
import logging

import pytest
import requests

from conftest import FakeResponse
from identity_bridge import IdentityBridge, IdentityError, IdentityProfile, IdentityState

PROFILE = IdentityProfile(id="42", name="Ann", image_url="https://img.example/a.png", email="ann@example.com")


class RecordingPost:
    def __init__(self, response=None, error=None):
        self.calls = []
        self.response = response if response is not None else FakeResponse(text="ok")
        self.error = error

    def __call__(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def post(monkeypatch):
    recorder = RecordingPost()
    monkeypatch.setattr("identity_bridge.requests.post", recorder)
    return recorder


def test_sign_in_holds_profile_and_logs_fields(settings, caplog):
    bridge = IdentityBridge(settings)
    with caplog.at_level(logging.INFO, logger="identity_bridge"):
        state = bridge.sign_in(PROFILE, "tok-123")

    assert state is IdentityState.SIGNED_IN
    assert bridge.profile == PROFILE
    assert bridge.signed_in
    assert "Email: ann@example.com" in caplog.text
    assert "ID Token: tok-123" in caplog.text


def test_sign_in_requires_token(settings):
    with pytest.raises(IdentityError):
        IdentityBridge(settings).sign_in(PROFILE, "")


def test_submit_token_posts_form_body(settings, post):
    post.response = FakeResponse(text="Signed in as ann")
    bridge = IdentityBridge(settings)
    bridge.sign_in(PROFILE, "tok-123")

    body = bridge.submit_token()

    assert body == "Signed in as ann"
    assert bridge.state is IdentityState.TOKEN_SUBMITTED
    (call,) = post.calls
    assert call["url"] == "https://backend.test/tokensignin"
    assert call["data"] == {"idtoken": "tok-123"}
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_submit_token_returns_error_bodies_verbatim(settings, post):
    post.response = FakeResponse(status_code=500, text="Internal Server Error")
    bridge = IdentityBridge(settings)
    bridge.sign_in(PROFILE, "tok")
    assert bridge.submit_token() == "Internal Server Error"


def test_submit_token_logs_transport_failure(settings, post, caplog):
    post.error = requests.ConnectionError("refused")
    bridge = IdentityBridge(settings)
    bridge.sign_in(PROFILE, "tok")

    with caplog.at_level(logging.WARNING, logger="identity_bridge"):
        assert bridge.submit_token() is None
    assert "refused" in caplog.text


def test_submit_token_requires_sign_in(settings, post):
    with pytest.raises(IdentityError):
        IdentityBridge(settings).submit_token()
    assert post.calls == []


def test_submit_token_requires_endpoint(settings, post):
    bridge = IdentityBridge(dataclasses.replace(settings, token_endpoint_url=""))
    bridge.sign_in(PROFILE, "tok")
    with pytest.raises(IdentityError):
        bridge.submit_token()
    assert bridge.state is IdentityState.SIGNED_IN


def test_sign_out_revokes_and_clears(settings, post):
    bridge = IdentityBridge(settings)
    bridge.sign_in(PROFILE, "tok")
    bridge.submit_token()

    assert bridge.sign_out() is IdentityState.SIGNED_OUT
    assert bridge.profile is None
    assert post.calls[-1] == {"url": "https://idp.test/revoke", "data": {"token": "tok"}, "headers": None}


def test_sign_out_without_revoke_url_makes_no_request(settings, post):
    bridge = IdentityBridge(dataclasses.replace(settings, revoke_url=""))
    bridge.sign_in(PROFILE, "tok")
    bridge.sign_out()
    assert post.calls == []


def test_sign_out_when_signed_out_raises(settings):
    with pytest.raises(IdentityError):
        IdentityBridge(settings).sign_out()


def test_profile_from_callback():
    profile = IdentityProfile.from_callback({"id": 7, "name": "Ann", "email": "a@x"})
    assert profile.id == "7"
    assert profile.image_url is None
    with pytest.raises(KeyError):
        IdentityProfile.from_callback({"name": "no id"})
