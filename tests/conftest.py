import pytest
import requests

from backoffice import create_app
from backoffice.config import TestingConfig
from backoffice.notifications import BREVO_EMAIL_URL


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakePost:
    """Stands in for requests.post; replies per URL substring, default is a Brevo 201."""

    def __init__(self):
        self.calls = []
        self.replies = {}

    def __call__(self, url, json=None, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "json": json, "headers": headers})
        for fragment, reply in self.replies.items():
            if fragment in url:
                if isinstance(reply, Exception):
                    raise reply
                return reply
        return FakeResponse(201, {"messageId": "<test@smtp-relay.mailin.fr>"})

    @property
    def emails(self):
        return [c["json"] for c in self.calls if c["url"] == BREVO_EMAIL_URL]

    @property
    def recipients(self):
        return [e["to"][0]["email"] for e in self.emails]


@pytest.fixture(autouse=True)
def outbound(monkeypatch):
    fake = FakePost()
    monkeypatch.setattr(requests, "post", fake)
    return fake


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["backoffice"]


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
