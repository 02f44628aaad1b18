import pytest
import requests

from studyspots import http as http_module
from studyspots.http import HttpClient


class FakeResponse:
    def __init__(self, payload, status_code=200, headers=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")
        return None


class ScriptedSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append((url, data, headers))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_http_client(responses, retry_max=3):
    client = HttpClient(timeout=1, retry_max=retry_max, backoff_base=0.0, backoff_max=0.0)
    client.session = ScriptedSession(responses)
    return client


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(http_module.time, "sleep", lambda s: None)


def test_post_text_sends_plain_body():
    client = make_http_client([FakeResponse({"elements": []})])
    assert client.post_text("https://feed.test", "[out:json];") == {"elements": []}

    url, data, headers = client.session.calls[0]
    assert data == b"[out:json];"
    assert headers["Content-Type"].startswith("text/plain")
    assert headers["User-Agent"]


def test_retries_on_server_errors_and_connection_failures():
    client = make_http_client(
        [
            FakeResponse({}, status_code=503, headers={"Retry-After": "1"}),
            requests.ConnectionError("reset"),
            FakeResponse({"ok": True}),
        ]
    )
    assert client.post_text("https://feed.test", "q") == {"ok": True}
    assert len(client.session.calls) == 3


def test_gives_up_after_retry_max():
    client = make_http_client([FakeResponse({}, status_code=429)] * 2, retry_max=2)
    with pytest.raises(requests.HTTPError):
        client.post_text("https://feed.test", "q")


def test_client_errors_are_not_retried():
    client = make_http_client([FakeResponse({}, status_code=400)])
    with pytest.raises(requests.HTTPError):
        client.post_text("https://feed.test", "q")
    assert len(client.session.calls) == 1
