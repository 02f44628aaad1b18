from datetime import datetime, timedelta, timezone

import pytest
import requests

from studyspots.http import HttpClient


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.headers = {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")
        return None


class FakeSession:
    def __init__(self, payload=None, error=None):
        self.payload = payload if payload is not None else {"elements": []}
        self.error = error
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append((url, data))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload)

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class SteppingDatetimeClock:
    """Each call returns a datetime one minute after the previous one."""

    def __init__(self):
        self.current = datetime(2026, 1, 26, 16, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current = self.current + timedelta(minutes=1)
        return self.current


@pytest.fixture
def make_http_client():
    def factory(payload=None, error=None):
        client = HttpClient(timeout=1, retry_max=1, backoff_base=0.0, backoff_max=0.0)
        client.session = FakeSession(payload, error)
        return client

    return factory


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def stepping_clock():
    return SteppingDatetimeClock()


@pytest.fixture
def daily_grind_payload():
    return {
        "elements": [
            {
                "type": "node",
                "id": 101,
                "lat": 47.3647,
                "lon": 8.5349,
                "tags": {
                    "name": "The Daily Grind",
                    "amenity": "cafe",
                    "addr:street": "Seefeldstrasse",
                    "addr:housenumber": "12",
                    "opening_hours": "Mo-Fr 07:00-18:00",
                },
            }
        ]
    }
