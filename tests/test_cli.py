import json

import pytest

import run
from studyspots.http import HttpClient


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload
        self.status_code = 200
        self.headers = {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        return None


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append(url)
        return FakeResponse(self.payload)


@pytest.fixture
def offline_feed(monkeypatch, daily_grind_payload):
    sessions = []

    def make_client(*args, **kwargs):
        client = HttpClient(timeout=1, retry_max=1, backoff_base=0.0, backoff_max=0.0)
        client.session = FakeSession(daily_grind_payload)
        sessions.append(client.session)
        return client

    monkeypatch.setattr(run, "HttpClient", make_client)
    monkeypatch.setattr(run, "load_env", lambda: None)
    monkeypatch.setattr(run.config, "load_app_config", lambda: False)
    monkeypatch.setenv("STUDYSPOTS_USER", "alice")
    return sessions


def _paths(tmp_path):
    return ["--cache-path", str(tmp_path / "cache.db"), "--ratings-path", str(tmp_path / "ratings.db")]


def test_normalize_place_key():
    assert run.normalize_place_key("101") == "node/101"
    assert run.normalize_place_key(" node/101 ") == "node/101"


def test_check_in_requires_levels():
    with pytest.raises(SystemExit):
        run.parse_args(["--check-in", "101", "--rate-noise", "Quiet"])


def test_radius_must_be_an_option():
    with pytest.raises(SystemExit):
        run.parse_args(["--radius", "750"])
    assert run.parse_args(["--radius", "2000"]).radius == 2000


def test_preflight_reports_writable_paths(tmp_path, capsys, offline_feed):
    assert run.main(["--preflight"] + _paths(tmp_path)) == 0
    out = capsys.readouterr().out
    assert "Preflight: PASS" in out
    assert "User: alice" in out


def test_check_in_then_list_reviews(tmp_path, capsys, offline_feed):
    out_dir = tmp_path / "out"
    code = run.main(
        [
            "--check-in", "101",
            "--rate-noise", "Quiet",
            "--rate-wifi", "Fast",
            "--note", "great flat white",
            "--set-name", "Alice",
            "--out", str(out_dir),
        ]
        + _paths(tmp_path)
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Signed in as Alice" in out
    assert "Rating created for The Daily Grind" in out
    assert '"great flat white"' in out

    features = json.loads((out_dir / "markers.geojson").read_text(encoding="utf-8"))["features"]
    assert features[0]["properties"]["noise_label"] == "Quiet"
    assert (out_dir / "markers.csv").exists()

    code = run.main(["--reviews", "node/101", "--search", "grind"] + _paths(tmp_path))
    assert code == 0
    out = capsys.readouterr().out
    assert "Reviews for The Daily Grind:" in out
    assert "- Quiet / Fast" in out
    assert "Search 'grind': 1 result(s)" in out
    # The second run is served from the persisted place cache.
    assert len(offline_feed[1].calls) == 0


def test_second_edit_is_refused(tmp_path, capsys, offline_feed):
    args = ["--check-in", "101", "--rate-noise", "Quiet", "--rate-wifi", "Fast"] + _paths(tmp_path)
    assert run.main(args) == 0
    assert run.main(args) == 0
    assert run.main(args) == 1
    err = capsys.readouterr().err
    assert "already edited" in err


def test_unknown_place_is_reported(tmp_path, capsys, offline_feed):
    args = ["--check-in", "999", "--rate-noise", "Quiet", "--rate-wifi", "Fast"] + _paths(tmp_path)
    assert run.main(args) == 1
    assert "node/999 is not on the map" in capsys.readouterr().err
