import json

from studyspots import config


def test_missing_config_file_keeps_defaults(tmp_path):
    assert config.load_app_config(str(tmp_path / "missing.json")) is False
    assert config.DEFAULT_RADIUS_M == 1000


def test_config_file_overrides_globals(tmp_path, monkeypatch):
    for name in ("DEFAULT_LOCATION", "DEFAULT_RADIUS_M", "RADIUS_OPTIONS", "PLACE_CACHE_TTL_SECONDS", "OVERPASS_URL"):
        monkeypatch.setattr(config, name, getattr(config, name))
    path = tmp_path / "studyspots_config.json"
    path.write_text(
        json.dumps(
            {
                "default_location": {"lat": 46.948, "lon": 7.4474},
                "default_radius_m": 2000,
                "radius_options": [250, 2000],
                "place_cache_ttl_hours": 1.5,
                "overpass_url": "https://overpass.example/api/interpreter",
            }
        ),
        encoding="utf-8",
    )

    assert config.load_app_config(str(path)) is True
    assert config.DEFAULT_LOCATION == (46.948, 7.4474)
    assert config.DEFAULT_RADIUS_M == 2000
    assert config.RADIUS_OPTIONS == [250, 2000]
    assert config.PLACE_CACHE_TTL_SECONDS == 5400
    assert config.OVERPASS_URL == "https://overpass.example/api/interpreter"
