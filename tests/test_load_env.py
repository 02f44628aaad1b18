import os
from pathlib import Path

import run


def _parse_env_file(env_path: Path, *, override: bool = False) -> None:
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip()
        if override or key not in os.environ:
            os.environ[key] = val


def test_load_env_is_optional_and_does_not_override_env(tmp_path: Path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("STUDYSPOTS_USER=from-dotenv\n", encoding="utf-8")

    called = {}

    def fake_load_dotenv(*, dotenv_path, override=False):
        called["dotenv_path"] = Path(dotenv_path).resolve()
        _parse_env_file(Path(dotenv_path), override=bool(override))
        return True

    monkeypatch.setattr(run, "_load_dotenv", fake_load_dotenv)
    monkeypatch.setenv("STUDYSPOTS_USER", "from-env")

    run.load_env(root_dir=tmp_path)

    assert called["dotenv_path"] == env_path.resolve()
    assert run.current_user_id() == "from-env"


def test_load_env_missing_file_is_a_no_op(tmp_path: Path, monkeypatch):
    def fail_load_dotenv(**kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(run, "_load_dotenv", fail_load_dotenv)
    run.load_env(root_dir=tmp_path)


def test_load_env_fills_unset_variables(tmp_path: Path, monkeypatch):
    (tmp_path / ".env").write_text("# comment\nSTUDYSPOTS_USER=dana\n", encoding="utf-8")
    monkeypatch.setenv("STUDYSPOTS_USER", "placeholder")
    monkeypatch.delenv("STUDYSPOTS_USER")

    run.load_env(root_dir=tmp_path)

    assert run.current_user_id() == "dana"
