import os

import pytest

from appcommon import cron_secret, format_iso, load_config, resolve_env, resolve_path
from appcommon.services import build_services


def test_resolve_env_expands_and_blanks_unset(monkeypatch):
    monkeypatch.setenv("IH_HOST", "example.com")
    monkeypatch.delenv("IH_MISSING", raising=False)
    got = resolve_env({"a": "https://${IH_HOST}/x", "b": ["$IH_HOST"], "c": "${IH_MISSING}", "d": 3})
    assert got == {"a": "https://example.com/x", "b": ["example.com"], "c": "", "d": 3}


def test_load_config_missing_file_gives_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yaml"))
    assert cfg["_config_dir"] == str(tmp_path)
    assert cron_secret({}) == os.environ.get("CRON_SECRET", "").strip()


def test_load_config_reads_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("IH_SECRET", "abc")
    p = tmp_path / "config.yaml"
    p.write_text("auth:\n  cron_secret: ${IH_SECRET}\nstore:\n  path: data/x.sqlite\n", encoding="utf-8")
    cfg = load_config(str(p))
    assert cron_secret(cfg) == "abc"
    assert resolve_path(cfg, "data/x.sqlite") == os.path.join(str(tmp_path), "data/x.sqlite")


def test_load_config_rejects_non_mapping(tmp_path):
    p = tmp_path / "config.yaml"
    p.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(p))


def test_cron_secret_env_fallback(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", " from-env ")
    assert cron_secret({"auth": {"cron_secret": ""}}) == "from-env"
    assert cron_secret({"auth": {"cron_secret": "cfg"}}) == "cfg"


def test_format_iso():
    assert format_iso(None) is None
    assert format_iso(60) == "1970-01-01T00:01:00+00:00"


def test_build_services_creates_store_relative_to_config(tmp_path, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    cfg = {"_config_dir": str(tmp_path), "store": {"provider": "sqlite", "path": "data/news.sqlite"}}
    services = build_services(cfg)
    assert (tmp_path / "data" / "news.sqlite").exists()
    assert services.cron_secret == ""
    assert services.orchestrator().default_batch_size == 20
