import json

import pytest
from pydantic import ValidationError

from grabber.config.settings import Config, LoggingConfig


def test_defaults(monkeypatch):
    monkeypatch.delenv("GRABBER_EXTRACTOR__BINARY", raising=False)
    cfg = Config()

    assert cfg.extractor.binary == "yt-dlp"
    assert cfg.extractor.info_timeout is None
    assert cfg.formats.max_video == 10
    assert cfg.formats.max_audio == 5
    assert cfg.download.default_extension == "mp4"
    assert cfg.rate_limit.enabled is False
    assert cfg.redis.url is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("GRABBER_EXTRACTOR__BINARY", "/opt/yt-dlp")
    monkeypatch.setenv("GRABBER_FORMATS__MAX_VIDEO", "3")

    cfg = Config()

    assert cfg.extractor.binary == "/opt/yt-dlp"
    assert cfg.formats.max_video == 3
    assert cfg.formats.max_audio == 5


def test_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "extractor": {"binary": "/from/file", "info_timeout": 45},
        "i18n": {"default_locale": "vi"},
    }), encoding="utf-8")
    monkeypatch.setenv("GRABBER_EXTRACTOR__BINARY", "/from/env")

    cfg = Config.load_from_file(str(path))

    assert cfg.extractor.binary == "/from/env"
    assert cfg.extractor.info_timeout == 45
    assert cfg.i18n.default_locale == "vi"


def test_malformed_file_is_ignored(tmp_path, monkeypatch):
    monkeypatch.delenv("GRABBER_EXTRACTOR__BINARY", raising=False)
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    cfg = Config.load_from_file(str(path))

    assert cfg.extractor.binary == "yt-dlp"


def test_missing_file(tmp_path):
    cfg = Config.load_from_file(str(tmp_path / "absent.json"))
    assert cfg.formats.max_audio == 5


def test_log_level_validation():
    assert LoggingConfig(level="debug").level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingConfig(level="chatty")
