from koala import config
from koala.models import Config


def test_load_default_config_when_missing(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    cfg = config.load_config()
    assert isinstance(cfg, Config)
    assert cfg.google_credentials is None
    assert cfg.port == 3001


def test_save_and_load_config(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    cfg = Config(google_credentials="/keys/sa.json", ai_timeout=3.0)
    config.save_config(cfg)

    loaded = config.load_config()
    assert loaded.google_credentials == "/keys/sa.json"
    assert loaded.ai_timeout == 3.0


def test_update_config_validates_keys(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    config.update_config(target_language="en")
    loaded = config.load_config()
    assert loaded.target_language == "en"

    try:
        config.update_config(unknown="value")
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for invalid key")


def test_corrupt_config_raises(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{not json")
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    try:
        config.load_config()
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for unreadable file")


def test_env_overrides():
    cfg = config.apply_env_overrides(
        Config(),
        {
            "GOOGLE_APPLICATION_CREDENTIALS": "/keys/default.json",
            "PORT": "8080",
            "KOALA_AI_TIMEOUT": "2.5",
            "KOALA_DB_PATH": "/data/records.db",
        },
    )

    assert cfg.google_credentials == "/keys/default.json"
    assert cfg.port == 8080
    assert cfg.ai_timeout == 2.5
    assert str(config.database_path(cfg)) == "/data/records.db"


def test_koala_credentials_take_precedence():
    cfg = config.apply_env_overrides(
        Config(),
        {"GOOGLE_APPLICATION_CREDENTIALS": "/keys/default.json", "KOALA_GOOGLE_CREDENTIALS": "/keys/koala.json"},
    )
    assert cfg.google_credentials == "/keys/koala.json"


def test_invalid_numeric_override():
    try:
        config.apply_env_overrides(Config(), {"PORT": "eighty"})
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for bad PORT")
