"""Tests for configuration loading and credential lookup."""

import yaml

from banana_studio.config import APIKeys, Config, Defaults, env_credential


class TestConfigFile:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = Config.load(tmp_path / "config.yaml")
        assert config.defaults.backend == "gemini"
        assert config.defaults.max_attempts == 4
        assert config.defaults.backoff_base == 0.8
        assert config.api_keys.google == ""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        config = Config(
            api_keys=APIKeys(google="g-123", pollinations="p-456"),
            defaults=Defaults(backend="pollinations", max_attempts=6, backoff_base=0.25),
        )
        config.save(path)

        data = yaml.safe_load(path.read_text())
        assert data["api_keys"]["google"] == "g-123"
        assert data["defaults"]["backend"] == "pollinations"

        loaded = Config.load(path)
        assert loaded.api_keys.pollinations == "p-456"
        assert loaded.defaults.backend == "pollinations"
        assert loaded.defaults.max_attempts == 6
        assert loaded.defaults.backoff_base == 0.25

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert Config.load(path).defaults.backend == "gemini"


class TestEnvironment:
    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        Config(api_keys=APIKeys(google="from-file")).save(path)
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("BANANA_BACKEND", "pollinations")

        config = Config.load(path)

        assert config.api_keys.google == "from-env"
        assert config.defaults.backend == "pollinations"

    def test_load_file_values_only(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        Config(api_keys=APIKeys(google="from-file")).save(path)
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("POLLINATIONS_ENDPOINT", "https://staging.test/generate")

        config = Config.load(path, merge_env=False)

        assert config.api_keys.google == "from-file"
        assert config.defaults.pollinations_endpoint == "https://api.pollinations.ai/generate"

    def test_google_api_key_fallback(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
        assert APIKeys.from_env().google == "google-key"

    def test_env_credential_read_at_call_time(self, monkeypatch):
        lookup = env_credential("POLLINATIONS_API_KEY", fallback="file-key")
        assert lookup() == "file-key"

        monkeypatch.setenv("POLLINATIONS_API_KEY", "  rotated  ")
        assert lookup() == "rotated"

    def test_env_credential_without_value(self):
        assert env_credential("POLLINATIONS_API_KEY")() is None

    def test_credential_source_prefers_gemini_variable(self, monkeypatch):
        config = Config(api_keys=APIKeys(google="file-key"))
        lookup = config.credential_source("gemini")

        monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
        assert lookup() == "google-key"
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        assert lookup() == "gemini-key"


class TestValidate:
    def test_missing_key(self):
        issues = Config().validate()
        assert len(issues) == 1
        assert "Gemini API key not configured" in issues[0]

    def test_backend_argument(self):
        config = Config(api_keys=APIKeys(google="g"))
        assert config.validate() == []
        assert "Pollinations API key" in config.validate("pollinations")[0]

    def test_unknown_backend(self):
        assert "Unknown backend" in Config().validate("dalle")[0]

    def test_bad_attempts(self):
        config = Config(api_keys=APIKeys(google="g"), defaults=Defaults(max_attempts=0))
        assert config.validate() == ["max_attempts must be at least 1"]
