import dataclasses

import pytest

from survey_harness import HarnessConfig
from survey_harness.config import DEFAULT_BASE_URL, DEFAULT_LOGIN_PATH, DEFAULT_TIMEOUT_MS


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("TEST_API_URL", "API_BASE_URL", "API_TIMEOUT", "API_LOGIN_PATH",
                 "ADMIN_USERNAME", "ADMIN_PASSWORD", "FAKER_SEED"):
        # setenv first so monkeypatch restores the variable even when dotenv sets it mid-test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestHarnessConfig:
    def test_defaults_without_environment(self, clean_env):
        config = HarnessConfig()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.timeout_ms == DEFAULT_TIMEOUT_MS
        assert config.login_path == DEFAULT_LOGIN_PATH
        assert config.token is None
        assert config.faker_seed is None

    def test_reads_environment(self, clean_env):
        clean_env.setenv("TEST_API_URL", "https://backoffice.example.com")
        clean_env.setenv("API_TIMEOUT", "12000")
        clean_env.setenv("ADMIN_USERNAME", "root")
        clean_env.setenv("FAKER_SEED", "7")

        config = HarnessConfig()

        assert config.base_url == "https://backoffice.example.com"
        assert config.timeout_ms == 12000
        assert config.timeout_seconds == 12.0
        assert config.admin_username == "root"
        assert config.faker_seed == 7

    def test_api_base_url_is_a_fallback(self, clean_env):
        clean_env.setenv("API_BASE_URL", "https://fallback.example.com")
        assert HarnessConfig().base_url == "https://fallback.example.com"

    def test_from_env_overrides_win(self, clean_env, tmp_path):
        clean_env.setenv("TEST_API_URL", "https://from-env.example.com")
        config = HarnessConfig.from_env(env_file=str(tmp_path / "missing.env"), base_url="http://override", token=None)
        assert config.base_url == "http://override"
        assert config.token is None

    def test_from_env_loads_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("ADMIN_USERNAME=dotenv-admin\nADMIN_PASSWORD=dotenv-secret\n")

        config = HarnessConfig.from_env(env_file=str(env_file))

        assert config.admin_username == "dotenv-admin"
        assert config.admin_password == "dotenv-secret"

    def test_is_frozen(self):
        config = HarnessConfig(base_url="http://a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.token = "nope"

    def test_with_token_returns_new_config(self):
        config = HarnessConfig(base_url="http://a")
        authed = config.with_token("abc")

        assert authed is not config
        assert authed.token == "abc"
        assert config.token is None
        assert authed.base_url == config.base_url

    def test_validate_names_missing_settings(self, clean_env):
        with pytest.raises(ValueError) as exc_info:
            HarnessConfig(base_url="http://a").validate()
        assert "ADMIN_USERNAME" in str(exc_info.value)
        assert "ADMIN_PASSWORD" in str(exc_info.value)

    def test_validate_rejects_non_positive_timeout(self):
        config = HarnessConfig(base_url="http://a", admin_username="u", admin_password="p", timeout_ms=0)
        with pytest.raises(ValueError, match="API_TIMEOUT"):
            config.validate()

    def test_repr_hides_token(self):
        config = HarnessConfig(base_url="http://a", token="super-secret-token")
        assert "super-secret-token" not in repr(config)
