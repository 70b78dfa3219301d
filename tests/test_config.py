from imagepipe.config import PLACEHOLDER_API_KEY, Settings


def test_reads_plain_openai_env_var(monkeypatch):
    monkeypatch.delenv("IMAGEPIPE__OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    config = Settings(_env_file=None)
    assert config.credential == "sk-from-env"
    assert config.configured is True


def test_reads_prefixed_env_vars(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("IMAGEPIPE__OPENAI_API_KEY", "sk-prefixed")
    monkeypatch.setenv("IMAGEPIPE__REQUEST_TIMEOUT", "12.5")
    config = Settings(_env_file=None)
    assert config.credential == "sk-prefixed"
    assert config.request_timeout == 12.5


def test_missing_key_is_unconfigured(unconfigured_settings):
    assert unconfigured_settings.credential is None
    assert unconfigured_settings.configured is False


def test_placeholder_key_is_unconfigured(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", PLACEHOLDER_API_KEY)
    monkeypatch.delenv("IMAGEPIPE__OPENAI_API_KEY", raising=False)
    assert Settings(_env_file=None).configured is False


def test_defaults(unconfigured_settings):
    assert unconfigured_settings.default_response_format == "url"
    assert unconfigured_settings.request_timeout == 60.0
    assert unconfigured_settings.base_url is None
