import httpx
import pytest

from flowtest.config import DEFAULT_TIMEOUT, ConfigError, RunnerConfig


def test_defaults():
    config = RunnerConfig()
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.verify_ssl is True
    assert config.headers == {}
    assert config.follow_redirects is True


def test_from_str():
    config = RunnerConfig.from_str(
        """
[runner]
timeout = 5
verify_ssl = false
follow_redirects = false

[runner.headers]
Authorization = "Bearer token"
"""
    )
    assert config.timeout == 5.0
    assert config.verify_ssl is False
    assert config.follow_redirects is False
    assert config.headers == {"Authorization": "Bearer token"}


def test_missing_runner_table():
    assert RunnerConfig.from_str("[other]\nkey = 1\n").timeout == DEFAULT_TIMEOUT


@pytest.mark.parametrize("timeout", ["0", "-1", '"fast"', "true"])
def test_invalid_timeout(timeout):
    with pytest.raises(ConfigError, match="Invalid timeout"):
        RunnerConfig.from_str(f"[runner]\ntimeout = {timeout}\n")


def test_invalid_headers():
    with pytest.raises(ConfigError, match="Invalid headers"):
        RunnerConfig.from_str("[runner.headers]\nX-Count = 1\n")


def test_invalid_toml():
    with pytest.raises(ConfigError, match="Invalid TOML"):
        RunnerConfig.from_str("[runner\n")


def test_from_path(tmp_path):
    path = tmp_path / "flowtest.toml"
    path.write_text("[runner]\ntimeout = 2.5\n")
    assert RunnerConfig.from_path(path).timeout == 2.5


def test_from_missing_path(tmp_path):
    with pytest.raises(ConfigError, match="Unable to read config file"):
        RunnerConfig.from_path(tmp_path / "missing.toml")


def test_repr_hides_header_values():
    config = RunnerConfig(headers={"Authorization": "Bearer secret"})
    assert "secret" not in repr(config)
    assert "Authorization" in repr(config)


def test_create_client():
    config = RunnerConfig(timeout=3, headers={"X-Api-Key": "key"}, follow_redirects=False)
    with config.create_client() as client:
        assert isinstance(client, httpx.Client)
        assert client.headers["X-Api-Key"] == "key"
        assert client.timeout == httpx.Timeout(3)
        assert client.follow_redirects is False
