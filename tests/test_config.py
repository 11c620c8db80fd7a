import pytest

from sitemap_walker.config import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_DOCUMENTS,
    FailurePolicy,
    TraversalConfig,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("SITEMAP_FAILURE_POLICY", "SITEMAP_MAX_DEPTH", "SITEMAP_MAX_DOCUMENTS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_config_defaults():
    config = TraversalConfig()
    assert config.failure_policy is FailurePolicy.SKIP_AND_CONTINUE
    assert config.max_depth == DEFAULT_MAX_DEPTH
    assert config.max_documents == DEFAULT_MAX_DOCUMENTS
    assert not config.abort_on_error


@pytest.mark.parametrize(
    "value, expected",
    [
        ("skip", FailurePolicy.SKIP_AND_CONTINUE),
        ("ABORT", FailurePolicy.ABORT_ALL),
        (FailurePolicy.ABORT_ALL, FailurePolicy.ABORT_ALL),
    ],
)
def test_config_coerces_failure_policy(value, expected):
    assert TraversalConfig(failure_policy=value).failure_policy is expected


@pytest.mark.parametrize(
    "kwargs",
    [
        pytest.param({"failure_policy": "retry"}, id="unknown_policy"),
        pytest.param({"max_depth": -1}, id="negative_depth"),
        pytest.param({"max_documents": 0}, id="no_documents"),
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TraversalConfig(**kwargs)


def test_config_from_env(clean_env):
    clean_env.setenv("SITEMAP_FAILURE_POLICY", "abort")
    clean_env.setenv("SITEMAP_MAX_DEPTH", "2")
    clean_env.setenv("SITEMAP_MAX_DOCUMENTS", "")

    config = TraversalConfig.from_env()

    assert config.failure_policy is FailurePolicy.ABORT_ALL
    assert config.max_depth == 2
    assert config.max_documents is None


def test_config_from_env_defaults(clean_env):
    assert TraversalConfig.from_env() == TraversalConfig()


def test_config_from_env_overrides_win(clean_env):
    clean_env.setenv("SITEMAP_MAX_DEPTH", "2")
    assert TraversalConfig.from_env(max_depth=7).max_depth == 7


def test_config_from_env_invalid_integer(clean_env):
    clean_env.setenv("SITEMAP_MAX_DOCUMENTS", "lots")
    with pytest.raises(ValueError, match="SITEMAP_MAX_DOCUMENTS"):
        TraversalConfig.from_env()
