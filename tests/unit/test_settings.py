"""Tests for settings module."""

from pathlib import Path

from skillcat.settings import Settings


def test_default_settings() -> None:
    s = Settings(_env_file=None)
    assert s.output_dir == Path("./data")
    assert s.concurrency == 20
    assert s.request_timeout == 30.0
    assert s.github_token is None
    assert s.prefect_api_url is None
    assert s.log_level == "INFO"


def test_settings_policy_defaults() -> None:
    s = Settings(_env_file=None)
    assert s.ai_star_threshold == 100
    assert s.trusted_star_threshold == 100
    assert s.duplicate_original_min_stars == 1000
    assert s.quarterly_star_threshold == 50
    assert s.on_demand_star_threshold == 20
    assert s.recent_activity_days == 90
    assert s.write_batch_size == 100
    assert s.fallback_category == "productivity"


def test_resolved_database_url_defaults_to_sqlite_under_output_dir() -> None:
    s = Settings(_env_file=None, output_dir=Path("/tmp/catalog"))
    assert s.resolved_database_url == "sqlite:////tmp/catalog/skillcat.db"
    assert s.resolved_blob_dir == Path("/tmp/catalog/blobs")


def test_explicit_database_url_wins() -> None:
    s = Settings(_env_file=None, database_url="postgresql+psycopg://db/skillcat")
    assert s.resolved_database_url == "postgresql+psycopg://db/skillcat"


def test_free_model_pool_parses_comma_list() -> None:
    s = Settings(_env_file=None, free_models=" model-a, ,model-b ")
    assert s.free_model_pool == ["model-a", "model-b"]


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("SKILLCAT_AI_STAR_THRESHOLD", "250")
    monkeypatch.setenv("SKILLCAT_GITHUB_TOKEN", "ghp_secret")
    s = Settings(_env_file=None)
    assert s.ai_star_threshold == 250
    assert s.github_token is not None
    assert s.github_token.get_secret_value() == "ghp_secret"
