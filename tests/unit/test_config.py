"""Unit tests for configuration management."""

from __future__ import annotations

import pytest

from boqmatch.config import AppConfig, get_config, reset_config


class TestAppConfig:
    def test_from_env_defaults(self):
        config = AppConfig.from_env()
        assert config.db.url == "sqlite+aiosqlite:///:memory:"
        assert config.log_level == "DEBUG"
        assert config.matching.match_threshold == 0.6
        assert config.matching.learning_min_confidence == 0.7
        assert config.outliers.currency_symbol == "R"
        assert config.outliers.benchmarks["db"] == (3000.0, 50000.0)
        assert config.ingestion.insert_chunk_size == 100
        assert config.ingestion.unit_synonyms_path is None
        assert not config.llm.enabled

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL")
        with pytest.raises(KeyError, match="DATABASE_URL"):
            AppConfig.from_env()

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o")
        monkeypatch.setenv("SUPPLY_SHARE", "0.6")
        monkeypatch.setenv("INSERT_CHUNK_SIZE", "25")
        monkeypatch.setenv("CURRENCY_SYMBOL", "$")
        monkeypatch.setenv("BOQ_UNIT_SYNONYMS_PATH", str(tmp_path / "units.yaml"))
        config = AppConfig.from_env()
        assert config.llm.enabled
        assert config.llm.llm_model == "gpt-4o"
        assert config.ingestion.supply_share == 0.6
        assert config.ingestion.insert_chunk_size == 25
        assert config.outliers.currency_symbol == "$"
        assert config.ingestion.unit_synonyms_path == tmp_path / "units.yaml"

    def test_benchmarks_not_shared(self):
        first, second = AppConfig.from_env(), AppConfig.from_env()
        first.outliers.benchmarks["cable"] = (1.0, 2.0)
        assert second.outliers.benchmarks["cable"] == (20.0, 2000.0)


def test_get_config_singleton():
    assert get_config() is get_config()
    first = get_config()
    reset_config()
    assert get_config() is not first
