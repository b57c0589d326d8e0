"""Tests for Settings validation."""

import pytest
from pydantic import ValidationError


def _settings(tmp_path, **overrides):
    from config.settings import Settings
    kwargs = {
        "sqlite_db_path": tmp_path / "autowrite.db",
        "recovery_hint_path": tmp_path / "hints.db",
        "log_dir": tmp_path / "logs",
        **overrides,
    }
    return Settings(_env_file=None, **kwargs)


class TestSettingsDefaults:
    def test_retry_defaults(self, tmp_path):
        s = _settings(tmp_path)
        assert s.retry_max_attempts == 7
        assert s.retry_base_delay == 5.0
        assert s.retry_max_delay == 60.0
        assert s.request_timeout == 120.0

    def test_generation_defaults(self, tmp_path):
        s = _settings(tmp_path)
        assert s.min_unit_chars == 100
        assert s.prior_context_chars == 3000
        assert s.outline_batch_size == 3
        assert s.word_budget_ratio == 1.1
        assert s.character_history_limit == 10
        assert s.recovery_hint_ttl_hours == 24

    def test_fixture_has_no_delays(self, settings):
        assert settings.unit_delay == 0
        assert settings.retry_max_delay == 0

    def test_parent_dirs_created(self, tmp_path):
        s = _settings(tmp_path, sqlite_db_path=tmp_path / "nested" / "deep" / "a.db")
        assert s.sqlite_db_path.parent.is_dir()


class TestSettingsValidation:
    def test_zero_attempts_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="must be >= 1"):
            _settings(tmp_path, retry_max_attempts=0)

    def test_zero_batch_size_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="must be >= 1"):
            _settings(tmp_path, outline_batch_size=0)

    def test_negative_delay_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="non-negative"):
            _settings(tmp_path, unit_delay=-1)

    def test_base_delay_above_max_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="retry_base_delay"):
            _settings(tmp_path, retry_base_delay=90, retry_max_delay=60)

    def test_budget_ratio_below_one_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="word_budget_ratio"):
            _settings(tmp_path, word_budget_ratio=0.9)

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "3")
        assert _settings(tmp_path).retry_max_attempts == 3

