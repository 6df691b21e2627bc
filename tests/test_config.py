"""
Tests for startup configuration validation.
"""
import pytest

from maisushi.config import ProductionConfig, TestingConfig, get_config, validate_config
from maisushi.utils.exceptions import ConfigurationError

SAFE_KEY = 'k7Qz9vXw2LpR4mNt8bYc1HjF6sGd3aEuQ0'


class TestValidateConfig:

    def test_production_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, '_secret_key', SAFE_KEY)
        monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', '')

        with pytest.raises(ConfigurationError):
            validate_config('production')

    def test_production_rejects_weak_secret(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, '_secret_key', 'dev-key')

        with pytest.raises(RuntimeError):
            validate_config('production')

    def test_production_accepts_complete_config(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, '_secret_key', SAFE_KEY)
        monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', 'postgresql://db/maisushi')

        validate_config('production')

    def test_other_environments_skip_validation(self):
        validate_config('testing')
        validate_config('development')

    def test_unknown_name_falls_back_to_development(self):
        assert get_config('staging').DEBUG is True
        assert get_config('testing') is TestingConfig
