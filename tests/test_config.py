"""
Tests for configuration loading
"""

import pytest

from config import Config, DevelopmentConfig, ProductionConfig, TestingConfig, config


class TestDatabaseUri:
    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://u:p@db:5432/pickem")

        assert Config().SQLALCHEMY_DATABASE_URI == "postgresql+psycopg://u:p@db:5432/pickem"

    def test_postgres_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("DB_TYPE", "postgresql")
        monkeypatch.setenv("DB_HOST", "db.internal")
        monkeypatch.setenv("DB_NAME", "league")

        uri = Config().SQLALCHEMY_DATABASE_URI

        assert uri.startswith("postgresql+psycopg://")
        assert "@db.internal:5432/league" in uri

    def test_sqlite_default(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DB_TYPE", raising=False)

        assert Config().SQLALCHEMY_DATABASE_URI.startswith("sqlite:///")
        assert Config().SQLALCHEMY_DATABASE_URI.endswith("app.db")


class TestTestingConfig:
    def test_isolated_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://u:p@db:5432/pickem")

        cfg = TestingConfig()

        assert cfg.SQLALCHEMY_DATABASE_URI == "sqlite:///:memory:"
        assert cfg.TESTING is True
        assert cfg.SCHEDULER_ENABLED is False
        assert cfg.RATELIMIT_ENABLED is False
        assert cfg.CACHE_TYPE == "SimpleCache"
        assert cfg.LOG_TO_FILE is False


class TestConfigMapping:
    @pytest.mark.parametrize(
        "name, cls",
        [
            ("production", ProductionConfig),
            ("testing", TestingConfig),
            ("development", DevelopmentConfig),
            ("default", DevelopmentConfig),
        ],
    )
    def test_names(self, name, cls):
        assert config[name] is cls

    def test_production_is_not_debug(self):
        assert ProductionConfig.DEBUG is False

    def test_defaults(self):
        assert Config.TIMEZONE
        assert Config.SCORING_INTERVAL_MINUTES > 0
        assert Config.PICK_RATE_LIMIT


class TestCreateApp:
    def test_testing_app(self, app):
        assert app.config["TESTING"] is True
        assert "api" in app.blueprints
        assert "main" in app.blueprints
