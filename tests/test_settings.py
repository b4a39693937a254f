"""
Tests for environment-driven settings.
"""

from aip.config.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("JOB_QUEUE_NAME", raising=False)
        monkeypatch.delenv("DEFAULT_REGION", raising=False)
        settings = Settings(_env_file=None)

        assert settings.job_queue_name == "aip:jobs"
        assert settings.dequeue_timeout_sec == 5
        assert settings.default_region == "ap-northeast-1"
        assert settings.credential_duration_sec == 3600
        assert settings.prepare_timeout_sec == 300
        assert settings.apply_timeout_sec == 600
        assert settings.output_timeout_sec == 120
        assert settings.blueprint_modules == {"ecs-service": "ecs-service"}

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("WORKER_CONCURRENCY", "4")
        monkeypatch.setenv("BLUEPRINT_MODULES", '{"ecs-service": "ecs-service", "rds": "rds-postgres"}')
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings = Settings(_env_file=None)

        assert settings.worker_concurrency == 4
        assert settings.get_blueprint_keys() == ["ecs-service", "rds"]
        assert settings.is_production
