from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Dict


class Settings(BaseSettings):
    # Supabase (runs / deployments tables)
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Worker writes bypass RLS when set
    persistence_timeout_sec: float = 5.0

    # Redis job queue
    redis_url: str = "redis://127.0.0.1:6379/0"
    job_queue_name: str = "aip:jobs"
    dequeue_timeout_sec: int = 5
    queue_error_backoff_sec: float = 1.0

    # AWS role assumption (platform credentials come from the default boto3 chain)
    default_region: str = "ap-northeast-1"
    credential_duration_sec: int = 3600

    # Terraform
    terraform_bin: str = "terraform"
    modules_root: str = "infra/modules"
    blueprint_modules: Dict[str, str] = {"ecs-service": "ecs-service"}
    prepare_timeout_sec: float = 300  # init + plan share this budget
    apply_timeout_sec: float = 600
    output_timeout_sec: float = 120

    # Worker
    worker_concurrency: int = 1

    # App
    app_name: str = "aip-worker"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_blueprint_keys(self) -> list:
        return sorted(self.blueprint_modules)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


settings = Settings()
