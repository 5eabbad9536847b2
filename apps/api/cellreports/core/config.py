from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    service_name: str = "Cell Reports"

    postgres_url: str = "postgresql+psycopg://app:app@db:5432/app"

    jwt_secret: str = "change-me"

    # Roles (as issued by the identity provider) allowed to act on any cell
    admin_roles: str = "admin,pastor,superadmin"  # Comma-separated

    # Report periods
    min_report_year: int = 2020

    # Unique-constraint races retried before giving up
    conflict_retry_attempts: int = 3

    # Middleware configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    log_format: str = "json"  # json or text
    enable_request_logging: bool = True
    cors_origins: str = ""  # Comma-separated list of allowed origins
    enable_gzip: bool = True

    # Metrics configuration (CloudWatch EMF through logging)
    enable_metrics: bool = True
    metrics_namespace: str = ""  # Defaults to service_name

    model_config = {
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
    }

    @property
    def admin_role_set(self) -> frozenset[str]:
        return frozenset(
            role.strip().lower() for role in self.admin_roles.split(",") if role.strip()
        )


settings = Settings()
