from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Lyzr agent inference API
    lyzr_api_url: str = "https://agent-prod.studio.lyzr.ai/v3/inference/chat/"
    lyzr_api_key: str = ""
    upstream_timeout_seconds: float = 120.0  # Per attempt, not per retry sequence

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://triage.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def get_lyzr_api_key() -> str:
    """Read the upstream API key from the environment at call time.

    The key can be rotated or injected after startup, so it is never cached
    on the module-level ``settings`` instance.
    """
    return Settings().lyzr_api_key


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup."""
    errors: list[str] = []

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
