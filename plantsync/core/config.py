from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_HISTORY_CONCURRENCY = 6


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database
    DATABASE_URL: str

    # Logging
    LOG_LEVEL: str = "INFO"
    SLACK_WEBHOOK_URL: str | None = None

    # Shared secret for the cron trigger endpoints
    CRON_KEY: str | None = None

    # Sync behaviour
    SYNC_TZ: str = "America/Sao_Paulo"
    SYNC_PROVIDERS: list[str] = ["csi", "phb", "sep", "growatt"]  # also the energy priority
    AUX_PRIORITY: list[str] = ["csi", "phb"]
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Historical backfill
    HIST_MONTHS_BACK: int = 2
    HIST_EPSILON: float = 0.05
    SEP_HISTORY_ANCHOR_MONTH: int = 4
    HISTORY_CONCURRENCY: int = 4

    # Optional in-process scheduler (normally an external cron hits /cron/daily)
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_INTERVAL_SECONDS: int = 24 * 60 * 60

    # CSI portal
    CSI_BASE: str = "https://webmonitoring-gl.csisolar.com"
    CSI_BEARER: str | None = None
    CSI_COOKIE: str | None = None
    CSI_TZ: str = "America/Sao_Paulo"
    CSI_PAGE_SIZE: int = 200

    # PHB portal
    PHB_BASE: str = "http://us.semsportal.com:82"
    PHB_CHARTS_BASE: str = "https://us.semsportal.com"
    PHB_TOKEN: str | None = None
    PHB_BEARER: str | None = None
    PHB_COOKIE: str | None = None
    PHB_ORIGIN: str = "https://www.phbsolar.com.br"
    PHB_REFERER: str = "https://www.phbsolar.com.br/"
    PHB_ORG_ID: str = ""
    PHB_PAGE_SIZE: int = 14
    PHB_NEUTRAL: bool = False
    PHB_TZ: str = "America/Sao_Paulo"

    # SEP portal
    SEP_BASE: str = "https://sep-api.csisolar.com"
    SEP_BEARER: str | None = None
    SEP_ORIGIN: str = "https://smartenergy-gl.csisolar.com"
    SEP_REFERER: str = "https://smartenergy-gl.csisolar.com/"
    SEP_APPVERSION: str | None = None
    SEP_PAGE_SIZE: int = 20
    SEP_HIST_TYPE: int = 1
    SEP_PAYLOAD: str | None = None  # JSON merged into the plant search filter
    SEP_TZ: str = "America/Sao_Paulo"

    # Growatt portal
    GROWATT_BASE: str = "https://server.growatt.com"
    GROWATT_COOKIE: str | None = None
    GROWATT_REFERER: str = "https://server.growatt.com/selectPlant"
    GROWATT_PAGE_SIZE: int = 20
    GROWATT_TZ: str = "America/Sao_Paulo"

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development

    @property
    def history_concurrency(self) -> int:
        """Concurrent month fetches per plant during backfill, clamped to 1..6."""
        return max(1, min(self.HISTORY_CONCURRENCY, MAX_HISTORY_CONCURRENCY))

    @property
    def cron_key_required(self) -> bool:
        """A configured key is always enforced; without one only dev stays open."""
        return bool(self.CRON_KEY) or self.is_production


settings = Settings()
