from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Wallet / risk
    STARTING_BALANCE: float = 100.0
    MAX_USER_EXPOSURE: float = 50_000
    MAX_MATCH_EXPOSURE: float = 250_000

    # Polling
    POLL_INTERVAL_SECONDS: float = 30
    STALE_AFTER_SECONDS: float = 120
    FETCH_CONCURRENCY: int = 6
    FETCH_TIMEOUT_SECONDS: float = 20
    DETAIL_TIMEOUT_SECONDS: float = 15
    SCORE_TIMEOUT_SECONDS: float = 25

    # Retention
    MARKET_HISTORY_LIMIT: int = 480
    AUDIT_RETENTION: int = 1000

    # Score feed
    CRICKETDATA_API_KEY: str = ""
    CRICAPI_BASE_URL: str = "https://api.cricapi.com/v1"

    # Odds feeds
    ODDS_API_KEY: str = ""
    ODDS_API_BASE_URL: str = "https://api.the-odds-api.com/v4"
    ODDS_REGIONS: str = "uk"
    ODDS_SPORT_KEYS: str = ""

    DCRIC99_ENABLED: bool = True
    DCRIC99_EVENT_LIST_URL: str = "https://api.dcric99.com/api/guest/event_list"
    DCRIC99_EVENT_DETAIL_URL: str = "https://api.dcric99.com/api/guest/event"
    DCRIC99_DEFAULT_ODDS_BASE_URL: str = "https://api.dcric99.com"
    DCRIC99_MAX_EVENT_DETAILS: int = 60
    DCRIC99_MIN_SCORE: float = 0.75

    ODDS_SCRAPER_SITES_JSON: str = ""

    # Optional collaborators: empty means "absent"
    DATABASE_URL: str = ""
    REDIS_URL: str = ""
    REDIS_CHANNEL_PREFIX: str = "yesno"

    # App
    APP_NAME: str = "YesNo Cricket Engine"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    @field_validator("POLL_INTERVAL_SECONDS")
    @classmethod
    def _min_poll(cls, v: float) -> float:
        return max(10.0, v)

    @field_validator("MAX_USER_EXPOSURE")
    @classmethod
    def _min_user_exposure(cls, v: float) -> float:
        return max(1000.0, v)

    @field_validator("MAX_MATCH_EXPOSURE")
    @classmethod
    def _min_match_exposure(cls, v: float) -> float:
        return max(5000.0, v)

    @field_validator("MARKET_HISTORY_LIMIT")
    @classmethod
    def _min_history(cls, v: int) -> int:
        return max(60, v)

    @field_validator("FETCH_CONCURRENCY")
    @classmethod
    def _concurrency_range(cls, v: int) -> int:
        return int(_clamp(v, 1, 10))

    @field_validator("DCRIC99_MAX_EVENT_DETAILS")
    @classmethod
    def _detail_range(cls, v: int) -> int:
        return int(_clamp(v, 10, 120))

    @field_validator("DCRIC99_MIN_SCORE")
    @classmethod
    def _min_score_range(cls, v: float) -> float:
        return _clamp(v, 0.3, 2.0)

    @field_validator("DCRIC99_EVENT_DETAIL_URL", "DCRIC99_DEFAULT_ODDS_BASE_URL")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @model_validator(mode="after")
    def _stale_after_poll(self) -> "Settings":
        self.STALE_AFTER_SECONDS = max(self.POLL_INTERVAL_SECONDS * 2, self.STALE_AFTER_SECONDS)
        return self

    @property
    def odds_sport_keys(self) -> list[str]:
        keys = [part.strip() for part in self.ODDS_SPORT_KEYS.split(",")]
        return [k for k in keys if k][:8]


settings = Settings()
