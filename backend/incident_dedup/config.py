from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./incidents.db"
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # Which record store backs a run: "sql" or "airtable"
    RECORD_STORE: str = "sql"
    # Airtable raw_data table
    AIRTABLE_API_KEY: str | None = None
    AIRTABLE_BASE_ID: str | None = None
    AIRTABLE_TABLE: str = "raw_data"
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_TIMEOUT: float = 30.0
    # Batch pass defaults
    DEDUP_LOOKBACK_DAYS: int = 30
    DEDUP_MAX_RECORDS: int = 100
    DEDUP_CONFIDENCE_THRESHOLD: float = 0.8
    # Match classification bands
    DEDUP_HIGH_CONFIDENCE: float = 0.8
    DEDUP_MEDIUM_CONFIDENCE: float = 0.6
    # Merge chain hops followed before giving up
    DEDUP_MAX_CHAIN_DEPTH: int = 5
    # Fetch paging (Airtable caps pageSize at 100)
    DEDUP_PAGE_SIZE: int = 100
    DEDUP_MAX_PAGES: int = 20
    DEDUP_SCORING_CONFIG: str = "config/dedup_scoring.yaml"
    # API authentication (if unset, all requests pass)
    DEDUP_API_KEY: str | None = None


settings = Settings()
