from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    SYNC_DB_URL: str = "sqlite+aiosqlite:///./listing_sync.db"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LEDGER_DIR: str = "data/failed_records"

    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Destination store (Airtable) ---
    AIRTABLE_API_KEY: str | None = None
    AIRTABLE_BASE_ID: str | None = None
    AIRTABLE_BASE_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_KEY_FIELD: str = "ListingID"
    AIRTABLE_TYPECAST: bool = True
    AIRTABLE_DOMAIN_TABLE: str = "Domain Listings API v2"
    AIRTABLE_REALESTATE_TABLE: str = "Realestate Listings API v2"
    AIRTABLE_SOCIAL_TABLE: str = "Social Analytics"

    # --- Domain.com.au ---
    DOMAIN_API_BASE_URL: str = "https://api.domain.com.au/v1"
    DOMAIN_API_KEY: str | None = None
    DOMAIN_AUTH_ENDPOINT: str = "https://auth.domain.com.au/v1/connect/token"
    DOMAIN_CLIENT_ID: str | None = None
    DOMAIN_CLIENT_SECRET: str | None = None
    # "LNS:2842,UNS:36084" -> agency listings mode
    DOMAIN_AGENCIES: str | None = None

    # --- Realestate.com.au ---
    REALESTATE_API_URL: str | None = None
    REALESTATE_PERFORMANCE_API_URL: str | None = None
    REALESTATE_AUTH_ENDPOINT: str | None = None
    REALESTATE_CLIENT_ID: str | None = None
    REALESTATE_CLIENT_SECRET: str | None = None

    # --- Facebook / Instagram insights ---
    FB_GRAPH_URL: str = "https://graph.facebook.com/v15.0"
    FB_AUTH_ENDPOINT: str = "https://graph.facebook.com/oauth/access_token"
    FB_ACCESS_TOKEN: str | None = None
    FB_CLIENT_ID: str | None = None
    FB_CLIENT_SECRET: str | None = None

    # --- Pipeline tuning ---
    HTTP_TIMEOUT_S: float = 30.0
    JOIN_MODE: str = "require-match"  # require-match|left-join-with-defaults
    PERFORMANCE_CONCURRENCY: int = 1
    LISTINGS_FETCH_ATTEMPTS: int = 2
    LISTINGS_FETCH_BACKOFF_S: float = 2.0
    STORE_RATE_LIMIT_DEFAULT_S: float = 30.0


settings = Settings()
