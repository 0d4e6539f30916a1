from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_phone(raw: str | None) -> str:
    """Strip '+' and whitespace so '+39 333 1234567' == '393331234567'."""
    if not raw:
        return ""
    return "".join(ch for ch in str(raw) if ch != "+" and not ch.isspace())


def _split_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    CASAMATCH_DB_URL: str = "sqlite+aiosqlite:///./casamatch.db"
    LOG_LEVEL: str = "INFO"

    # --- Matching / outreach ---
    MATCH_SCORE_THRESHOLD: int = 70
    ANTI_DUP_WINDOW_DAYS: int = 30

    # QUIET BY DEFAULT: nothing is sent unless enabled AND allow-listed
    OUTREACH_ENABLED: bool = False
    # comma-separated phone numbers, e.g. "+39 333 1234567,393471112233"
    OUTREACH_ALLOWLIST: str = ""

    # --- Ingestion ---
    INGESTION_SOURCES: str = "stub_json"  # stub_json,immobiliare,idealista
    INGESTION_ADAPTER_TIMEOUT_S: float = 180.0
    INGESTION_ADAPTER_DELAY_S: float = 2.0
    INGESTION_MAX_ERRORS_PER_ADAPTER: int = 50

    # criteria used by the scheduled run
    INGESTION_CITY: str = "milano"
    INGESTION_MIN_PRICE: int | None = 300_000
    INGESTION_MAX_PRICE: int | None = 3_000_000
    INGESTION_MIN_SIZE: int | None = 60

    STUB_LISTINGS_DIR: str = "data/stub_listings"

    # --- Scraper vendor (Apify actors) ---
    APIFY_TOKEN: str | None = None
    APIFY_BASE_URL: str = "https://api.apify.com/v2"
    APIFY_IMMOBILIARE_ACTOR: str | None = None
    APIFY_IDEALISTA_ACTOR: str | None = None
    APIFY_MAX_ITEMS: int = 100

    # --- Messaging gateway (UltraMsg WhatsApp) ---
    ULTRAMSG_INSTANCE_ID: str | None = None
    ULTRAMSG_TOKEN: str | None = None
    ULTRAMSG_BASE_URL: str = "https://api.ultramsg.com"
    ULTRAMSG_TIMEOUT_S: float = 20.0

    # --- Geocoding (Nominatim: max 1 req/s) ---
    GEOCODER_ENABLED: bool = True
    GEOCODER_BASE_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "casamatch/0.1 (+contact: ops@example.com)"
    GEOCODER_COUNTRY: str = "Italy"
    GEOCODER_MIN_INTERVAL_S: float = 1.1

    # --- Outbound HTTP resilience ---
    HTTP_TIMEOUT_S: float = 30.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 5
    HTTP_CIRCUIT_RESET_S: float = 60.0
    HTTP_RATE_LIMIT_RPS: float = 2.0

    # Optional JSON file overriding the owner classification keyword lists
    OWNER_KEYWORDS_PATH: str | None = None

    # --- Scheduler tuning ---
    SCHED_PIPELINE_INTERVAL_MINUTES: int = 1440  # daily

    @property
    def outreach_allowlist(self) -> frozenset[str]:
        return frozenset(p for p in (normalize_phone(x) for x in _split_csv(self.OUTREACH_ALLOWLIST)) if p)

    @property
    def ingestion_sources(self) -> list[str]:
        return [s.lower() for s in _split_csv(self.INGESTION_SOURCES)]


settings = Settings()
