from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    WHATSAPP_TOKEN: str | None = None
    WHATSAPP_PHONE_NUMBER_ID: str | None = None
    WHATSAPP_VERIFY_TOKEN: str = ""
    META_APP_SECRET: str | None = None
    META_GRAPH_API_VERSION: str = "v23.0"

    GOOGLE_SHEETS_ID: str | None = None
    GOOGLE_CREDENTIALS_JSON: str | None = None
    GOOGLE_APPLICATION_CREDENTIALS: str | None = None
    SHEETS_TAB_SLOTS: str = "Horarios"
    SHEETS_TAB_APPOINTMENTS: str = "Citas"
    SHEETS_RETRY_ATTEMPTS: int = 3
    SHEETS_RETRY_DELAY_SECONDS: float = 0.6

    BUSINESS_NAME: str = "Your Business"
    BUSINESS_PHONE: str = "+591 65900645"
    BUSINESS_TIMEZONE: str = "America/La_Paz"
    BUSINESS_MAPS_URL: str = ""
    REST_WEEKDAYS: list[int] = [6]
    EXTRA_HOLIDAYS: list[str] = []

    WORKING_DAYS_OFFERED: int = 7
    SLOTS_PAGE_SIZE: int = 9
    SESSION_TTL_SECONDS: int = 24 * 60 * 60
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60 * 60

    STORE_PROVIDER: str = "memory"
    SESSION_DATA_DIR: str = "./data/sessions"
    RECEIPTS_DIR: str = "./data/receipts"
    PUBLIC_BASE_URL: str | None = None

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL_TRANSCRIBE: str = "whisper-1"

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    AUTO_REPLY_ENABLED: bool = False


settings = Settings()
