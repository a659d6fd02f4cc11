import os  # lets us read environment variables (from the OS)
from functools import (
    lru_cache,  # tiny built-in cache; we use it to reuse one Settings object
)

from dotenv import load_dotenv  # loads variables from a local .env file
from pydantic import BaseModel  # Pydantic gives us a typed, validated settings class

load_dotenv()  # read .env and put those key=value pairs into environment variables


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):  # our typed container for config values
    # database connection string; default is a SQLite file in the project folder
    # change effect: point to a different DB (e.g., Postgres) or file path
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")
    db_echo: bool = _env_bool("DB_ECHO")  # log every SQL statement

    # "development" exposes error messages/stack traces in 500 responses
    app_env: str = os.getenv("APP_ENV", "production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # currency stamped on transactions that don't send one
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "CNY")

    # LLM provider: "deepseek" or "openai" (both speak the OpenAI chat API)
    ai_provider: str = os.getenv("AI_PROVIDER", "deepseek")
    deepseek_api_key: str | None = os.getenv("DEEPSEEK_API_KEY") or None
    deepseek_api_base: str = os.getenv("DEEPSEEK_API_BASE", "https://api.deepseek.com")
    deepseek_model: str = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY") or None
    openai_api_base: str = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    ai_timeout_seconds: float = float(os.getenv("AI_TIMEOUT_SECONDS", "60"))

    # public holiday API (timor.tech format); year is appended to the path
    holiday_api_base: str = os.getenv(
        "HOLIDAY_API_BASE", "https://timor.tech/api/holiday/year"
    )
    holiday_cache_ttl_hours: int = int(os.getenv("HOLIDAY_CACHE_TTL_HOURS", "12"))

    # upper bound of occurrences one recurring expense may catch up per run
    recurring_max_catch_up: int = int(os.getenv("RECURRING_MAX_CATCH_UP", "366"))

    # system_logs housekeeping
    log_retention_days: int = int(os.getenv("LOG_RETENTION_DAYS", "30"))
    persist_request_logs: bool = _env_bool("PERSIST_REQUEST_LOGS")

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"


@lru_cache  # make sure Settings() is created once and reused (fast + consistent)
def get_settings() -> Settings:
    return Settings()  # build from env (already loaded by load_dotenv())
