# backend/croppredict/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
dotenv_path = REPO_ROOT / '.env'
load_dotenv(dotenv_path)


class Settings:
    # --- OpenAI ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str   = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.2"))
    LLM_TIMEOUT_SEC: float = float(os.getenv("LLM_TIMEOUT_SEC", "60"))
    LLM_MAX_TOKENS: int    = int(os.getenv("LLM_MAX_TOKENS", "2048"))
    # model <-> tool round trips before we give up on a final answer
    LLM_MAX_TOOL_ROUNDS: int = int(os.getenv("LLM_MAX_TOOL_ROUNDS", "4"))

    # --- Data.gov.in (mandi) ---
    DATA_GOV_IN_API_KEY: str = os.getenv("DATA_GOV_IN_API_KEY", "")

    # --- Market price tool ---
    PRICE_CURRENCY: str = os.getenv("PRICE_CURRENCY", "INR")
    PRICE_UNIT: str     = os.getenv("PRICE_UNIT", "kg")
    DEFAULT_PRICE_PER_KG: float = float(os.getenv("DEFAULT_PRICE_PER_KG", "16"))

    # --- Weather tool ---
    WEATHER_LIVE: bool   = os.getenv("WEATHER_LIVE", "1") == "1"
    WX_FORECAST_DAYS: int = int(os.getenv("WX_FORECAST_DAYS", "7"))

    # --- History store ---
    HISTORY_DB_URL: str = os.getenv("HISTORY_DB_URL", f"sqlite:///{REPO_ROOT / 'estimations.db'}")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Cache (geocoding only; tool results are never cached)
    GEOCODE_TTL_SEC: int = 24 * 3600

settings = Settings()
