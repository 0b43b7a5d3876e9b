# storechat/config.py
from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel

# Load .env locally (no-op when the file is absent)
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", ""}


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./storechat.db")

    llm_enabled: bool = _flag("LLM_ENABLED", "1")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "").strip()
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")
    jwt_expire_min: int = int(os.getenv("JWT_EXPIRE_MIN", "1440"))  # 24h

    currency: str = os.getenv("CURRENCY", "INR").upper()
    match_threshold: float = float(os.getenv("MATCH_THRESHOLD", "0.80"))
    max_alternatives: int = int(os.getenv("MAX_ALTERNATIVES", "3"))
    commit_attempts: int = int(os.getenv("COMMIT_ATTEMPTS", "2"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def llm_ready(self) -> bool:
        return self.llm_enabled and bool(self.openai_api_key)


settings = Settings()
