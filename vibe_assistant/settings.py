# vibe_assistant/settings.py

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

logger = logging.getLogger("vibe_assistant")

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_PROMPTS_DIR = PACKAGE_DIR / "prompts"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://vibe-assistant.local",
    "X-Title": "Vibe Assistant",
}

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime configuration of the backend and the bot.

    Built once at process start (``Settings.from_env()``) and handed to the
    components that need it; tests construct it directly.
    """

    app_env: str = Field(default="development")
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3001)
    backend_url: str = Field(default="http://localhost:3001")
    bot_token: Optional[str] = None

    openai_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    default_model: Optional[str] = None
    ai_model: str = Field(default="gpt-4")
    max_tokens: int = Field(default=64000, ge=1)
    llm_timeout: float = Field(default=300.0, gt=0)

    prompts_dir: Path = Field(default=DEFAULT_PROMPTS_DIR)
    prompt_hot_reload: bool = Field(default=True)

    category_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    session_ttl_seconds: int = Field(default=24 * 3600, ge=1)
    session_sweep_interval: float = Field(default=3600.0, gt=0)

    log_level: str = Field(default="INFO")

    @property
    def uses_openrouter(self) -> bool:
        """OpenRouter model ids are namespaced ("vendor/model")."""
        return bool(self.default_model) and "/" in self.default_model

    @property
    def model_name(self) -> str:
        if self.uses_openrouter:
            return self.default_model
        return self.ai_model

    @property
    def llm_api_key(self) -> Optional[str]:
        if self.uses_openrouter:
            return self.openrouter_api_key or self.openai_api_key
        return self.openai_api_key

    @property
    def llm_base_url(self) -> Optional[str]:
        return OPENROUTER_BASE_URL if self.uses_openrouter else None

    @property
    def llm_default_headers(self) -> Optional[dict]:
        return dict(OPENROUTER_HEADERS) if self.uses_openrouter else None

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Recognised variables (all optional):
            APP_ENV (or NODE_ENV), BACKEND_HOST, BACKEND_PORT, BACKEND_URL, BOT_TOKEN,
            OPENAI_API_KEY, OPENROUTER_API_KEY, DEFAULT_MODEL, AI_MODEL, AI_MAX_TOKENS,
            LLM_TIMEOUT, PROMPTS_DIR, PROMPT_HOT_RELOAD, CATEGORY_CONFIDENCE_THRESHOLD,
            SESSION_TTL_SECONDS, SESSION_SWEEP_INTERVAL, LOG_LEVEL.
        """
        app_env = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
        is_production = app_env.lower() == "production"

        kwargs = {
            "app_env": app_env,
            "backend_host": os.getenv("BACKEND_HOST", "0.0.0.0"),
            "backend_port": int(os.getenv("BACKEND_PORT", "3001")),
            "backend_url": os.getenv("BACKEND_URL", "http://localhost:3001"),
            "bot_token": os.getenv("BOT_TOKEN") or None,
            "openai_api_key": os.getenv("OPENAI_API_KEY") or None,
            "openrouter_api_key": os.getenv("OPENROUTER_API_KEY") or None,
            "default_model": os.getenv("DEFAULT_MODEL") or None,
            "ai_model": os.getenv("AI_MODEL", "gpt-4"),
            "max_tokens": int(os.getenv("AI_MAX_TOKENS", "64000")),
            "llm_timeout": float(os.getenv("LLM_TIMEOUT", "300")),
            "prompt_hot_reload": _env_bool("PROMPT_HOT_RELOAD", not is_production),
            "category_confidence_threshold": float(os.getenv("CATEGORY_CONFIDENCE_THRESHOLD", "0.7")),
            "session_ttl_seconds": int(os.getenv("SESSION_TTL_SECONDS", str(24 * 3600))),
            "session_sweep_interval": float(os.getenv("SESSION_SWEEP_INTERVAL", "3600")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
        if os.getenv("PROMPTS_DIR"):
            kwargs["prompts_dir"] = Path(os.environ["PROMPTS_DIR"])

        return cls(**kwargs)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
    )
