from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


ROOT_DIR = Path(__file__).resolve().parents[1]

# Values shipped in .env templates; treated as "not configured".
_PLACEHOLDER_KEYS = {
    "your-openai-api-key-here",
    "your-gemini-api-key-here",
    "your-groq-api-key-here",
}


class ServerSettings(BaseModel):
    environment: Literal["development", "production", "test"] = "development"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


class DatabaseSettings(BaseModel):
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "articlehub"
    server_selection_timeout_ms: int = 1500
    # Skip MongoDB entirely and keep everything in process memory.
    use_memory: bool = False


class AuthSettings(BaseModel):
    jwt_secret: str = Field(default="change-me", repr=False)
    jwt_algorithm: str = "HS256"
    token_expires_days: int = 7
    bcrypt_rounds: int = Field(default=10, ge=4, le=15)
    allow_role_selection: bool = False


class ProviderSettings(BaseModel):
    api_key: Optional[str] = Field(default=None, repr=False)
    base_url: str
    model: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.api_key not in _PLACEHOLDER_KEYS


def _openai_defaults() -> ProviderSettings:
    return ProviderSettings(base_url="https://api.openai.com/v1", model="gpt-3.5-turbo")


def _gemini_defaults() -> ProviderSettings:
    return ProviderSettings(
        base_url="https://generativelanguage.googleapis.com/v1beta",
        model="gemini-2.0-flash",
    )


def _groq_defaults() -> ProviderSettings:
    return ProviderSettings(base_url="https://api.groq.com/openai/v1", model="llama-3.1-8b-instant")


class LLMSettings(BaseModel):
    default_provider: str = "gemini"
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_input_chars: int = 10_000
    max_summary_chars: int = 500
    default_target_words: int = 150
    openai: ProviderSettings = Field(default_factory=_openai_defaults)
    gemini: ProviderSettings = Field(default_factory=_gemini_defaults)
    groq: ProviderSettings = Field(default_factory=_groq_defaults)


class RateLimitRule(BaseModel):
    limit: int = Field(ge=1)
    window_seconds: int = Field(ge=1)


class RateLimitSettings(BaseModel):
    enabled: bool = True
    summarize: RateLimitRule = Field(default_factory=lambda: RateLimitRule(limit=5, window_seconds=15 * 60))
    auth: RateLimitRule = Field(default_factory=lambda: RateLimitRule(limit=10, window_seconds=15 * 60))
    strict: RateLimitRule = Field(default_factory=lambda: RateLimitRule(limit=20, window_seconds=60 * 60))


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = "logs"
    summaries_jsonl: str = "summaries.jsonl"
    usage_json: str = "usage.json"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# env var -> dotted path into the settings tree
_ENV_OVERRIDES: dict[str, str] = {
    "ENVIRONMENT": "server.environment",
    "CORS_ORIGINS": "server.cors_origins",
    "MONGO_URL": "database.mongo_url",
    "DB_NAME": "database.db_name",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS": "database.server_selection_timeout_ms",
    "USE_MEMORY_STORE": "database.use_memory",
    "JWT_SECRET": "auth.jwt_secret",
    "JWT_EXPIRES_DAYS": "auth.token_expires_days",
    "AUTH_ALLOW_ROLE_SELECTION": "auth.allow_role_selection",
    "OPENAI_API_KEY": "llm.openai.api_key",
    "GEMINI_API_KEY": "llm.gemini.api_key",
    "GROQ_API_KEY": "llm.groq.api_key",
    "DEFAULT_LLM_PROVIDER": "llm.default_provider",
    "LLM_TIMEOUT_SECONDS": "llm.timeout_seconds",
    "RATE_LIMIT_ENABLED": "rate_limits.enabled",
    "ARTICLEHUB_LOG_DIR": "logging.log_dir",
    "LOG_LEVEL": "logging.level",
}


def _set_path(tree: dict[str, Any], dotted: str, value: Any) -> None:
    node = tree
    *parents, leaf = dotted.split(".")
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


def _apply_env(raw: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for env_name, dotted in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        if dotted == "server.cors_origins":
            _set_path(raw, dotted, [o.strip() for o in value.split(",") if o.strip()])
        elif dotted == "llm.default_provider":
            _set_path(raw, dotted, value.strip().lower())
        else:
            _set_path(raw, dotted, value)

    # Provider sub-trees must keep their defaults when only a key is supplied.
    llm = raw.get("llm", {})
    for name, factory in (("openai", _openai_defaults), ("gemini", _gemini_defaults), ("groq", _groq_defaults)):
        if name in llm:
            llm[name] = {**factory().model_dump(), **llm[name]}
    return raw


def load_settings(config_path: Optional[str | Path] = None, environ: Optional[dict[str, str]] = None) -> Settings:
    """Build the process-wide settings.

    Order of precedence (lowest first): model defaults, YAML file, environment.
    """
    if environ is None:
        load_dotenv(Path.cwd() / ".env", override=False)
        environ = dict(os.environ)

    if config_path is None:
        config_path = environ.get("ARTICLEHUB_CONFIG")
    path = Path(config_path) if config_path else ROOT_DIR / "config.yaml"

    raw: dict[str, Any] = {}
    if path.exists():
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return Settings.model_validate(_apply_env(raw, environ))
