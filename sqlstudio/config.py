import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr
from sqlalchemy.engine import URL


class ModelConfig(BaseModel):
    """
    Configuration for the chat model behind the hint service.

    Mirrors the supported LangChain chat model wrappers; a missing api_key
    means hints fall back to the deterministic generator.
    """

    provider: str = "openai"  # openai, anthropic, google
    model_name: str = "gpt-4o-mini"
    api_key: Optional[SecretStr] = None

    temperature: float = 0.7
    max_output_tokens: Optional[int] = 500
    timeout_s: Optional[float] = None

    # Escape hatch for provider-specific options
    extra: Dict[str, Any] = Field(default_factory=dict)


class SandboxConfig(BaseModel):
    """Limits applied to every student query."""

    statement_timeout_ms: int = Field(default=2000, gt=0)
    lock_timeout_ms: int = Field(default=2000, gt=0)
    row_limit: int = Field(default=500, gt=0)


class DatabaseConfig(BaseModel):
    """
    Sandbox database pool. The url should authenticate as a read-only role.
    """

    url: SecretStr
    max_size: int = Field(default=10, gt=0)
    idle_timeout_ms: int = Field(default=30000, gt=0)
    connect_timeout_ms: int = Field(default=2000, gt=0)


class CatalogConfig(BaseModel):
    mongo_uri: str = "mongodb://localhost:27017"
    database: str = "sqlstudio"
    collection: str = "assignments"


class StudioConfig(BaseModel):
    """
    Top-level configuration for the studio backend.
    """

    database: DatabaseConfig
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)

    frontend_url: str = "http://localhost:5173"

    # Logging / tracing
    verbose: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True
    ) -> "StudioConfig":
        """
        Build the config from environment variables (optionally seeded from .env).
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        sandbox = SandboxConfig(
            statement_timeout_ms=_int_env(environ, "QUERY_STATEMENT_TIMEOUT_MS", 2000),
            lock_timeout_ms=_int_env(environ, "QUERY_LOCK_TIMEOUT_MS", 2000),
            row_limit=_int_env(environ, "QUERY_ROW_LIMIT", 500),
        )

        database = DatabaseConfig(
            url=SecretStr(_database_url(environ)),
            max_size=_int_env(environ, "PG_POOL_MAX", 10),
            idle_timeout_ms=_int_env(environ, "PG_POOL_IDLE_TIMEOUT_MS", 30000),
            connect_timeout_ms=_int_env(environ, "PG_POOL_CONNECT_TIMEOUT_MS", 2000),
        )

        catalog = CatalogConfig(
            mongo_uri=environ.get("MONGO_URI", "mongodb://localhost:27017"),
            database=environ.get("MONGO_DATABASE", "sqlstudio"),
        )

        provider = environ.get("LLM_PROVIDER", "openai").lower()
        api_key = environ.get(f"{provider.upper()}_API_KEY")
        model = ModelConfig(
            provider=provider,
            model_name=environ.get("LLM_MODEL", "gpt-4o-mini"),
            api_key=SecretStr(api_key) if api_key else None,
        )

        return cls(
            database=database,
            sandbox=sandbox,
            catalog=catalog,
            model=model,
            frontend_url=environ.get("FRONTEND_URL", "http://localhost:5173"),
            verbose=environ.get("SQLSTUDIO_VERBOSE", "").lower() in ("1", "true", "yes"),
        )


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    # Unset, unparseable and zero values all mean "use the default".
    raw = environ.get(name)
    try:
        value = int(raw) if raw is not None else 0
    except ValueError:
        return default
    return value or default


def _database_url(environ: Mapping[str, str]) -> str:
    url = environ.get("SANDBOX_DATABASE_URL")
    if url:
        return url

    url = URL.create(
        "postgresql+asyncpg",
        username=environ.get("PG_USER", "sandbox_reader"),
        password=environ.get("PG_PASSWORD") or None,
        host=environ.get("PG_HOST", "localhost"),
        port=_int_env(environ, "PG_PORT", 5432),
        database=environ.get("PG_DATABASE", "sandbox"),
    )
    return url.render_as_string(hide_password=False)
