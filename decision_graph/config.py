from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_DEFAULT_DB_URL = "sqlite+pysqlite:///./decision_graph.db"
DEFAULT_STAT_NAMES: tuple[str, ...] = ("trust", "guard", "honesty", "vulnerability")


class Settings(BaseSettings):
    app_name: str = "decision_graph"
    env: str = "dev"
    database_url: str = DEV_DEFAULT_DB_URL

    dataset_path: Path = Path("data/decisions.json")
    dataset_url: str | None = None
    fetch_timeout_s: float = 10.0

    save_key: str = "decision_graph_state_v1"
    stat_names: list[str] = Field(default_factory=lambda: list(DEFAULT_STAT_NAMES))
    stat_min: int = 0
    stat_max: int = 100

    validate_on_load: bool = True
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(env_prefix="DECISION_GRAPH_", env_file=".env", extra="ignore")


def _is_sqlite_memory_url(db_url: str) -> bool:
    candidate = (db_url or "").strip().lower()
    if not candidate.startswith("sqlite"):
        return False
    if ":memory:" in candidate:
        return True
    return candidate in {
        "sqlite://",
        "sqlite:///",
        "sqlite+pysqlite://",
        "sqlite+pysqlite:///",
    }


def validate_database_url(env: str, db_url: str | None) -> str:
    env_value = (env or "").strip().lower()
    if env_value != "dev":
        return db_url or ""

    if not db_url or not db_url.strip():
        return DEV_DEFAULT_DB_URL

    if _is_sqlite_memory_url(db_url):
        raise RuntimeError(
            "DECISION_GRAPH_DATABASE_URL cannot be sqlite :memory: when ENV=dev because saves will disappear. "
            f"Set DECISION_GRAPH_DATABASE_URL={DEV_DEFAULT_DB_URL} or another file-based sqlite url."
        )
    return db_url


def validate_stat_bounds(stat_min: int, stat_max: int) -> tuple[int, int]:
    if stat_min > stat_max:
        raise RuntimeError(f"stat_min={stat_min} must not exceed stat_max={stat_max}")
    return stat_min, stat_max


settings = Settings()
settings.database_url = validate_database_url(settings.env, settings.database_url)
validate_stat_bounds(settings.stat_min, settings.stat_max)
