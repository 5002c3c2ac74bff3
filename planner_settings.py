import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

DEFAULT_DATA_FILE = "db.json"
DEFAULT_TABLE = "planner_data"
STORAGE_MODES = ("file", "browser")
VIEW_MODES = ("Day", "Week", "Month", "Year")

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    data_path: str = DEFAULT_DATA_FILE
    storage_mode: str = "file"
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_table: str = DEFAULT_TABLE
    media_helper: str = ""
    log_level: str = "INFO"
    default_view: str = "Week"
    clock_seconds: int = 10

    @property
    def cloud_configured(self) -> bool:
        return bool(self.supabase_url) and bool(self.supabase_anon_key)


def supabase_cfg(secrets: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Supports BOTH secrets formats:

    A) Nested:
      [supabase]
      url = "..."
      anon_key = "..."
      table = "planner_data"

    B) Flat:
      SUPABASE_URL = "..."
      SUPABASE_ANON_KEY = "..."
      SUPABASE_TABLE = "planner_data"
    """
    empty = {"url": "", "anon_key": "", "table": DEFAULT_TABLE}
    if secrets is None:
        return empty

    try:
        s = secrets.get("supabase", {})
        if isinstance(s, Mapping) and (s.get("url") or s.get("anon_key") or s.get("table")):
            return {
                "url": str(s.get("url", "")).strip(),
                "anon_key": str(s.get("anon_key", "")).strip(),
                "table": str(s.get("table", DEFAULT_TABLE)).strip() or DEFAULT_TABLE,
            }

        return {
            "url": str(secrets.get("SUPABASE_URL", "")).strip(),
            "anon_key": str(secrets.get("SUPABASE_ANON_KEY", "")).strip(),
            "table": str(secrets.get("SUPABASE_TABLE", DEFAULT_TABLE)).strip() or DEFAULT_TABLE,
        }
    except Exception as e:
        # st.secrets raises when no secrets.toml exists
        logger.warning("Could not read secrets, cloud sync disabled: %s", e)
        return empty


def _coerce_int(x: Any, default: int) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def load_settings(
    secrets: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    env = os.environ if environ is None else environ
    cfg = supabase_cfg(secrets)

    storage_mode = env.get("PLANNER_STORAGE", "file").strip().lower()
    if storage_mode not in STORAGE_MODES:
        logger.warning("Unknown storage mode %r, using 'file'", storage_mode)
        storage_mode = "file"

    default_view = env.get("PLANNER_DEFAULT_VIEW", "Week").strip().capitalize()
    if default_view not in VIEW_MODES:
        default_view = "Week"

    return Settings(
        data_path=env.get("PLANNER_DATA_FILE", DEFAULT_DATA_FILE).strip() or DEFAULT_DATA_FILE,
        storage_mode=storage_mode,
        supabase_url=env.get("SUPABASE_URL", cfg["url"]).strip(),
        supabase_anon_key=env.get("SUPABASE_ANON_KEY", cfg["anon_key"]).strip(),
        supabase_table=env.get("SUPABASE_TABLE", cfg["table"]).strip() or DEFAULT_TABLE,
        media_helper=env.get("PLANNER_MEDIA_HELPER", "").strip(),
        log_level=env.get("PLANNER_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        default_view=default_view,
        clock_seconds=max(1, _coerce_int(env.get("PLANNER_CLOCK_SECONDS"), 10)),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
