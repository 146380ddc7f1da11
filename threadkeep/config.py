"""Single source of truth for all configuration and secrets.

All modules import from here, never from os.environ directly.

Values are read from secrets/internal.env (plain dotenv) or, with
THREADKEEP_USE_SOPS=true, from the SOPS-encrypted secrets/internal.env.enc.
Real environment variables win over file values so a scheduled job can
override a single key without editing the file.
"""

import os
import subprocess
from io import StringIO
from pathlib import Path

from dotenv import dotenv_values

from threadkeep.schemas.archive import ArchiveSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent

USE_SOPS = os.environ.get("THREADKEEP_USE_SOPS", "false").lower() == "true"


def _decrypt_sops(path: Path) -> dict[str, str | None]:
    """Decrypt a SOPS-encrypted dotenv file.

    Raises:
        FileNotFoundError: If the encrypted file does not exist.
        subprocess.CalledProcessError: If SOPS decryption fails.
    """
    if not path.exists():
        raise FileNotFoundError(f"Encrypted secrets file not found: {path}")
    result = subprocess.run(
        ["sops", "--decrypt", str(path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return dict(dotenv_values(stream=StringIO(result.stdout)))


def _load(scope: str) -> dict[str, str | None]:
    """Load file-backed settings for a scope, overlaid with the environment."""
    if USE_SOPS:
        values = _decrypt_sops(PROJECT_ROOT / f"secrets/{scope}.env.enc")
    else:
        path = PROJECT_ROOT / f"secrets/{scope}.env"
        values = dict(dotenv_values(path)) if path.exists() else {}
    return {**values, **os.environ}


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


_internal = _load("internal")

# --- Model gateway ---
GEMINI_API_KEY: str = _internal.get("GEMINI_API_KEY") or ""
GEMINI_MODEL_NAME: str = _internal.get("GEMINI_MODEL_NAME") or ""
GEMINI_BASE_URL: str = (
    _internal.get("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com/v1beta"
)

# --- Thread selection ---
GMAIL_PRIMARY_QUERY: str = _internal.get("GMAIL_PRIMARY_QUERY") or "cvs-"
TAB_MATCHING_LABEL_PREFIX: str = _internal.get("TAB_MATCHING_LABEL_PREFIX") or ""
INTERNAL_DOMAIN: str = _internal.get("INTERNAL_DOMAIN") or "google.com"
CHECK_LAST_DAYS: int = int(_internal.get("CHECK_LAST_DAYS") or "1")
APPEND_AT_TOP: bool = _as_bool(_internal.get("APPEND_AT_TOP"), True)
ARCHIVE_TIMEZONE: str = _internal.get("ARCHIVE_TIMEZONE") or "UTC"

# --- Tasks ---
GOOGLE_TASKS_LIST_NAME: str = _internal.get("GOOGLE_TASKS_LIST_NAME") or ""
USER_TASK_ALIASES: list[str] = _as_list(_internal.get("USER_TASK_ALIASES"))

# --- Local state ---
ARCHIVE_DOCUMENT_PATH: str = _internal.get(
    "ARCHIVE_DOCUMENT_PATH", str(PROJECT_ROOT / "data" / "archive.json")
)
STATE_DB_PATH: str = _internal.get("STATE_DB_PATH", str(PROJECT_ROOT / "data" / "state.db"))
AUDIT_LOG_PATH: str = _internal.get(
    "AUDIT_LOG_PATH", str(PROJECT_ROOT / "data" / "archive_audit.jsonl")
)

# --- Google OAuth ---
GOOGLE_CLIENT_SECRET_FILE: str = _internal.get(
    "GOOGLE_CLIENT_SECRET_FILE", str(PROJECT_ROOT / "secrets" / "google_oauth_client.json")
)
GOOGLE_TOKEN_FILE: str = _internal.get(
    "GOOGLE_TOKEN_FILE", str(PROJECT_ROOT / "secrets" / "google_token.json")
)


def load_archive_settings() -> ArchiveSettings:
    """Bundle the per-run configuration surface."""
    return ArchiveSettings(
        primary_query=GMAIL_PRIMARY_QUERY,
        label_prefix=TAB_MATCHING_LABEL_PREFIX,
        internal_domain=INTERNAL_DOMAIN,
        lookback_days=CHECK_LAST_DAYS,
        append_at_top=APPEND_AT_TOP,
        task_list_name=GOOGLE_TASKS_LIST_NAME,
        user_aliases=USER_TASK_ALIASES,
        timezone=ARCHIVE_TIMEZONE,
        model_api_key=GEMINI_API_KEY,
        model_name=GEMINI_MODEL_NAME,
    )
