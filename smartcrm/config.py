"""
Centralized Configuration - Single source of truth for all settings.

All environment variables are read here, validated, and exposed as module-level
constants. Other modules import from here instead of reading os.environ directly.

Usage:
    from smartcrm.config import DB_PATH, SYNC_INTERVAL_SECONDS, LOG_LEVEL
"""

import os
import sys

# ─── PATHS ───────────────────────────────────────────────────

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOGS_DIR = os.path.join(PROJECT_ROOT, "logs")

# ─── DATABASE ────────────────────────────────────────────────

DB_PATH = os.environ.get("SMARTCRM_DB_PATH", os.path.join(PROJECT_ROOT, "smartcrm.db"))
DB_JOURNAL_MODE = os.environ.get("SMARTCRM_JOURNAL_MODE", "WAL")

# ─── REMOTE ENTITY STORE ─────────────────────────────────────

CRM_API_BASE_URL = os.environ.get("CRM_API_BASE_URL", "http://localhost:3001/api")
CRM_API_KEY = os.environ.get("CRM_API_KEY", "")
CRM_API_TIMEOUT = int(os.environ.get("CRM_API_TIMEOUT_SECONDS", "30"))

# ─── SYNC ────────────────────────────────────────────────────

SYNC_INTERVAL_SECONDS = float(os.environ.get("SYNC_INTERVAL_SECONDS", "30"))
SYNC_MAX_RETRIES = int(os.environ.get("SYNC_MAX_RETRIES", "3"))
SYNC_MAX_AGE_DAYS = float(os.environ.get("SYNC_MAX_AGE_DAYS", "7"))
SYNC_CONFLICT_STRATEGY = os.environ.get("SYNC_CONFLICT_STRATEGY", "merge")

# ─── CONNECTIVITY ────────────────────────────────────────────

CONNECTIVITY_MODE = os.environ.get("CONNECTIVITY_MODE", "manual")  # "manual" or "probe"
CONNECTIVITY_PROBE_URL = os.environ.get(
    "CONNECTIVITY_PROBE_URL", CRM_API_BASE_URL.rstrip("/") + "/health"
)
CONNECTIVITY_PROBE_SECONDS = float(os.environ.get("CONNECTIVITY_PROBE_SECONDS", "10"))

# ─── API ─────────────────────────────────────────────────────

API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
CORS_ORIGINS = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,http://localhost:8000"
).split(",")

# ─── LOGGING ─────────────────────────────────────────────────

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "text" or "json"
LOG_FILE = os.environ.get("LOG_FILE", "")  # empty = stdout only

# ─── VALIDATION ──────────────────────────────────────────────

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_LOG_FORMATS = {"text", "json"}
_VALID_JOURNAL_MODES = {"WAL", "DELETE", "MEMORY", "OFF"}
_VALID_CONNECTIVITY_MODES = {"manual", "probe"}
_VALID_CONFLICT_STRATEGIES = {"server-wins", "local-wins", "merge", "manual", ""}

_errors = []

if LOG_LEVEL not in _VALID_LOG_LEVELS:
    _errors.append(f"LOG_LEVEL must be one of {_VALID_LOG_LEVELS}, got '{LOG_LEVEL}'")

if LOG_FORMAT not in _VALID_LOG_FORMATS:
    _errors.append(f"LOG_FORMAT must be one of {_VALID_LOG_FORMATS}, got '{LOG_FORMAT}'")

if DB_JOURNAL_MODE not in _VALID_JOURNAL_MODES:
    _errors.append(f"SMARTCRM_JOURNAL_MODE must be one of {_VALID_JOURNAL_MODES}, got '{DB_JOURNAL_MODE}'")

if CONNECTIVITY_MODE not in _VALID_CONNECTIVITY_MODES:
    _errors.append(f"CONNECTIVITY_MODE must be one of {_VALID_CONNECTIVITY_MODES}, got '{CONNECTIVITY_MODE}'")

if SYNC_CONFLICT_STRATEGY not in _VALID_CONFLICT_STRATEGIES:
    _errors.append(
        f"SYNC_CONFLICT_STRATEGY must be one of {_VALID_CONFLICT_STRATEGIES}, got '{SYNC_CONFLICT_STRATEGY}'"
    )

if CRM_API_TIMEOUT < 1:
    _errors.append(f"CRM_API_TIMEOUT_SECONDS must be positive, got {CRM_API_TIMEOUT}")

if SYNC_INTERVAL_SECONDS <= 0:
    _errors.append(f"SYNC_INTERVAL_SECONDS must be positive, got {SYNC_INTERVAL_SECONDS}")

if SYNC_MAX_RETRIES < 0:
    _errors.append(f"SYNC_MAX_RETRIES must not be negative, got {SYNC_MAX_RETRIES}")

if SYNC_MAX_AGE_DAYS <= 0:
    _errors.append(f"SYNC_MAX_AGE_DAYS must be positive, got {SYNC_MAX_AGE_DAYS}")

if _errors:
    for e in _errors:
        print(f"[config] ERROR: {e}", file=sys.stderr)
    # Don't crash during import - the CLI may only need part of the config


def validate(strict: bool = False) -> list:
    """Validate all configuration settings.

    Args:
        strict: If True, raise ValueError on any errors.

    Returns:
        List of error messages (empty if all valid).
    """
    if strict and _errors:
        raise ValueError(f"Configuration errors: {'; '.join(_errors)}")
    return list(_errors)


def as_dict() -> dict:
    """Current configuration without secrets."""
    return {
        "DB_PATH": DB_PATH,
        "DB_JOURNAL_MODE": DB_JOURNAL_MODE,
        "CRM_API_BASE_URL": CRM_API_BASE_URL,
        "CRM_API_KEY": "set" if CRM_API_KEY else "",
        "CRM_API_TIMEOUT": CRM_API_TIMEOUT,
        "SYNC_INTERVAL_SECONDS": SYNC_INTERVAL_SECONDS,
        "SYNC_MAX_RETRIES": SYNC_MAX_RETRIES,
        "SYNC_MAX_AGE_DAYS": SYNC_MAX_AGE_DAYS,
        "SYNC_CONFLICT_STRATEGY": SYNC_CONFLICT_STRATEGY,
        "CONNECTIVITY_MODE": CONNECTIVITY_MODE,
        "CONNECTIVITY_PROBE_URL": CONNECTIVITY_PROBE_URL,
        "CONNECTIVITY_PROBE_SECONDS": CONNECTIVITY_PROBE_SECONDS,
        "API_HOST": API_HOST,
        "API_PORT": API_PORT,
        "LOG_LEVEL": LOG_LEVEL,
        "LOG_FORMAT": LOG_FORMAT,
    }


def print_config():
    """Print current configuration (safe - no secrets)."""
    print("=" * 50)
    print("SmartCRM Sync Configuration")
    print("=" * 50)
    for key, value in as_dict().items():
        print(f"  {key + ':':<28}{value}")
    print(f"  {'PROJECT_ROOT:':<28}{PROJECT_ROOT}")
    print("=" * 50)
