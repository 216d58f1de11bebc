"""
cubeclient shared configuration, constants, and module-level state.
Standalone module: no imports from other project files except exceptions.
"""

import os

from cubeclient.exceptions import CliError, SetupError  # noqa: F401  (re-exported)

# ---------------------------------------------------------------------------
# .env path and helpers
# ---------------------------------------------------------------------------

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_PACKAGE_DIR)

ENV_PATH = os.path.join(_PROJECT_ROOT, ".env")

_KNOWN_KEYS = (
    "CUBE_BUILD_MODE",
    "CUBE_SECRETS",
    "CUBE_BASE_URL",
    "CUBE_STATE_PATH",
    "CUBE_HTTP_TIMEOUT_SECONDS",
    "CUBE_HTTP_MAX_RESPONSE_BYTES",
    "CUBE_HTTP_LOG",
    "CUBE_HTTP_LOG_SAMPLE_RATE",
    "CUBE_SETTINGS_DEBOUNCE_SECONDS",
    "CUBE_APP_NAME",
    "CUBE_APP_VERSION",
    "CUBE_BUILD_NUMBER",
    "CUBE_GIT_SHA",
    "CUBE_MCP_RESPONSE_MODE",
)


def load_env():
    """Read KEY=VALUE pairs from .env, falling back to os.environ for known keys."""
    env = {}
    if os.path.exists(ENV_PATH):
        with open(ENV_PATH) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, val = line.split("=", 1)
                    env[key.strip()] = val.strip()
    for key in _KNOWN_KEYS:
        if key not in env and key in os.environ:
            env[key] = os.environ[key]
    return env


def _env_bool(key, default=False):
    """Parse common boolean env formats."""
    raw = env.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key, default):
    """Parse integer env values with fallback."""
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key, default):
    """Parse float env values with fallback."""
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_str(key):
    """Return a stripped env value, or None when unset or blank."""
    raw = env.get(key)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VERSION = "0.3.0"
CONTRACT_SCHEMA_VERSION = "1.0"

BUILD_MODE_DEBUG = "debug"
BUILD_MODE_PRODUCTION = "production"
VALID_BUILD_MODES = {BUILD_MODE_DEBUG, BUILD_MODE_PRODUCTION}

PRODUCTION_BASE_URL = "https://www.isowords.xyz"
DEFAULT_DEBUG_BASE_URL = "http://localhost:9876"

BASE_URL_KEY = "cubeclient.apiClient.baseUrl"
SESSION_KEY = "cubeclient.apiClient.currentPlayerEnvelope"

DEFAULT_APP_NAME = "cubeclient"

# ---------------------------------------------------------------------------
# Module-level state (loaded from .env)
# ---------------------------------------------------------------------------

env = load_env()

BUILD_MODE = (env.get("CUBE_BUILD_MODE") or BUILD_MODE_DEBUG).strip().lower()
SECRETS = env.get("CUBE_SECRETS", "")
DEBUG_BASE_URL = _env_str("CUBE_BASE_URL") or DEFAULT_DEBUG_BASE_URL
STATE_PATH = _env_str("CUBE_STATE_PATH") or os.path.join(_PROJECT_ROOT, ".cubeclient_state.json")
HTTP_TIMEOUT_SECONDS = _env_int("CUBE_HTTP_TIMEOUT_SECONDS", 30)
HTTP_MAX_RESPONSE_BYTES = _env_int("CUBE_HTTP_MAX_RESPONSE_BYTES", 5_000_000)
HTTP_LOG_ENABLED = _env_bool("CUBE_HTTP_LOG", False)
HTTP_LOG_SAMPLE_RATE = min(1.0, max(0.0, _env_float("CUBE_HTTP_LOG_SAMPLE_RATE", 1.0)))
SETTINGS_DEBOUNCE_SECONDS = max(0.0, _env_float("CUBE_SETTINGS_DEBOUNCE_SECONDS", 0.5))
MCP_RESPONSE_MODE = (env.get("CUBE_MCP_RESPONSE_MODE") or "legacy").strip().lower()

APP_NAME = _env_str("CUBE_APP_NAME")
APP_VERSION = _env_str("CUBE_APP_VERSION")
BUILD_NUMBER = _env_str("CUBE_BUILD_NUMBER")
GIT_SHA = _env_str("CUBE_GIT_SHA")


# ---------------------------------------------------------------------------
# Derived settings
# ---------------------------------------------------------------------------


def resolve_build_mode(value=None):
    """Validate a build mode string, defaulting to the configured BUILD_MODE."""
    mode = (value or BUILD_MODE).strip().lower()
    if mode not in VALID_BUILD_MODES:
        raise SetupError(
            f"[SETUP_NEEDED] Invalid build mode '{mode}'. "
            f"Valid: {', '.join(sorted(VALID_BUILD_MODES))}"
        )
    return mode


def load_secrets(raw=None):
    """Parse the comma-separated signing secret set.

    Order is significant: the first secret signs, every secret verifies.
    An empty set is a configuration error raised at startup.
    """
    raw = SECRETS if raw is None else raw
    if isinstance(raw, str):
        values = [s.strip() for s in raw.split(",")]
    else:
        values = [str(s).strip() for s in raw]
    secrets = tuple(s for s in values if s)
    if not secrets:
        raise SetupError(
            "[SETUP_NEEDED] No signing secrets configured.\n  Set CUBE_SECRETS in .env."
        )
    return secrets


def bundle_info():
    """Product metadata used to build the User-Agent header."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "build": BUILD_NUMBER,
        "git_sha": GIT_SHA,
    }
