"""
WomEmpower DAO Constants

Governance defaults, proposal limits and issuance terms, plus the
logging settings read from ``.env`` at import time.
"""
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT (.env)
# =============================================================================
_env = dotenv_values(".env")


class ConfigString(str):
    """A setting read from .env that remembers its built-in default."""

    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


class ConfigBool(int):
    """Boolean setting read from .env that remembers its built-in default."""

    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    __str__ = __repr__

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


def parse_bool(value, default: bool) -> bool:
    """'true'/'false' in any case; anything else falls back to *default*."""
    if value is None:
        return default
    text = str(value).strip().casefold()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    return default


def _string_setting(key: str, default: str) -> ConfigString:
    raw = _env.get(key)
    return ConfigString(default if raw is None or not raw.strip() else raw, default)


def _bool_setting(key: str, default: bool) -> ConfigBool:
    return ConfigBool(parse_bool(_env.get(key), default), default)


LOG_LEVEL = _string_setting("LOG_LEVEL", "INFO")
LOG_FORMAT = _string_setting("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = _string_setting("LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = _bool_setting("LOG_CONSOLE_HIGHLIGHTING", True)
LOG_FILE_OUTPUT = _bool_setting("LOG_FILE_OUTPUT", False)

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# =============================================================================
# GOVERNANCE DEFAULTS
# =============================================================================
# Values the parameter store starts with when no config file overrides them.
DAO_DEFAULT_QUORUM_PERCENT = 50
DAO_DEFAULT_PROPOSAL_DURATION = 144  # ledger heights
DAO_DEFAULT_TOTAL_SUPPLY = 1000
DAO_DEFAULT_ADMIN_AUTHORITY = "SP000000000000000000002Q6VF78"

DAO_MIN_QUORUM_PERCENT = 1
DAO_MAX_QUORUM_PERCENT = 100


# =============================================================================
# PROPOSAL LIMITS
# =============================================================================
PROPOSAL_TITLE_MAX_LENGTH = 128
PROPOSAL_DESCRIPTION_MAX_LENGTH = 512

# First id handed out by the registry; ids are never reused.
PROPOSAL_FIRST_ID = 1


# =============================================================================
# LOAN ISSUANCE
# =============================================================================
# Fixed terms passed to the execution sink when a funded proposal passes.
LOAN_ISSUANCE_RATE = 5   # percent
LOAN_ISSUANCE_TERM = 12  # repayment periods


# =============================================================================
# EVENT JOURNAL
# =============================================================================
EVENT_PROPOSAL_CREATED = "proposal-created"
EVENT_VOTE_CAST = "vote-cast"
EVENT_PROPOSAL_EXECUTED = "proposal-executed"

JOURNAL_GENESIS_HASH = "00" * 32
JOURNAL_DIGEST_SIZE = 32  # blake2b-256

SNAPSHOT_FORMAT_VERSION = 1
