"""
DAO Treasury Constants

Logging settings read from ``.env`` plus the fixed governance, token and
amount parameters shared across the package.
"""
from decimal import Context, Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT (.env)
# =============================================================================
_env = dotenv_values(".env")


def parse_bool(value):
    """"true"/"false" in any casing become bools; anything else is returned as is."""
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return value


class ConfigString(str):
    """A .env string that remembers its built-in default."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


class ConfigBool(int):
    """A .env flag that behaves like a bool and remembers its built-in default."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__

    def __repr__(self):
        return repr(bool(self))

    __str__ = __repr__


def _setting(key: str, default: str):
    raw = _env.get(key)
    value = parse_bool(default if raw is None else raw)
    if isinstance(value, bool):
        return ConfigBool(value, parse_bool(default))
    return ConfigString(value, default)


LOG_LEVEL = _setting("LOG_LEVEL", "INFO")
LOG_FORMAT = _setting("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = _setting("LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = _setting("LOG_CONSOLE_HIGHLIGHTING", "True")
LOG_FILE_OUTPUT = _setting("LOG_FILE_OUTPUT", "False")

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# =============================================================================
# AMOUNTS
# =============================================================================
# Weights and funds are base units up to uint256 (78 digits); all ledger
# arithmetic runs in this context so sums and comparisons stay exact.
AMOUNT_PRECISION = 78
AMOUNT_CONTEXT = Context(prec=AMOUNT_PRECISION)

NULL_ADDRESS = "0x" + "00" * 20


# =============================================================================
# GOVERNANCE
# =============================================================================
# Vote choice encoding (int8 on the wire)
GOVERNANCE_VOTE_FOR = 1
GOVERNANCE_VOTE_AGAINST = -1
GOVERNANCE_VOTE_ABSTAIN = 2

# Registry value for an address that has not voted on a proposal
GOVERNANCE_NOT_VOTED = 0

GOVERNANCE_DEFAULT_QUORUM = Decimal("500000")
GOVERNANCE_ALLOW_VOTES_ON_TERMINAL = False

# Participation is reported as a percentage with two decimal places
GOVERNANCE_PARTICIPATION_PRECISION = Decimal("0.01")


# =============================================================================
# GOVERNANCE TOKEN
# =============================================================================
TOKEN_DEFAULT_NAME = "DAO Governance Token"
TOKEN_DEFAULT_SYMBOL = "DAOG"
TOKEN_DEFAULT_DECIMALS = 18
TOKEN_MAX_SUPPLY = Decimal(2**256 - 1)
