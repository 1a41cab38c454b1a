"""
DAO Treasury TOML Configuration Loader

Loads every section of dao.toml with environment variable overrides
(dataclass + from_dict + from_file per section).

Environment variable mapping:
    [governance] quorum                  → DAO_QUORUM
    [governance] owner                   → DAO_OWNER
    [governance] allow_votes_on_terminal → DAO_ALLOW_VOTES_ON_TERMINAL
    [treasury]   initial_balance         → DAO_TREASURY_INITIAL_BALANCE
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..constants import (
    AMOUNT_CONTEXT,
    GOVERNANCE_ALLOW_VOTES_ON_TERMINAL,
    GOVERNANCE_DEFAULT_QUORUM,
    TOKEN_DEFAULT_NAME,
    TOKEN_DEFAULT_SYMBOL,
    parse_bool,
)
from ..crypto import is_valid_address
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _decimal(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return result


def _bool(value: Any, name: str) -> bool:
    parsed = parse_bool(value)
    if not isinstance(parsed, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")
    return parsed


def read_toml(path) -> Dict[str, Any]:
    """Parse a TOML file, raising ConfigurationError on syntax errors."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}") from e


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    quorum: Decimal = GOVERNANCE_DEFAULT_QUORUM
    owner: str = ""
    allow_votes_on_terminal: bool = GOVERNANCE_ALLOW_VOTES_ON_TERMINAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            quorum=_decimal(data.get("quorum", GOVERNANCE_DEFAULT_QUORUM), "governance.quorum"),
            owner=data.get("owner", ""),
            allow_votes_on_terminal=_bool(
                data.get("allow_votes_on_terminal", GOVERNANCE_ALLOW_VOTES_ON_TERMINAL),
                "governance.allow_votes_on_terminal",
            ),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("DAO_QUORUM"):
            self.quorum = _decimal(v, "DAO_QUORUM")
        if v := os.environ.get("DAO_OWNER"):
            self.owner = v
        if v := os.environ.get("DAO_ALLOW_VOTES_ON_TERMINAL"):
            self.allow_votes_on_terminal = _bool(v, "DAO_ALLOW_VOTES_ON_TERMINAL")

    def validate(self) -> None:
        if self.quorum < 0:
            raise ConfigurationError("governance.quorum must be >= 0")
        if self.owner and not is_valid_address(self.owner):
            raise ConfigurationError(f"Invalid governance.owner: {self.owner}")


@dataclass
class TreasurySectionConfig:
    """[treasury] section."""
    initial_balance: Decimal = field(default_factory=lambda: Decimal("0"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreasurySectionConfig":
        return cls(
            initial_balance=_decimal(data.get("initial_balance", 0), "treasury.initial_balance"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAO_TREASURY_INITIAL_BALANCE"):
            self.initial_balance = _decimal(v, "DAO_TREASURY_INITIAL_BALANCE")

    def validate(self) -> None:
        if self.initial_balance < 0:
            raise ConfigurationError("treasury.initial_balance must be >= 0")


@dataclass
class TokenSectionConfig:
    """[token] section, with [token.allocations] mapping holder → amount."""
    name: str = TOKEN_DEFAULT_NAME
    symbol: str = TOKEN_DEFAULT_SYMBOL
    total_supply: Decimal = field(default_factory=lambda: Decimal("0"))
    deployer: str = ""
    allocations: Dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSectionConfig":
        return cls(
            name=data.get("name", TOKEN_DEFAULT_NAME),
            symbol=data.get("symbol", TOKEN_DEFAULT_SYMBOL),
            total_supply=_decimal(data.get("total_supply", 0), "token.total_supply"),
            deployer=data.get("deployer", ""),
            allocations={
                holder: _decimal(amount, f"token.allocations.{holder}")
                for holder, amount in data.get("allocations", {}).items()
            },
        )

    def validate(self) -> None:
        if self.total_supply < 0:
            raise ConfigurationError("token.total_supply must be >= 0")
        if self.total_supply > 0 and not is_valid_address(self.deployer):
            raise ConfigurationError("token.deployer must be set when total_supply > 0")
        for holder, amount in self.allocations.items():
            if not is_valid_address(holder):
                raise ConfigurationError(f"Invalid allocation address: {holder}")
            if amount <= 0:
                raise ConfigurationError(f"Allocation for {holder} must be positive")
        with localcontext(AMOUNT_CONTEXT):
            allocated = sum(self.allocations.values(), Decimal("0"))
        if allocated > self.total_supply:
            raise ConfigurationError("token.allocations exceed token.total_supply")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class DAOConfig:
    """
    Unified DAO configuration.

    Loads every section of dao.toml and applies environment variable
    overrides.
    """
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)
    treasury: TreasurySectionConfig = field(default_factory=TreasurySectionConfig)
    token: TokenSectionConfig = field(default_factory=TokenSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        return cls(
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
            treasury=TreasurySectionConfig.from_dict(data.get("treasury", {})),
            token=TokenSectionConfig.from_dict(data.get("token", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        cfg = cls.from_dict(read_toml(path))
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        self.governance.apply_env()
        self.treasury.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.governance.validate()
        self.treasury.validate()
        self.token.validate()
        return True

    # --- wiring -----------------------------------------------------------

    def build(self, oracle=None, transfer_fn=None) -> Tuple[Any, Any]:
        """
        Create the configured token and ledger.

        Args:
            oracle:      WeightOracle to use instead of the configured token
            transfer_fn: Outbound transfer hook for the treasury

        Returns:
            (token, ledger); token is None when *oracle* is supplied
        """
        from ..governance import GovernanceLedger
        from ..tokens import GovernanceToken
        from ..treasury import Treasury

        self.validate()
        token = None
        if oracle is None:
            token = GovernanceToken(
                name=self.token.name,
                symbol=self.token.symbol,
                total_supply=self.token.total_supply,
                deployer=self.token.deployer,
            )
            token.distribute(self.token.allocations)
            oracle = token

        ledger = GovernanceLedger(
            oracle=oracle,
            quorum=self.governance.quorum,
            owner=self.governance.owner,
            treasury=Treasury(self.treasury.initial_balance, transfer_fn=transfer_fn),
            allow_votes_on_terminal=self.governance.allow_votes_on_terminal,
        )
        return token, ledger

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governance": {
                "quorum": str(self.governance.quorum),
                "owner": self.governance.owner,
                "allow_votes_on_terminal": self.governance.allow_votes_on_terminal,
            },
            "treasury": {
                "initial_balance": str(self.treasury.initial_balance),
            },
            "token": {
                "name": self.token.name,
                "symbol": self.token.symbol,
                "total_supply": str(self.token.total_supply),
                "deployer": self.token.deployer,
                "allocations": {h: str(a) for h, a in self.token.allocations.items()},
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load DAO configuration.

    Resolution order:
        1. Explicit *path* argument
        2. DAO_CONFIG env var
        3. ./dao.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("DAO_CONFIG", "dao.toml")

    return DAOConfig.from_file(path)
