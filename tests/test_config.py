"""
TOML configuration loading, environment overrides and ledger wiring.
"""

import os
import sys
from decimal import Decimal

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daotreasury.config import DAOConfig, load_config, read_toml
from daotreasury.constants import GOVERNANCE_DEFAULT_QUORUM
from daotreasury.exceptions import ConfigurationError

ALICE = "0x" + "a1" * 20
DEPLOYER = "0x" + "f6" * 20

ENV_VARS = (
    "DAO_CONFIG",
    "DAO_QUORUM",
    "DAO_OWNER",
    "DAO_ALLOW_VOTES_ON_TERMINAL",
    "DAO_TREASURY_INITIAL_BALANCE",
)

SAMPLE = f"""
[governance]
quorum = "100"
owner = "{DEPLOYER}"
allow_votes_on_terminal = true

[treasury]
initial_balance = "25"

[token]
name = "Grant DAO"
symbol = "GDAO"
total_supply = "1000"
deployer = "{DEPLOYER}"

[token.allocations]
"{ALICE}" = "60"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def write_config(tmp_path, text=SAMPLE):
    path = tmp_path / "dao.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoading:

    def test_from_file(self, tmp_path):
        cfg = DAOConfig.from_file(str(write_config(tmp_path)))
        assert cfg.governance.quorum == Decimal("100")
        assert cfg.governance.allow_votes_on_terminal is True
        assert cfg.treasury.initial_balance == Decimal("25")
        assert cfg.token.symbol == "GDAO"
        assert cfg.token.allocations == {ALICE: Decimal("60")}
        assert cfg.validate()

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = DAOConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.governance.quorum == GOVERNANCE_DEFAULT_QUORUM
        assert cfg.governance.allow_votes_on_terminal is False
        assert cfg.treasury.initial_balance == Decimal("0")

    def test_numeric_toml_values(self, tmp_path):
        path = write_config(tmp_path, "[governance]\nquorum = 250\n[treasury]\ninitial_balance = 1.5\n")
        cfg = DAOConfig.from_file(str(path))
        assert cfg.governance.quorum == Decimal("250")
        assert cfg.treasury.initial_balance == Decimal("1.5")

    def test_malformed_toml(self, tmp_path):
        path = write_config(tmp_path, "[governance\nquorum = ")
        with pytest.raises(ConfigurationError):
            read_toml(path)

    def test_non_numeric_quorum(self):
        with pytest.raises(ConfigurationError):
            DAOConfig.from_dict({"governance": {"quorum": "lots"}})

    def test_non_boolean_flag(self):
        with pytest.raises(ConfigurationError):
            DAOConfig.from_dict({"governance": {"allow_votes_on_terminal": "maybe"}})

    def test_load_config_uses_dao_config_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAO_CONFIG", str(write_config(tmp_path)))
        assert load_config().treasury.initial_balance == Decimal("25")

    def test_load_config_defaults_to_cwd(self, tmp_path, monkeypatch):
        write_config(tmp_path)
        monkeypatch.chdir(tmp_path)
        assert load_config().governance.quorum == Decimal("100")


class TestEnvOverrides:

    def test_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAO_QUORUM", "7")
        monkeypatch.setenv("DAO_ALLOW_VOTES_ON_TERMINAL", "False")
        monkeypatch.setenv("DAO_TREASURY_INITIAL_BALANCE", "99")
        monkeypatch.setenv("DAO_OWNER", ALICE)
        cfg = DAOConfig.from_file(str(write_config(tmp_path)))
        assert cfg.governance.quorum == Decimal("7")
        assert cfg.governance.allow_votes_on_terminal is False
        assert cfg.governance.owner == ALICE
        assert cfg.treasury.initial_balance == Decimal("99")

    def test_bad_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAO_QUORUM", "NaN")
        with pytest.raises(ConfigurationError):
            DAOConfig.from_file(str(write_config(tmp_path)))


class TestValidation:

    def test_negative_quorum(self):
        with pytest.raises(ConfigurationError):
            DAOConfig.from_dict({"governance": {"quorum": "-1"}}).validate()

    def test_bad_owner(self):
        with pytest.raises(ConfigurationError):
            DAOConfig.from_dict({"governance": {"owner": "alice"}}).validate()

    def test_supply_without_deployer(self):
        with pytest.raises(ConfigurationError):
            DAOConfig.from_dict({"token": {"total_supply": "10"}}).validate()

    def test_allocations_exceed_supply(self):
        cfg = DAOConfig.from_dict({
            "token": {"total_supply": "10", "deployer": DEPLOYER, "allocations": {ALICE: "11"}},
        })
        with pytest.raises(ConfigurationError, match="exceed"):
            cfg.validate()


class TestBuild:

    def test_build_with_configured_token(self, tmp_path):
        token, ledger = DAOConfig.from_file(str(write_config(tmp_path))).build()
        assert token.balance_of(ALICE) == Decimal("60")
        assert token.balance_of(DEPLOYER) == Decimal("940")
        assert ledger.oracle is token
        assert ledger.quorum == Decimal("100")
        assert ledger.treasury_balance == Decimal("25")
        assert ledger.to_dict()["allowVotesOnTerminal"] is True

    def test_build_with_external_oracle(self, tmp_path):
        class Oracle:
            def balance_of(self, address):
                return Decimal("1")

        oracle = Oracle()
        token, ledger = DAOConfig.from_file(str(write_config(tmp_path))).build(oracle=oracle)
        assert token is None
        assert ledger.oracle is oracle

    def test_to_dict(self, tmp_path):
        data = DAOConfig.from_file(str(write_config(tmp_path))).to_dict()
        assert data["governance"]["quorum"] == "100"
        assert data["token"]["allocations"] == {ALICE: "60"}
