"""
Configuration Loader Test Suite

Coverage:
  - defaults when no file exists
  - TOML parsing of every section
  - environment overrides
  - validation errors
  - resolution order of load_config
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from womempower.config import DAOConfig, load_config
from womempower.constants import DAO_DEFAULT_ADMIN_AUTHORITY
from womempower.exceptions import ConfigurationError
from womempower.governance import GovernanceParameters


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ENV_KEYS = [
    "WOMEMPOWER_CONFIG",
    "WOMEMPOWER_QUORUM_PERCENT",
    "WOMEMPOWER_PROPOSAL_DURATION",
    "WOMEMPOWER_TOTAL_SUPPLY",
    "WOMEMPOWER_ADMIN_AUTHORITY",
    "WOMEMPOWER_STATE_FILE",
    "WOMEMPOWER_LOG_LEVEL",
]

SAMPLE_TOML = """
[governance]
quorum_percent = 40
proposal_duration = 10
total_supply = 5000
admin_authority = "SP1ALICE"

[issuance]
rate = 3
term = 24

[storage]
state_file = "state/dao.json"

[logging]
level = "debug"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def write_config(tmp_path, text=SAMPLE_TOML):
    path = tmp_path / "womempower.toml"
    path.write_text(text)
    return path


# ══════════════════════════════════════════════════════════════════════
#  LOADING
# ══════════════════════════════════════════════════════════════════════


class TestConfigLoading:

    def test_defaults_when_missing(self, tmp_path):
        cfg = DAOConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.governance.quorum_percent == 50
        assert cfg.governance.proposal_duration == 144
        assert cfg.governance.total_supply == 1000
        assert cfg.governance.admin_authority == DAO_DEFAULT_ADMIN_AUTHORITY
        assert (cfg.issuance.rate, cfg.issuance.term) == (5, 12)
        assert cfg.logging.level == "INFO"
        assert cfg.validate() is True

    def test_from_file(self, tmp_path):
        cfg = DAOConfig.from_file(str(write_config(tmp_path)))
        assert cfg.governance.quorum_percent == 40
        assert cfg.governance.admin_authority == "SP1ALICE"
        assert (cfg.issuance.rate, cfg.issuance.term) == (3, 24)
        assert cfg.storage.state_file == "state/dao.json"
        assert cfg.logging.level == "DEBUG"

    def test_partial_file(self, tmp_path):
        cfg = DAOConfig.from_file(str(write_config(tmp_path, "[governance]\nquorum_percent = 75\n")))
        assert cfg.governance.quorum_percent == 75
        assert cfg.governance.total_supply == 1000

    def test_invalid_toml(self, tmp_path):
        path = write_config(tmp_path, "[governance\nquorum_percent = ")
        with pytest.raises(ConfigurationError):
            DAOConfig.from_file(str(path))

    def test_to_parameters(self, tmp_path):
        cfg = DAOConfig.from_file(str(write_config(tmp_path)))
        assert cfg.to_parameters() == GovernanceParameters(
            quorum_percent=40, proposal_duration=10, total_supply=5000, admin_authority="SP1ALICE",
        )

    def test_to_dict(self):
        d = DAOConfig().to_dict()
        assert d["governance"]["quorum_percent"] == 50
        assert d["storage"]["state_file"].endswith(".json")


class TestEnvOverrides:

    def test_env_beats_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WOMEMPOWER_QUORUM_PERCENT", "65")
        monkeypatch.setenv("WOMEMPOWER_ADMIN_AUTHORITY", "SP2BOB")
        monkeypatch.setenv("WOMEMPOWER_STATE_FILE", "/tmp/other.json")
        monkeypatch.setenv("WOMEMPOWER_LOG_LEVEL", "warning")
        cfg = DAOConfig.from_file(str(write_config(tmp_path)))
        assert cfg.governance.quorum_percent == 65
        assert cfg.governance.admin_authority == "SP2BOB"
        assert cfg.storage.state_file == "/tmp/other.json"
        assert cfg.logging.level == "WARNING"
        assert cfg.governance.proposal_duration == 10

    def test_env_applies_without_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WOMEMPOWER_TOTAL_SUPPLY", "2500")
        cfg = DAOConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.governance.total_supply == 2500

    def test_non_integer_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WOMEMPOWER_PROPOSAL_DURATION", "soon")
        with pytest.raises(ConfigurationError, match="WOMEMPOWER_PROPOSAL_DURATION"):
            DAOConfig.from_file(str(tmp_path / "absent.toml"))


class TestConfigValidation:

    @pytest.mark.parametrize("section,field,value", [
        ("governance", "quorum_percent", 0),
        ("governance", "quorum_percent", 101),
        ("governance", "quorum_percent", 50.5),
        ("governance", "proposal_duration", 1.5),
        ("governance", "proposal_duration", 0),
        ("governance", "total_supply", -1),
        ("governance", "admin_authority", ""),
        ("issuance", "rate", -1),
        ("storage", "state_file", ""),
        ("logging", "level", "LOUD"),
    ])
    def test_invalid(self, section, field, value):
        cfg = DAOConfig()
        setattr(getattr(cfg, section), field, value)
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_wrong_type(self, tmp_path):
        cfg = DAOConfig.from_file(str(write_config(tmp_path, '[governance]\nquorum_percent = "half"\n')))
        with pytest.raises(ConfigurationError):
            cfg.validate()


class TestLoadConfig:

    def test_explicit_path(self, tmp_path):
        cfg = load_config(str(write_config(tmp_path)))
        assert cfg.governance.quorum_percent == 40

    def test_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WOMEMPOWER_CONFIG", str(write_config(tmp_path)))
        assert load_config().governance.total_supply == 5000

    def test_current_directory(self, tmp_path, monkeypatch):
        write_config(tmp_path)
        monkeypatch.chdir(tmp_path)
        assert load_config().issuance.term == 24

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config().governance.quorum_percent == 50
