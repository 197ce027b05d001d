"""
DAO CLI Test Suite

Coverage:
  - init / params / set-param
  - propose → vote → execute against a snapshot file
  - governance errors reported with their code
  - show, list, tally, events and verify output
"""

import json
import os
import sys

import pytest
from click.testing import CliRunner

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from womempower.cli.dao import cli
from womempower.constants import DAO_DEFAULT_ADMIN_AUTHORITY


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ADMIN = DAO_DEFAULT_ADMIN_AUTHORITY
ALICE = "SP1ALICE"
BOB = "SP2BOB"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("WOMEMPOWER_CONFIG", "WOMEMPOWER_STATE_FILE", "WOMEMPOWER_ADMIN_AUTHORITY",
                "WOMEMPOWER_QUORUM_PERCENT", "WOMEMPOWER_PROPOSAL_DURATION",
                "WOMEMPOWER_TOTAL_SUPPLY", "WOMEMPOWER_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


class DAORunner:
    """Invokes the CLI against one snapshot file."""

    def __init__(self, tmp_path):
        self.runner = CliRunner()
        self.state = tmp_path / "dao.json"
        self.config = tmp_path / "absent.toml"
        self.balances = tmp_path / "balances.json"
        self.balances.write_text(json.dumps({ALICE: 1000, BOB: 600}))

    def __call__(self, *args):
        return self.runner.invoke(
            cli,
            ["--config", str(self.config), "--state", str(self.state), "--log-level", "CRITICAL", *args],
        )

    def snapshot(self):
        return json.loads(self.state.read_text())


@pytest.fixture
def dao_cli(tmp_path):
    runner = DAORunner(tmp_path)
    result = runner("init")
    assert result.exit_code == 0, result.output
    return runner


def propose_and_pass(dao_cli):
    dao_cli("propose", "Loan for Amina", "Sewing co-op equipment",
            "--loan-id", "7", "--caller", ALICE, "--height", "0")
    return dao_cli("vote", "1", "yes", "600", "--caller", BOB, "--height", "10",
                   "--balances", str(dao_cli.balances))


# ══════════════════════════════════════════════════════════════════════
#  SETUP & PARAMETERS
# ══════════════════════════════════════════════════════════════════════


class TestInitAndParams:

    def test_init_writes_snapshot(self, dao_cli):
        data = dao_cli.snapshot()
        assert data["parameters"]["adminAuthority"] == ADMIN
        assert data["registry"]["proposalCount"] == 0

    def test_init_refuses_overwrite(self, dao_cli):
        result = dao_cli("init")
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert dao_cli("init", "--force").exit_code == 0

    def test_init_uses_config(self, tmp_path):
        runner = DAORunner(tmp_path)
        runner.config.write_text("[governance]\nquorum_percent = 30\n")
        assert runner("init").exit_code == 0
        assert runner.snapshot()["parameters"]["quorumPercent"] == 30

    def test_invalid_config(self, tmp_path):
        runner = DAORunner(tmp_path)
        runner.config.write_text("[governance]\nquorum_percent = 0\n")
        result = runner("init")
        assert result.exit_code == 1
        assert not runner.state.exists()

    def test_params(self, dao_cli):
        result = dao_cli("params")
        assert result.exit_code == 0
        assert "50%" in result.output
        assert ADMIN in result.output

    def test_set_param(self, dao_cli):
        result = dao_cli("set-param", "quorum-percent", "60", "--caller", ADMIN, "--height", "1")
        assert result.exit_code == 0, result.output
        assert dao_cli.snapshot()["parameters"]["quorumPercent"] == 60

    def test_set_param_unauthorized(self, dao_cli):
        result = dao_cli("set-param", "total-supply", "10", "--caller", ALICE, "--height", "1")
        assert result.exit_code == 1
        assert "UNAUTHORIZED (1000)" in result.output
        assert dao_cli.snapshot()["parameters"]["totalSupply"] == 1000

    def test_set_param_not_integer(self, dao_cli):
        result = dao_cli("set-param", "quorum-percent", "many", "--caller", ADMIN, "--height", "1")
        assert result.exit_code == 2

    def test_set_admin_authority(self, dao_cli):
        result = dao_cli("set-param", "admin-authority", ALICE, "--caller", ADMIN, "--height", "1")
        assert result.exit_code == 0
        assert dao_cli.snapshot()["parameters"]["adminAuthority"] == ALICE

    def test_missing_snapshot(self, tmp_path):
        result = DAORunner(tmp_path)("params")
        assert result.exit_code == 1
        assert "not found" in result.output


# ══════════════════════════════════════════════════════════════════════
#  LOAN FLOW
# ══════════════════════════════════════════════════════════════════════


class TestLoanFlow:

    def test_propose(self, dao_cli):
        result = dao_cli("propose", "Loan for Amina", "Sewing co-op equipment",
                         "--caller", ALICE, "--height", "0")
        assert result.exit_code == 0, result.output
        assert "Proposal #1 created" in result.output
        assert "height 144" in result.output

    def test_duplicate_title(self, dao_cli):
        dao_cli("propose", "Loan", "One", "--caller", ALICE, "--height", "0")
        result = dao_cli("propose", "Loan", "Two", "--caller", BOB, "--height", "1")
        assert result.exit_code == 1
        assert "PROPOSAL_EXISTS (1006)" in result.output

    def test_vote_and_execute(self, dao_cli):
        result = propose_and_pass(dao_cli)
        assert result.exit_code == 0, result.output

        result = dao_cli("execute", "1", "--caller", BOB, "--height", "145")
        assert result.exit_code == 0, result.output
        assert "Loan 7 issued" in result.output

        data = dao_cli.snapshot()
        assert data["registry"]["proposals"][0]["executed"] is True
        assert data["issuances"] == [{"loanId": 7, "rate": 5, "term": 12}]

    def test_execute_while_open(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("execute", "1", "--caller", BOB, "--height", "100")
        assert result.exit_code == 1
        assert "NOT_OPEN (1001)" in result.output

    def test_execute_twice(self, dao_cli):
        propose_and_pass(dao_cli)
        dao_cli("execute", "1", "--caller", BOB, "--height", "145")
        result = dao_cli("execute", "1", "--caller", BOB, "--height", "146")
        assert "ALREADY_EXECUTED (1011)" in result.output

    def test_vote_exceeding_balance(self, dao_cli):
        dao_cli("propose", "Loan", "One", "--caller", ALICE, "--height", "0")
        result = dao_cli("vote", "1", "no", "601", "--caller", BOB, "--height", "1",
                         "--balances", str(dao_cli.balances))
        assert result.exit_code == 1
        assert "INSUFFICIENT_BALANCE (1016)" in result.output
        assert dao_cli.snapshot()["votes"] == []

    def test_negative_height_rejected(self, dao_cli):
        result = dao_cli("propose", "Loan", "One", "--caller", ALICE, "--height", "-1")
        assert result.exit_code == 2


# ══════════════════════════════════════════════════════════════════════
#  READ COMMANDS
# ══════════════════════════════════════════════════════════════════════


class TestReadCommands:

    def test_show(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("show", "1", "--height", "50")
        assert result.exit_code == 0
        assert "Loan for Amina" in result.output
        assert "yes=600 no=0" in result.output
        assert "OPEN" in result.output

    def test_show_json(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("show", "1", "--json")
        data = json.loads(result.output)
        assert data["loanId"] == 7
        assert data["votes"][0]["voter"] == BOB

    def test_show_unknown(self, dao_cli):
        result = dao_cli("show", "9")
        assert result.exit_code == 1

    def test_list(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("list", "--height", "200")
        assert "#1" in result.output
        assert "CLOSED" in result.output

    def test_list_empty(self, dao_cli):
        assert "No proposals." in dao_cli("list").output

    def test_tally(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("tally", "1")
        assert result.exit_code == 0
        assert "600 / threshold 500" in result.output

    def test_tally_unknown(self, dao_cli):
        result = dao_cli("tally", "3")
        assert "PROPOSAL_NOT_FOUND (1007)" in result.output

    def test_events(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("events")
        assert "proposal-created" in result.output
        assert "vote-cast" in result.output

    def test_events_json(self, dao_cli):
        propose_and_pass(dao_cli)
        entries = json.loads(dao_cli("events", "--json").output)
        assert [e["seq"] for e in entries] == [0, 1]

    def test_verify(self, dao_cli):
        propose_and_pass(dao_cli)
        result = dao_cli("verify")
        assert result.exit_code == 0
        assert "Journal intact (2 events, 1 proposals)" in result.output

    def test_verify_detects_tampering(self, dao_cli):
        propose_and_pass(dao_cli)
        data = dao_cli.snapshot()
        data["journal"][1]["payload"]["amount"] = 1
        dao_cli.state.write_text(json.dumps(data))
        result = dao_cli("verify")
        assert result.exit_code == 1
        assert "verification failed" in result.output
