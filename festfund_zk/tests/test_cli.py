"""
Test CLI commands end to end against a temporary database and circuit.
"""

import json

import pytest
from click.testing import CliRunner

from festfund_zk import __version__
from festfund_zk.cli import main


@pytest.fixture(scope="module")
def circuit_dir(tmp_path_factory):
    directory = tmp_path_factory.mktemp("cli-circuit")
    result = CliRunner().invoke(
        main, ["setup-circuit", "--output", str(directory), "--range-bits", "16"]
    )
    assert result.exit_code == 0, result.output
    return directory


@pytest.fixture
def run_cli(tmp_path, circuit_dir):
    """Run the CLI with a fresh database and the shared circuit."""
    database_url = f"sqlite:///{tmp_path / 'festfund.db'}"
    runner = CliRunner()
    env = {
        "FESTFUND_CIRCUIT_DIR": str(circuit_dir),
        "FESTFUND_PROOF_BACKEND": "local",
        "FESTFUND_SETTINGS_FILE": "",
    }

    def run(*args):
        return runner.invoke(main, ["--database-url", database_url, *args], env=env)

    return run


def _commit(run_cli, amount, secret, donor=None, event="fest-1"):
    args = ["commit", "--amount", str(amount), "--secret", secret, "--event", event, "--format", "json"]
    if donor:
        args += ["--donor", donor]
    result = run_cli(*args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_cli_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_setup_circuit_refuses_overwrite(circuit_dir):
    result = CliRunner().invoke(main, ["setup-circuit", "--output", str(circuit_dir)])
    assert result.exit_code == 1
    assert "already exist" in result.output


def test_commit_console_output(run_cli):
    result = run_cli("commit", "--amount", "100", "--secret", "s1", "--event", "fest-1")
    assert result.exit_code == 0, result.output
    assert "Commitment: 0x" in result.output
    assert "Stored:     True" in result.output


def test_commit_json_and_conflict(run_cli):
    receipt = _commit(run_cli, 100, "s1", donor="0xaaa")
    assert receipt["stored"] is True
    assert receipt["verificationLevel"] == "cryptographic"

    result = run_cli("commit", "--amount", "999", "--secret", "s1", "--event", "fest-1")
    assert result.exit_code == 1
    assert "Error" in result.output


def test_commit_rejects_bad_amount(run_cli):
    result = run_cli("commit", "--amount", "1.5", "--secret", "s1", "--event", "fest-1")
    assert result.exit_code == 1
    assert "amount" in result.output


def test_reveal_and_ranking(run_cli):
    a = _commit(run_cli, 100, "s1", donor="0xaaa")
    _commit(run_cli, 50, "s2", donor="0xbbb")

    result = run_cli(
        "reveal", "--commitment", a["commitmentHash"], "--donor", "0xaaa",
        "--amount", "100", "--secret", "s1",
    )
    assert result.exit_code == 0, result.output
    assert "proof-backed" in result.output

    result = run_cli("ranking", "--event", "fest-1", "--format", "json")
    assert result.exit_code == 0, result.output
    rows = json.loads(result.output)
    assert [row["rank"] for row in rows] == [1, 2]
    assert rows[0]["totalDonated"] == 100
    assert rows[1]["totalDonated"] is None
    assert all(row["isAnonymous"] for row in rows)

    result = run_cli("ranking", "--event", "fest-1")
    assert result.exit_code == 0, result.output
    assert "Anonymous #1" in result.output

    result = run_cli("user-rank", "--event", "fest-1", "--donor", "0xBBB")
    assert "Rank 2 of 2" in result.output


def test_reveal_twice_fails(run_cli):
    a = _commit(run_cli, 100, "s1", donor="0xaaa")
    args = ("reveal", "--commitment", a["commitmentHash"], "--donor", "0xaaa", "--amount", "100")
    first = run_cli(*args)
    assert first.exit_code == 0, first.output
    assert "unproven" in first.output

    second = run_cli(*args)
    assert second.exit_code == 1
    assert "already revealed" in second.output


def test_milestone_and_stats(run_cli):
    a = _commit(run_cli, 120, "s1", donor="0xaaa")
    run_cli("reveal", "--commitment", a["commitmentHash"], "--donor", "0xaaa", "--amount", "120")

    result = run_cli("verify-milestone", "--event", "fest-1", "--target", "100")
    assert result.exit_code == 0, result.output
    assert "achieved" in result.output
    assert "not achieved" not in result.output

    result = run_cli("verify-milestone", "--event", "fest-1", "--target", "0")
    assert result.exit_code == 1

    result = run_cli("stats", "--event", "fest-1", "--milestones", "50,100,200", "--target", "240")
    assert result.exit_code == 0, result.output
    assert "(next)" in result.output
    assert "Target: 50.0%" in result.output

    result = run_cli("stats", "--event", "fest-1", "--milestones", "200,100")
    assert result.exit_code == 1


def test_privacy_commands(run_cli):
    _commit(run_cli, 100, "s1", donor="0xaaa")

    result = run_cli("privacy", "get", "--event", "fest-1", "--donor", "0xaaa")
    assert result.exit_code == 0, result.output
    assert "reveal name:   False" in result.output

    result = run_cli(
        "privacy", "set", "--event", "fest-1", "--donor", "0xaaa",
        "--reveal-name", "--display-name", "Alice",
    )
    assert result.exit_code == 0, result.output
    assert "display name:  Alice" in result.output

    result = run_cli("ranking", "--event", "fest-1", "--format", "json")
    assert json.loads(result.output)[0]["displayName"] == "Alice"

    result = run_cli("privacy", "set", "--event", "other", "--donor", "0xaaa", "--reveal-name")
    assert result.exit_code == 1

    result = run_cli("privacy", "get", "--event", "fest-1", "--donor", "0xbbb")
    assert result.exit_code == 1


def test_status(run_cli):
    result = run_cli("status")
    assert result.exit_code == 0, result.output
    assert "available: True" in result.output


def test_status_with_missing_circuit(tmp_path):
    result = CliRunner().invoke(
        main,
        ["--database-url", f"sqlite:///{tmp_path / 'db'}", "status"],
        env={"FESTFUND_CIRCUIT_DIR": str(tmp_path / "missing"), "FESTFUND_SETTINGS_FILE": ""},
    )
    assert result.exit_code == 0, result.output
    assert "available: False" in result.output
