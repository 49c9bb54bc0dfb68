"""Tests for the command-line entry point."""

import json
from unittest.mock import MagicMock, patch

import pydantic
import pytest

from slurm_gpu_report import cli, slurmcli
from slurm_gpu_report.slurmcli import types


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep structlog in capture mode instead of the CLI's stderr setup."""
    with patch("slurm_gpu_report.cli.configure_logging") as mock:
        yield mock


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv(cli.CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock(spec=slurmcli.SlurmCommandClient)
    client.has_scontrol.return_value = False
    client.scontrol_command = "scontrol"
    client.get_inventory.return_value = [
        types.RawInventoryRow(node="gpu01", gres="gpu:a100:4", partition="gpuA"),
        types.RawInventoryRow(node="gpu02", gres="gpu:a100:2", partition="gpuA"),
    ]
    client.get_active_jobs.return_value = [
        types.RawActiveJobRow(
            nodelist="gpu01",
            gres="gres/gpu:a100:2",
            job_id="1001",
            user="alice",
            partition="gpuA",
        ),
    ]
    client.get_all_jobs.return_value = [
        types.RawJobRow(job_id="1001", user="alice", partition="gpuA", nodelist="gpu01", gres="gres/gpu:2"),
        types.RawJobRow(job_id="1002", user="bob", partition="gpuA", nodelist="(Priority)", gres="gres/gpu:1"),
    ]
    return client


@pytest.fixture
def patched_client(mock_client: MagicMock):
    with patch("slurm_gpu_report.cli.create_client", return_value=mock_client):
        yield mock_client


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def test_parser_only_records_explicit_flags():
    """Flags that were not given are absent from the namespace."""
    args = vars(cli.build_parser().parse_args(["--users"]))
    assert args == {"view": "users"}


def test_parser_csv_and_no_align():
    args = vars(cli.build_parser().parse_args(["--jobs", "--csv", "out.csv", "--no-align"]))
    assert args == {"view": "jobs", "csv_path": "out.csv", "align": False}


def test_unknown_flag_exits_one(capsys):
    """An unknown option is reported on stderr with exit status 1."""
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--bogus"])
    assert exc_info.value.code == 1
    captured = capsys.readouterr()
    assert "--bogus" in captured.err
    assert captured.out == ""


def test_conflicting_views_exit_one():
    """Views are mutually exclusive."""
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--nodes", "--users"])
    assert exc_info.value.code == 1


def test_help_exits_zero(capsys):
    """--help prints usage and exits 0."""
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--help"])
    assert exc_info.value.code == 0
    assert "--nodes" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_load_config_defaults():
    config = cli.load_config()
    assert config.view == "nodes"
    assert config.align is True
    assert config.timeout == slurmcli.DEFAULT_TIMEOUT
    assert config.csv_path is None


def test_load_config_file_with_overrides(tmp_path):
    """CLI overrides win over values from the JSON file."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"view": "jobs", "timeout": 5, "squeue_command": "/opt/squeue"}))

    config = cli.load_config(str(path), overrides={"view": "users"})

    assert config.view == "users"
    assert config.timeout == 5.0
    assert config.squeue_command == "/opt/squeue"


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        cli.load_config("/nonexistent/config.json")


def test_load_config_rejects_bad_values():
    with pytest.raises(pydantic.ValidationError):
        cli.load_config(overrides={"timeout": 0})
    with pytest.raises(pydantic.ValidationError):
        cli.load_config(overrides={"view": "partitions"})


def test_main_missing_config_file_exits_one(log_output):
    assert cli.main(["--config", "/nonexistent/config.json"]) == 1
    assert any(e["event"] == "Invalid configuration" for e in log_output)


def test_load_config_rejects_non_object_json(tmp_path):
    """A config file holding a JSON list is rejected."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(["--users"]))
    with pytest.raises(ValueError, match="JSON object"):
        cli.load_config(str(path))


def test_main_non_object_config_exits_one(tmp_path, log_output, capsys):
    """A non-object config is logged and exits 1 without a table."""
    path = tmp_path / "config.json"
    path.write_text("42")

    assert cli.main(["--config", str(path)]) == 1
    assert capsys.readouterr().out == ""
    assert any(e["event"] == "Invalid configuration" for e in log_output)


def test_main_malformed_json_config_exits_one(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert cli.main(["--config", str(path)]) == 1


def test_main_unreadable_config_exits_one(tmp_path, log_output):
    """A config path that cannot be read is logged and exits 1."""
    path = tmp_path / "config.json"
    path.write_text("{}")

    with patch("slurm_gpu_report.cli.pathlib.Path.open", side_effect=PermissionError("denied")):
        assert cli.main(["--config", str(path)]) == 1
    assert any(e["event"] == "Invalid configuration" for e in log_output)


def test_main_directory_as_config_exits_one(tmp_path):
    """A directory given as the config path is an error, not a traceback."""
    assert cli.main(["--config", str(tmp_path)]) == 1


def test_main_reads_config_from_env(monkeypatch, tmp_path, patched_client, capsys):
    """The config path falls back to the environment variable."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"view": "users"}))
    monkeypatch.setenv(cli.CONFIG_ENV_VAR, str(path))

    assert cli.main([]) == 0
    assert "NodeTokens" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Running views
# ---------------------------------------------------------------------------


def test_main_nodes_view_default(patched_client, capsys, no_logging_setup):
    """Without a view flag, the node table is printed."""
    assert cli.main([]) == 0

    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0].split() == [
        "Partition(s)",
        "Node",
        "GPU(Models)",
        "Total",
        "Alloc",
        "Idle",
        "Jobs",
        "JobIDs(User)",
    ]
    assert lines[1].split() == ["gpuA", "gpu01", "a100:4", "4", "2", "2", "1", "1001(alice)"]
    assert lines[2].split() == ["gpuA", "gpu02", "a100:2", "2", "0", "2", "0", "-"]
    no_logging_setup.assert_called_once_with("WARNING")


def test_main_jobs_view_tab_delimited(patched_client, capsys):
    assert cli.main(["--jobs", "--no-align"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("JobID\tUser\t")
    assert lines[2].split("\t") == ["1002", "bob", "gpuA", "", "", "", "", "1", "(Priority)"]
    patched_client.get_inventory.assert_not_called()


def test_main_users_view_with_csv(patched_client, tmp_path, capsys):
    target = tmp_path / "users.csv"
    assert cli.main(["--users", "--csv", str(target)]) == 0

    assert target.read_text().splitlines()[1] == '"alice","1","2","1","gpuA","1001","gpu01"'
    assert "CSV written to" in capsys.readouterr().err


def test_main_is_idempotent(patched_client, capsys):
    """Two runs over the same cluster state print identical tables."""
    cli.main(["--users"])
    first = capsys.readouterr().out
    cli.main(["--users"])
    assert capsys.readouterr().out == first


def test_main_empty_cluster_prints_header_only(patched_client, capsys):
    patched_client.get_inventory.return_value = []
    patched_client.get_active_jobs.return_value = []

    assert cli.main(["--nodes"]) == 0
    out = capsys.readouterr().out.strip().splitlines()
    assert len(out) == 1
    assert "Node" in out[0]


def test_main_slurm_failure_exits_one(patched_client, capsys, log_output):
    """A failing SLURM command aborts without printing a table."""
    patched_client.get_all_jobs.side_effect = slurmcli.SlurmCommandError("Command not found: squeue")

    assert cli.main(["--jobs"]) == 1
    assert capsys.readouterr().out == ""
    assert any(e["event"] == "SLURM query failed" for e in log_output)


def test_main_log_level_flag(patched_client, no_logging_setup):
    cli.main(["--log-level", "debug"])
    no_logging_setup.assert_called_once_with("debug")


def test_create_client_from_config():
    config = cli.ReportConfig(timeout=3, sinfo_command="/x/sinfo")
    client = cli.create_client(config)
    assert client.sinfo_command == "/x/sinfo"
    assert client.squeue_command == "squeue"
