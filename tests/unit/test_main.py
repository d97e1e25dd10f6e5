"""Unit tests for main CLI entry point."""

import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from org_archiver.exceptions import ConfigurationError
from org_archiver.main import main


@pytest.fixture(autouse=True)
def _remove_file_handlers():
    """Detach the log file handler each CLI invocation attaches."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def mock_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"""
version: "1.0"
source:
  service_account_path: "{tmp_path / 'source.json'}"
archive:
  service_account_path: "{tmp_path / 'archive.json'}"
defaults:
  batch_size: 500
  checkpoint_dir: "{tmp_path / 'checkpoints'}"
collections:
  - name: "Organizations"
    archive_name: "archive_Organizations"
  - name: "Contacts"
"""
    )
    return config_file


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


def _stats(status: str = "success") -> dict:
    return {
        "organization_id": "org-1",
        "dry_run": False,
        "collections_processed": 1 if status == "success" else 0,
        "collections_failed": 0 if status == "success" else 1,
        "collections_skipped": 0,
        "records_matched": 5,
        "records_archived": 5 if status == "success" else 2,
        "batches_processed": 3 if status == "success" else 1,
        "results": [],
        "status": status,
    }


def _invoke(runner: CliRunner, tmp_path: Path, args: list[str], stats: dict):
    """Invoke the CLI with Firestore and the archiver patched out."""
    with patch("org_archiver.main.FirestoreManager") as mock_manager_class, patch(
        "org_archiver.main.Archiver"
    ) as mock_archiver_class:
        mock_archiver = MagicMock()
        mock_archiver.archive = AsyncMock(return_value=stats)
        mock_archiver_class.return_value = mock_archiver

        result = runner.invoke(
            main, args + ["--log-file", str(tmp_path / "archive.log")]
        )
    return result, mock_manager_class, mock_archiver_class


def test_main_success(runner: CliRunner, mock_config_file: Path, tmp_path: Path) -> None:
    """Test successful main execution."""
    result, mock_manager_class, mock_archiver_class = _invoke(
        runner, tmp_path, ["--org", "org-1", "--config", str(mock_config_file)], _stats()
    )

    assert result.exit_code == 0, result.output
    assert "Archival completed successfully" in result.output
    assert mock_manager_class.call_count == 2
    assert mock_manager_class.return_value.connect.call_count == 2

    args, kwargs = mock_archiver_class.call_args
    assert args[1] == "org-1"
    assert kwargs["dry_run"] is False


def test_main_dry_run(runner: CliRunner, mock_config_file: Path, tmp_path: Path) -> None:
    """Test dry-run flag is passed to the archiver."""
    stats = _stats()
    stats["dry_run"] = True
    result, _, mock_archiver_class = _invoke(
        runner, tmp_path, ["-o", "org-1", "-d", "-c", str(mock_config_file)], stats
    )

    assert result.exit_code == 0, result.output
    assert mock_archiver_class.call_args.kwargs["dry_run"] is True
    assert "Would archive" in result.output


def test_main_partial_exits_nonzero(
    runner: CliRunner, mock_config_file: Path, tmp_path: Path
) -> None:
    """Test a partially archived run exits with code 1."""
    result, _, _ = _invoke(
        runner, tmp_path, ["--org", "org-1", "--config", str(mock_config_file)], _stats("partial")
    )

    assert result.exit_code == 1


def test_main_fatal_exits_nonzero(
    runner: CliRunner, mock_config_file: Path, tmp_path: Path
) -> None:
    """Test a fatal run exits with code 1."""
    result, _, _ = _invoke(
        runner, tmp_path, ["--org", "org-1", "--config", str(mock_config_file)], _stats("fatal")
    )

    assert result.exit_code == 1


def test_main_missing_org(runner: CliRunner) -> None:
    """Test the organization ID is required."""
    result = runner.invoke(main, [])

    assert result.exit_code != 0
    assert "--org" in result.output


def test_main_blank_org(runner: CliRunner, tmp_path: Path) -> None:
    """Test a blank organization ID is rejected before connecting."""
    with patch("org_archiver.main.FirestoreManager") as mock_manager_class:
        result = runner.invoke(
            main, ["--org", "  ", "--log-file", str(tmp_path / "archive.log")]
        )

    assert result.exit_code == 1
    mock_manager_class.assert_not_called()


def test_main_batch_size_out_of_range(runner: CliRunner) -> None:
    """Test batch sizes above the Firestore limit are rejected."""
    result = runner.invoke(main, ["--org", "org-1", "--batch-size", "501"])

    assert result.exit_code == 2


def test_main_overrides(runner: CliRunner, mock_config_file: Path, tmp_path: Path) -> None:
    """Test command-line overrides are applied to the loaded configuration."""
    live_key = tmp_path / "live-key.json"
    result, mock_manager_class, mock_archiver_class = _invoke(
        runner,
        tmp_path,
        [
            "--org",
            "org-1",
            "--config",
            str(mock_config_file),
            "--source-credentials",
            str(live_key),
            "--collection",
            "Contacts",
            "--batch-size",
            "50",
        ],
        _stats(),
    )

    assert result.exit_code == 0, result.output
    archiver_config = mock_archiver_class.call_args.args[0]
    assert archiver_config.source.service_account_path == live_key
    assert archiver_config.defaults.batch_size == 50
    assert [c.name for c in archiver_config.collections] == ["Contacts"]
    source_call = mock_manager_class.call_args_list[0]
    assert source_call.args[0].service_account_path == live_key


def test_main_unknown_collection(
    runner: CliRunner, mock_config_file: Path, tmp_path: Path
) -> None:
    """Test filtering on an unconfigured collection is a configuration error."""
    result, mock_manager_class, mock_archiver_class = _invoke(
        runner,
        tmp_path,
        ["--org", "org-1", "--config", str(mock_config_file), "--collection", "Invoices"],
        _stats(),
    )

    assert result.exit_code == 1
    mock_manager_class.assert_not_called()
    mock_archiver_class.assert_not_called()


def test_main_credentials_error(
    runner: CliRunner, mock_config_file: Path, tmp_path: Path
) -> None:
    """Test a missing project_id in a service account key aborts before any work."""
    with patch("org_archiver.main.FirestoreManager") as mock_manager_class, patch(
        "org_archiver.main.Archiver"
    ) as mock_archiver_class:
        mock_manager_class.return_value.connect.side_effect = ConfigurationError(
            'Service account JSON is missing "project_id"'
        )
        result = runner.invoke(
            main,
            [
                "--org",
                "org-1",
                "--config",
                str(mock_config_file),
                "--log-file",
                str(tmp_path / "archive.log"),
            ],
        )

    assert result.exit_code == 1
    mock_archiver_class.assert_not_called()


def test_main_real_credentials_missing_project_id(
    runner: CliRunner, service_account_file, tmp_path: Path
) -> None:
    """Test the real key loader rejects a key without project_id."""
    live_key = service_account_file("source", project_id=None)
    archive_key = service_account_file("archive", "archive-project")

    with patch("org_archiver.main.Archiver") as mock_archiver_class:
        result = runner.invoke(
            main,
            [
                "--org",
                "org-1",
                "--source-credentials",
                str(live_key),
                "--archive-credentials",
                str(archive_key),
                "--log-file",
                str(tmp_path / "archive.log"),
            ],
        )

    assert result.exit_code == 1
    mock_archiver_class.assert_not_called()


def test_main_invalid_config(runner: CliRunner, tmp_path: Path) -> None:
    """Test an invalid configuration file exits with code 1."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("defaults:\n  batch_size: 9999\n")

    result = runner.invoke(
        main,
        ["--org", "org-1", "--config", str(config_file), "--log-file", str(tmp_path / "a.log")],
    )

    assert result.exit_code == 1


def test_main_archive_exception(
    runner: CliRunner, mock_config_file: Path, tmp_path: Path
) -> None:
    """Test unexpected archiver exceptions exit with code 1."""
    with patch("org_archiver.main.FirestoreManager"), patch(
        "org_archiver.main.Archiver"
    ) as mock_archiver_class:
        mock_archiver_class.return_value.archive = AsyncMock(side_effect=RuntimeError("boom"))
        result = runner.invoke(
            main,
            [
                "--org",
                "org-1",
                "--config",
                str(mock_config_file),
                "--log-file",
                str(tmp_path / "archive.log"),
            ],
        )

    assert result.exit_code == 1


def test_main_writes_log_file(runner: CliRunner, mock_config_file: Path, tmp_path: Path) -> None:
    """Test log lines are appended to the log file."""
    _invoke(runner, tmp_path, ["--org", "org-1", "--config", str(mock_config_file)], _stats())

    for handler in logging.getLogger().handlers:
        handler.flush()
    assert (tmp_path / "archive.log").exists()
