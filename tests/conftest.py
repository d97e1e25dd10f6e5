"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Optional

import pytest

from org_archiver.config import ArchiverConfig, RunConfig
from fakes import InMemoryFirestore, make_documents


@pytest.fixture
def source() -> InMemoryFirestore:
    """Live project holding documents for org-1 and org-2."""
    documents = make_documents("org-1", ["A", "B", "C", "D", "E"])
    documents.update(make_documents("org-2", ["X", "Y"]))
    return InMemoryFirestore(
        project_id="live-project",
        name="source",
        collections={"Organizations": documents},
    )


@pytest.fixture
def archive() -> InMemoryFirestore:
    """Empty archive project."""
    return InMemoryFirestore(project_id="archive-project", name="archive")


@pytest.fixture
def archiver_config(tmp_path: Path) -> ArchiverConfig:
    """Configuration with fast retries and checkpoints under tmp_path."""
    return ArchiverConfig.model_validate(
        {
            "version": "1.0",
            "source": {"service_account_path": str(tmp_path / "source.json")},
            "archive": {"service_account_path": str(tmp_path / "archive.json")},
            "defaults": {
                "batch_size": 2,
                "retry_attempts": 2,
                "retry_initial_delay": 0,
                "retry_max_delay": 0,
                "checkpoint_dir": str(tmp_path / "checkpoints"),
            },
            "collections": [
                {"name": "Organizations", "archive_name": "archive_Organizations"}
            ],
        }
    )


@pytest.fixture
def run_config() -> RunConfig:
    """Run configuration for org-1 with batch size 2."""
    return RunConfig(
        organization_id="org-1",
        live_collection="Organizations",
        archive_collection="archive_Organizations",
        batch_size=2,
    )


@pytest.fixture
def service_account_file(tmp_path: Path):
    """Factory writing a service account key file."""

    def _write(name: str, project_id: Optional[str] = "test-project") -> Path:
        info = {
            "type": "service_account",
            "client_email": f"{name}@example.iam.gserviceaccount.com",
            "private_key_id": "key-id",
            "private_key": "not-a-real-key",
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        if project_id is not None:
            info["project_id"] = project_id
        path = tmp_path / f"{name}.json"
        path.write_text(json.dumps(info), encoding="utf-8")
        return path

    return _write
