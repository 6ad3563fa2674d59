import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from loguru import logger
from typer.testing import CliRunner

from ownerstore.api import create_app
from ownerstore.cli.commands import app
from ownerstore.config.loader import load_config
from ownerstore.store import OwnerGuardedStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_log_sink():
    # The CLI points loguru at the runner's captured stderr.
    yield
    logger.remove()
    logger.add(sys.stderr)


def _config(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"storage": {"backend": "file", "dataDir": str(tmp_path / "data")}}),
        encoding="utf-8",
    )
    return path


def test_cli_init_set_get_events(tmp_path: Path) -> None:
    cfg = str(_config(tmp_path))

    init = runner.invoke(app, ["--config", cfg, "init", "--identity", "alice"])
    assert init.exit_code == 0, init.output
    assert "Owner bound" in init.output

    again = runner.invoke(app, ["--config", cfg, "init", "--identity", "mallory"])
    assert again.exit_code == 1
    assert "already initialized" in again.output

    set_result = runner.invoke(app, ["--config", cfg, "set", "--identity", "alice", "--value", "s3cr3t"])
    assert set_result.exit_code == 0, set_result.output
    assert "event #1" in set_result.output

    got = runner.invoke(app, ["--config", cfg, "get", "--identity", "alice"])
    assert got.exit_code == 0
    assert "s3cr3t" in got.output

    events = runner.invoke(app, ["--config", cfg, "events"])
    assert events.exit_code == 0
    assert "s3cr3t" not in events.output


def test_cli_get_as_other_identity_fails(tmp_path: Path) -> None:
    cfg = str(_config(tmp_path))
    runner.invoke(app, ["--config", cfg, "init", "--identity", "alice"])
    runner.invoke(app, ["--config", cfg, "set", "--identity", "alice", "--value", "v"])

    denied = runner.invoke(app, ["--config", cfg, "get", "--identity", "mallory"])
    assert denied.exit_code == 1
    assert "access denied" in denied.output
    assert "v\n" not in denied.output


def test_cli_set_reads_stdin_and_identity_env(tmp_path: Path) -> None:
    cfg = str(_config(tmp_path))
    env = {"OWNERSTORE_IDENTITY": "alice"}
    runner.invoke(app, ["--config", cfg, "init"], env=env)

    result = runner.invoke(app, ["--config", cfg, "set"], input="from-stdin", env=env)
    assert result.exit_code == 0, result.output

    got = runner.invoke(app, ["--config", cfg, "get"], env=env)
    assert "from-stdin" in got.output


def test_cli_status(tmp_path: Path) -> None:
    cfg = str(_config(tmp_path))
    assert "uninitialized" in runner.invoke(app, ["--config", cfg, "status"]).output
    runner.invoke(app, ["--config", cfg, "init", "--identity", "alice"])
    out = runner.invoke(app, ["--config", cfg, "status"]).output
    assert "initialized" in out and "uninitialized" not in out


def test_cli_reports_corrupt_owner_state_without_traceback(tmp_path: Path) -> None:
    cfg = str(_config(tmp_path))
    data = tmp_path / "data"
    data.mkdir()
    (data / "owner.json").write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["--config", cfg, "status"])
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "Traceback" not in result.output


def test_cli_padded_identity_matches_bearer_token(tmp_path: Path) -> None:
    cfg_path = _config(tmp_path)
    init = runner.invoke(app, ["--config", str(cfg_path), "init", "--identity", " tok"])
    assert init.exit_code == 0, init.output

    store = OwnerGuardedStore.from_config(load_config(cfg_path))
    client = TestClient(create_app(store))
    put = client.put("/api/secret", content=b"v", headers={"Authorization": "Bearer tok"})
    assert put.status_code == 200
