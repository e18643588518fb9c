"""Tests for server/runner.py: server lock handling and uvicorn launch."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from docflow.config import DocflowConfig
from docflow.errors import AgentLoadError, ServerAlreadyRunning
from docflow.server.runner import (
    acquire_server_lock,
    release_server_lock,
    run_server,
    running_server,
    server_lock_path,
)

# Far above any default pid_max, so never a live process.
DEAD_PID = 2**22 + 12345


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("DOCFLOW_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


def _write_lock(data_dir: Path, **fields) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "server.lock").write_text(json.dumps(fields))


class TestServerLock:
    def test_path_under_data_dir(self, data_dir: Path):
        assert server_lock_path() == data_dir / "server.lock"

    def test_acquire_records_holder(self, tmp_path: Path):
        db_path = tmp_path / "flow.db"
        acquire_server_lock(DocflowConfig(port=41901), db_path)
        holder = running_server()
        assert holder is not None
        assert holder["port"] == 41901
        assert holder["pid"] == os.getpid()
        assert holder["db_path"] == str(db_path)
        assert "started_at" in holder

    def test_no_lock(self):
        assert running_server() is None

    def test_live_holder_blocks_second_server(self, data_dir: Path, tmp_path: Path):
        # The parent process is alive for the duration of the test.
        _write_lock(data_dir, port=41901, pid=os.getppid(), db_path="/srv/flow.db")
        with pytest.raises(ServerAlreadyRunning) as exc_info:
            acquire_server_lock(DocflowConfig(), tmp_path / "flow.db")
        assert exc_info.value.pid == os.getppid()
        assert "/srv/flow.db" in str(exc_info.value)

    def test_stale_lock_replaced(self, data_dir: Path, tmp_path: Path):
        _write_lock(data_dir, port=41901, pid=DEAD_PID, db_path="/srv/flow.db")
        assert running_server() is None
        assert not server_lock_path().exists()

        acquire_server_lock(DocflowConfig(port=41902), tmp_path / "flow.db")
        assert running_server()["port"] == 41902

    @pytest.mark.parametrize("content", ["{nope", '"just a string"', '{"port": 1}'])
    def test_unusable_lock_removed(self, data_dir: Path, content: str):
        data_dir.mkdir(parents=True)
        (data_dir / "server.lock").write_text(content)
        assert running_server() is None
        assert not server_lock_path().exists()

    def test_release_is_idempotent(self, tmp_path: Path):
        acquire_server_lock(DocflowConfig(), tmp_path / "flow.db")
        release_server_lock()
        release_server_lock()
        assert not server_lock_path().exists()


class TestRunServer:
    def test_runs_uvicorn_and_cleans_up(self, tmp_path: Path):
        config = DocflowConfig(db_path=str(tmp_path / "db" / "docflow.db"), port=41902)
        seen: dict = {}

        def fake_run(app, host, port):
            seen["lock"] = running_server()
            seen["host"] = host
            seen["port"] = port

        with patch("uvicorn.run", side_effect=fake_run), patch("signal.signal"):
            run_server(config)

        assert seen["host"] == "127.0.0.1"
        assert seen["port"] == 41902
        assert seen["lock"]["port"] == 41902
        assert (tmp_path / "db").is_dir()
        assert not server_lock_path().exists()

    def test_lock_removed_on_error(self, tmp_path: Path):
        config = DocflowConfig(db_path=str(tmp_path / "docflow.db"))
        with (
            patch("uvicorn.run", side_effect=RuntimeError("bind failed")),
            patch("signal.signal"),
        ):
            with pytest.raises(RuntimeError):
                run_server(config)
        assert not server_lock_path().exists()

    def test_refuses_when_another_server_is_live(self, data_dir: Path, tmp_path: Path):
        _write_lock(data_dir, port=41901, pid=os.getppid(), db_path="/srv/flow.db")
        config = DocflowConfig(db_path=str(tmp_path / "docflow.db"))
        with patch("uvicorn.run") as run, patch("signal.signal"):
            with pytest.raises(ServerAlreadyRunning):
                run_server(config)
        run.assert_not_called()
        assert running_server()["pid"] == os.getppid()

    def test_bad_agent_binding_leaves_no_lock(self, tmp_path: Path):
        config = DocflowConfig(
            db_path=str(tmp_path / "docflow.db"),
            agents={"analysis:analyst": "tests.sample_agents:missing"},
        )
        with patch("uvicorn.run") as run, patch("signal.signal"):
            with pytest.raises(AgentLoadError):
                run_server(config)
        run.assert_not_called()
        assert not server_lock_path().exists()
