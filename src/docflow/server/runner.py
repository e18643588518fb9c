"""Uvicorn launcher guarded by a server.lock file in the data directory.

The lock records which process serves which database, so a second `serve`
against the same data directory fails fast instead of racing the first
one for transitions.
"""

from __future__ import annotations

import json
import logging
import os
import signal
from datetime import UTC, datetime
from pathlib import Path

from docflow.config import DocflowConfig, get_data_dir, load_config
from docflow.errors import ServerAlreadyRunning

logger = logging.getLogger(__name__)


def server_lock_path() -> Path:
    return get_data_dir() / "server.lock"


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def acquire_server_lock(config: DocflowConfig, db_path: Path) -> Path:
    """Claim the data directory for this process; stale locks are replaced."""
    lock_path = server_lock_path()
    holder = running_server()
    if holder is not None and holder["pid"] != os.getpid():
        raise ServerAlreadyRunning(holder["port"], holder["pid"], holder.get("db_path", "?"))

    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(
        json.dumps(
            {
                "port": config.port,
                "pid": os.getpid(),
                "db_path": str(db_path),
                "started_at": datetime.now(UTC).isoformat(),
            }
        )
    )
    return lock_path


def running_server() -> dict | None:
    """Lock contents of a live server, or None. A dead holder's lock is removed."""
    lock_path = server_lock_path()
    try:
        holder = json.loads(lock_path.read_text())
    except FileNotFoundError:
        return None
    except json.JSONDecodeError:
        logger.warning(f"Removing unreadable server lock {lock_path}")
        lock_path.unlink(missing_ok=True)
        return None

    pid = holder.get("pid") if isinstance(holder, dict) else None
    if not isinstance(pid, int) or not _pid_alive(pid):
        logger.info(f"Removing stale server lock {lock_path}")
        lock_path.unlink(missing_ok=True)
        return None
    return holder


def release_server_lock() -> None:
    server_lock_path().unlink(missing_ok=True)


def run_server(config: DocflowConfig | None = None) -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    from docflow.server.app import create_app

    if config is None:
        config = load_config(Path.cwd() / ".docflow.json")

    db_path = Path(config.resolved_db_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # Bad agent bindings fail here, before the lock is written.
    app = create_app(str(db_path), config)

    acquire_server_lock(config, db_path)
    logger.info(f"Serving docflow on 127.0.0.1:{config.port} (db: {db_path})")

    def cleanup(signum, frame):
        release_server_lock()
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, cleanup)
    signal.signal(signal.SIGINT, cleanup)

    try:
        uvicorn.run(app, host="127.0.0.1", port=config.port)
    finally:
        release_server_lock()
