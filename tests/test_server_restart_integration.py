"""Integration tests for ban persistence with a real HTTP server.

These tests start an actual Uvicorn server, get a client banned, restart the
server over the same ban file and check the ban is still enforced.
"""

import multiprocessing
import os
import socket
import time
from pathlib import Path
from typing import Callable, Generator

import httpx
import pytest
import uvicorn

ADMIN_KEY = "integration-admin-key"
CLIENT = {"X-Forwarded-For": "203.0.113.50"}
PROBE = {"X-Forwarded-For": "192.0.2.1"}


def run_server(port: int, env: dict[str, str]) -> None:
    """Run the app in a separate process with its own environment."""
    os.environ.update(env)

    from ipgate.core.app_factory import create_app
    from ipgate.core.config import Settings

    uvicorn.run(
        create_app(Settings()),
        host="127.0.0.1",
        port=port,
        log_level="error",
        access_log=False,
    )


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def server_env(tmp_path: Path) -> dict[str, str]:
    return {
        "ADMISSION_BAN_STORE_PATH": str(tmp_path / "data" / "banned-ips.json"),
        "ADMISSION_AUDIT_LOG_PATH": str(tmp_path / "logs" / "request-logs.log"),
        "ADMISSION_MAX_REQUESTS": "2",
        "ADMISSION_WINDOW_MS": "60000",
        "ADMIN_KEY": ADMIN_KEY,
        "LOG_LEVEL": "ERROR",
    }


@pytest.fixture
def start_server(server_env: dict[str, str]) -> Generator[Callable[[], tuple[str, multiprocessing.Process]], None, None]:
    """Start servers on demand; every process is terminated on teardown."""
    processes: list[multiprocessing.Process] = []

    def _start() -> tuple[str, multiprocessing.Process]:
        port = _free_port()
        process = multiprocessing.Process(target=run_server, args=(port, server_env), daemon=True)
        process.start()
        processes.append(process)

        base_url = f"http://127.0.0.1:{port}"
        max_retries = 50
        for attempt in range(max_retries):
            try:
                # Each probe comes from its own address so readiness checks never trip the limit.
                response = httpx.get(
                    f"{base_url}/health",
                    headers={"X-Forwarded-For": f"192.0.2.{100 + attempt}"},
                    timeout=1.0,
                )
                if response.status_code == 200:
                    break
            except (httpx.ConnectError, httpx.ReadTimeout):
                time.sleep(0.1)
        else:
            process.terminate()
            pytest.fail("Server failed to start")
        return base_url, process

    yield _start

    for process in processes:
        process.terminate()
        process.join(timeout=5)


def _stop(process: multiprocessing.Process) -> None:
    process.terminate()
    process.join(timeout=5)


class TestBanSurvivesRestart:
    def test_banned_client_stays_banned_after_restart(self, start_server, server_env) -> None:
        base_url, process = start_server()

        assert httpx.get(f"{base_url}/health", headers=CLIENT).status_code == 200
        assert httpx.get(f"{base_url}/health", headers=CLIENT).status_code == 200
        assert httpx.get(f"{base_url}/health", headers=CLIENT).status_code == 429

        _stop(process)
        assert Path(server_env["ADMISSION_BAN_STORE_PATH"]).is_file()

        base_url, _ = start_server()

        response = httpx.get(f"{base_url}/health", headers=CLIENT)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ip_banned"

        assert httpx.get(f"{base_url}/health", headers=PROBE).status_code == 200

    def test_unban_after_restart_restores_access(self, start_server) -> None:
        base_url, process = start_server()
        for _ in range(3):
            httpx.get(f"{base_url}/health", headers=CLIENT)
        _stop(process)

        base_url, _ = start_server()
        assert httpx.get(f"{base_url}/health", headers=CLIENT).status_code == 403

        response = httpx.post(
            f"{base_url}/admin/unban",
            headers={**PROBE, "X-Admin-Key": ADMIN_KEY},
            json={"ip": CLIENT["X-Forwarded-For"]},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert httpx.get(f"{base_url}/health", headers=CLIENT).status_code == 200
