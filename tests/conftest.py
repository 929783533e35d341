import socket
from typing import List

import pytest

from readygate.probes import ProbeKind, ProbeResult


class ScriptedProbe:
    """Probe double that replays scripted results, then repeats ``default``."""

    def __init__(self, *results: ProbeResult, default: ProbeResult = ProbeResult(ProbeKind.REFUSED)):
        self._results: List[ProbeResult] = list(results)
        self._default = default
        self.calls = 0

    async def attempt(self) -> ProbeResult:
        self.calls += 1
        if self._results:
            return self._results.pop(0)
        return self._default


@pytest.fixture
def scripted_probe():
    return ScriptedProbe


@pytest.fixture
def listening_port():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", 0))
    server.listen(16)
    try:
        yield server.getsockname()[1]
    finally:
        server.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch):
    for name in (
        "READYGATE_TIMEOUT",
        "READYGATE_INTERVAL",
        "READYGATE_CONNECT_TIMEOUT",
        "READYGATE_STATUS_INTERVAL",
        "READYGATE_FAIL_FAST_ON",
        "READYGATE_RETRY_ON",
        "READYGATE_HOSTS_FILE",
    ):
        # setenv first so teardown also removes values load_dotenv adds mid-test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
