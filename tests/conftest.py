import os
import socket
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

# Prefer repo sources over any installed package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def block_network(monkeypatch):
    if os.getenv("LIVE") == "1":
        return

    real_connect = socket.socket.connect

    def guarded_connect(sock, address):
        host = address[0] if isinstance(address, tuple) else address
        if host not in ("127.0.0.1", "localhost"):
            raise RuntimeError("Network access blocked in tests")
        return real_connect(sock, address)

    monkeypatch.setattr(socket.socket, "connect", guarded_connect)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    from school_finder.api.routes.search import reset_result_cache
    from school_finder.settings import reset_settings_cache

    for name in list(os.environ):
        if name.startswith("SF_") or name in ("MAPS_API_KEY", "VITE_MAPS_API_KEY"):
            monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    reset_result_cache()
    yield
    reset_settings_cache()
    reset_result_cache()
