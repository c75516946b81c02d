import asyncio

import pytest
from fastapi.staticfiles import StaticFiles
from fastapi.testclient import TestClient

from clipdrop.core.config import settings
from clipdrop.main import app
from clipdrop.services import downloader as downloader_module
from clipdrop.services.downloader import downloader


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, returncode=0, stdout=b"", stderr=b"", delay=0.0):
        self.pid = 4242
        self.returncode = None
        self.killed = False
        self._rc = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._delay = delay

    async def communicate(self):
        await asyncio.sleep(self._delay)
        self.returncode = self._rc
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


class FakeSpawner:
    """Replaces create_subprocess_exec and records every command it gets."""

    def __init__(self):
        self.calls = []
        self.processes = []
        self.returncode = 0
        self.stdout = b""
        self.stderr = b""
        self.delay = 0.0
        self.write_output = True
        self.write_partial = False

    async def __call__(self, *cmd, **kwargs):
        self.calls.append(list(cmd))
        output_path = cmd[cmd.index('-o') + 1]
        if self.write_partial:
            with open(output_path + '.part', 'wb') as f:
                f.write(b'partial')
        if self.write_output and self.returncode == 0 and self.delay == 0:
            with open(output_path, 'wb') as f:
                f.write(b'video')
        proc = FakeProcess(self.returncode, self.stdout, self.stderr, self.delay)
        self.processes.append(proc)
        return proc


@pytest.fixture
def spawner(monkeypatch, tmp_path):
    fake = FakeSpawner()
    monkeypatch.setattr(downloader_module.asyncio, "create_subprocess_exec", fake)
    monkeypatch.setattr(downloader, "download_dir", str(tmp_path))
    monkeypatch.setattr(downloader, "_semaphore", None)
    return fake


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def short_timeouts(monkeypatch):
    monkeypatch.setattr(settings, "TIKTOK_TIMEOUT_MS", 100)
    monkeypatch.setattr(settings, "DEFAULT_TIMEOUT_MS", 100)


@pytest.fixture
def served_file(monkeypatch, tmp_path):
    """Points the /downloads mount at tmp_path and drops one file there."""
    mount = next(r for r in app.routes if getattr(r, "name", None) == "downloads")
    monkeypatch.setattr(mount, "app", StaticFiles(directory=str(tmp_path)))
    name = "video_1.mp4"
    (tmp_path / name).write_bytes(b"fake mp4 bytes")
    return name
