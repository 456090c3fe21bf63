from __future__ import annotations

import subprocess
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from drawnix_store.config import Settings
from drawnix_store.publisher import AssetPublisher
from server import create_app


INDEX_HTML = "<!doctype html><html><body><div id=\"root\"></div></body></html>"


class FakeBuild:
    """Stands in for subprocess.run; writes the entry document like a real build."""

    def __init__(self, dist_dir: Path, returncode: int = 0, produce: bool = True) -> None:
        self.dist_dir = dist_dir
        self.returncode = returncode
        self.produce = produce
        self.calls: list[dict] = []

    def __call__(self, command, **kwargs):
        self.calls.append({"command": command, **kwargs})
        if self.produce and self.returncode == 0:
            self.dist_dir.mkdir(parents=True, exist_ok=True)
            (self.dist_dir / "index.html").write_text(INDEX_HTML, encoding="utf-8")
        return subprocess.CompletedProcess(command, self.returncode)


@pytest.fixture
def dist_dir(tmp_path: Path) -> Path:
    d = tmp_path / "dist"
    d.mkdir()
    (d / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (d / "assets").mkdir()
    (d / "assets" / "app.js").write_text("console.log('drawnix');", encoding="utf-8")
    return d


@pytest.fixture
def make_settings(tmp_path: Path, dist_dir: Path):
    def _make(**overrides) -> Settings:
        values = {
            "storage_root": tmp_path / "uploads",
            "dist_dir": dist_dir,
            "build_cwd": tmp_path,
            "build_command": ("npm", "run", "build:web"),
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client(make_settings):
    clients: list[TestClient] = []

    def _make(runner=None, **overrides) -> TestClient:
        settings = make_settings(**overrides)
        publisher = None
        if not settings.api_only:
            publisher = AssetPublisher(settings, runner=runner or FakeBuild(settings.dist_dir))
        client = TestClient(create_app(settings, publisher=publisher))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    return tmp_path / "uploads"
