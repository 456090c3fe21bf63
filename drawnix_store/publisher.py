from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable

from .config import Settings
from .errors import BuildFailed


logger = logging.getLogger(__name__)


class AssetPublisher:
    """Makes sure the built frontend exists before the server accepts requests.

    Two states: not ready, and ready. The build command runs synchronously,
    at most once per instance, when FORCE_BUILD is set or the entry document
    is missing. Once ready the asset directory is never rebuilt or reloaded.
    """

    def __init__(self, settings: Settings, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> None:
        self.settings = settings
        self._runner = runner
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def asset_dir(self) -> Path:
        return self.settings.dist_dir

    @property
    def entry_document(self) -> Path:
        return self.settings.entry_document

    def needs_build(self) -> bool:
        return self.settings.force_build or not self.entry_document.is_file()

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["VITE_UPLOAD_ENDPOINT"] = "/upload"
        # Optional values the client bundle may embed.
        if self.settings.access_token:
            env["VITE_UPLOAD_TOKEN"] = self.settings.access_token
        if self.settings.upload_dir:
            env["VITE_UPLOAD_DIR"] = self.settings.upload_dir
        return env

    def ensure_ready(self) -> None:
        if self._ready:
            return
        if not self.needs_build():
            logger.info("Frontend already built at %s", self.asset_dir)
            self._ready = True
            return

        command = list(self.settings.build_command)
        logger.info("Building frontend with /upload endpoint: %s", " ".join(command))
        try:
            result = self._runner(command, cwd=str(self.settings.build_cwd), env=self.build_env(), check=False)
        except OSError as e:
            logger.error("Build command could not be started: %s", e)
            raise BuildFailed(127, f"Build command could not be started: {e}") from e

        if result.returncode != 0:
            logger.error("Build failed with exit code %d", result.returncode)
            raise BuildFailed(result.returncode)
        if not self.entry_document.is_file():
            logger.error("Build finished but %s is missing", self.entry_document)
            raise BuildFailed(1, f"Build did not produce {self.entry_document}")

        self._ready = True
        logger.info("Frontend built at %s", self.asset_dir)
