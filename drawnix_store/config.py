from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


# drawnix_store/ -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Only files with this suffix are listed as stored documents.
DOCUMENT_SUFFIX = ".drawnix"
ENTRY_DOCUMENT = "index.html"

DEFAULT_PORT = 8080
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_LIST_MAX_DEPTH = 32
DEFAULT_BUILD_COMMAND = "npm run build:web"


def _env_str(environ: Mapping[str, str], key: str, default: str = "") -> str:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = _env_str(environ, key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _env_flag(environ: Mapping[str, str], key: str) -> bool:
    return _env_str(environ, key).lower() == "true"


def _default_build_command() -> tuple[str, ...]:
    parts = shlex.split(DEFAULT_BUILD_COMMAND)
    if os.name == "nt":
        parts[0] = "npm.cmd"
    return tuple(parts)


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once at startup.

    Components receive this object explicitly and never consult os.environ
    themselves.
    """

    storage_root: Path
    dist_dir: Path
    build_cwd: Path = PROJECT_ROOT
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    access_token: str = ""
    force_build: bool = False
    api_only: bool = False
    upload_dir: str = ""
    build_command: tuple[str, ...] = ()
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    list_max_depth: int = DEFAULT_LIST_MAX_DEPTH

    def __post_init__(self) -> None:
        # Containment checks compare against the resolved root.
        object.__setattr__(self, "storage_root", Path(self.storage_root).resolve())
        object.__setattr__(self, "dist_dir", Path(self.dist_dir).resolve())
        if not self.build_command:
            object.__setattr__(self, "build_command", _default_build_command())

    @property
    def entry_document(self) -> Path:
        return self.dist_dir / ENTRY_DOCUMENT

    @property
    def auth_required(self) -> bool:
        return bool(self.access_token)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        storage_raw = _env_str(env, "UPLOAD_BASE_DIR")
        dist_raw = _env_str(env, "DIST_DIR")
        cwd_raw = _env_str(env, "BUILD_CWD")
        command_raw = _env_str(env, "BUILD_COMMAND")
        # The token is compared verbatim; only a blank value disables auth.
        token = env.get("UPLOAD_TOKEN") or ""

        return cls(
            storage_root=Path(storage_raw) if storage_raw else PROJECT_ROOT / ".uploads",
            dist_dir=Path(dist_raw) if dist_raw else PROJECT_ROOT / "dist" / "apps" / "web",
            build_cwd=Path(cwd_raw) if cwd_raw else PROJECT_ROOT,
            port=_env_int(env, "PORT", DEFAULT_PORT),
            host=_env_str(env, "HOST", "0.0.0.0"),
            access_token=token if token.strip() else "",
            force_build=_env_flag(env, "FORCE_BUILD"),
            api_only=_env_flag(env, "API_ONLY"),
            upload_dir=_env_str(env, "UPLOAD_DIR"),
            build_command=tuple(shlex.split(command_raw)) if command_raw else (),
            max_upload_bytes=_env_int(env, "MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            list_max_depth=_env_int(env, "LIST_MAX_DEPTH", DEFAULT_LIST_MAX_DEPTH),
        )

    def ensure_dirs(self) -> None:
        self.storage_root.mkdir(parents=True, exist_ok=True)
