from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from drawnix_store.config import ENTRY_DOCUMENT, Settings
from drawnix_store.errors import BuildFailed, InvalidBody, NotFound, PayloadTooLarge, StoreError
from drawnix_store.publisher import AssetPublisher
from drawnix_store.security import require_authorized
from drawnix_store.store import DocumentStore


logger = logging.getLogger("drawnix_store.server")

API_PATHS = ("/upload", "/files", "/file")


class UploadRequest(BaseModel):
    filename: Optional[str] = None
    content: Optional[str] = None
    dir: Optional[str] = None


class UploadResponse(BaseModel):
    ok: bool = True
    path: str
    size: int


class FileEntry(BaseModel):
    name: str
    relativePath: str
    dir: str
    size: int
    mtime: float


class FilesResponse(BaseModel):
    ok: bool = True
    files: list[FileEntry]


class FileContentResponse(BaseModel):
    ok: bool = True
    name: str
    relativePath: str
    content: str


class SPAStaticFiles(StaticFiles):
    """Static files where any unknown path gets the entry document.

    Lets the frontend do its own client-side routing.
    """

    def __init__(self, *, directory: Path, entry_document: str = ENTRY_DOCUMENT) -> None:
        # The directory may not exist yet; the publisher builds it at startup.
        super().__init__(directory=str(directory), html=True, check_dir=False)
        self.entry_document = entry_document
        self._entry_path = (Path(directory) / entry_document).resolve()

    async def get_response(self, path: str, scope) -> Response:
        try:
            response = await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            if exc.status_code != 404:
                raise
            response = await super().get_response(self.entry_document, scope)
        else:
            if response.status_code == 404:
                response = await super().get_response(self.entry_document, scope)

        if isinstance(response, FileResponse) and Path(response.path).resolve() == self._entry_path:
            response.headers["Cache-Control"] = "no-cache"
        elif response.status_code == 200:
            response.headers["Cache-Control"] = "public, max-age=31536000"
        return response


async def _read_limited_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge()

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        # Stop reading as soon as the cap is crossed.
        if len(body) > limit:
            raise PayloadTooLarge()
    return bytes(body)


def create_app(settings: Settings, publisher: Optional[AssetPublisher] = None) -> FastAPI:
    store = DocumentStore(settings.storage_root, max_depth=settings.list_max_depth)
    if publisher is None and not settings.api_only:
        publisher = AssetPublisher(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.ensure_dirs()
        if publisher is not None:
            # Blocks startup on purpose: no request is served during a build.
            try:
                publisher.ensure_ready()
            except BuildFailed:
                logger.critical("Frontend build failed; not starting the server")
                raise
            logger.info("Static files served from %s", publisher.asset_dir)
        logger.info("Uploads directory: %s", settings.storage_root)
        logger.info("Auth required" if settings.auth_required else "Auth disabled")
        yield

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.publisher = publisher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.middleware("http")
    async def _no_cache_api(request: Request, call_next):
        response = await call_next(request)
        if request.url.path in API_PATHS:
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        return JSONResponse({"ok": False, "error": exc.message}, status_code=exc.status_code)

    def authorize(authorization: Optional[str] = Header(default=None)) -> None:
        require_authorized(settings.access_token, authorization)

    @app.post("/upload", response_model=UploadResponse, dependencies=[Depends(authorize)])
    async def upload(request: Request) -> UploadResponse:
        raw = await _read_limited_body(request, settings.max_upload_bytes)
        try:
            payload = UploadRequest.model_validate_json(raw or b"{}")
        except ValidationError:
            raise InvalidBody() from None

        result = await run_in_threadpool(store.write, payload.filename or "", payload.content or "", payload.dir)
        return UploadResponse(path=result.path, size=result.size)

    @app.get("/files", response_model=FilesResponse, dependencies=[Depends(authorize)])
    def list_files() -> FilesResponse:
        files = [
            FileEntry(name=d.name, relativePath=d.relative_path, dir=d.dir, size=d.size, mtime=d.mtime)
            for d in store.list_documents()
        ]
        return FilesResponse(files=files)

    @app.get("/file", response_model=FileContentResponse, dependencies=[Depends(authorize)])
    def read_file(path: str = "") -> FileContentResponse:
        doc = store.read(path)
        return FileContentResponse(name=doc.name, relativePath=doc.relative_path, content=doc.content)

    @app.options("/{rest:path}")
    async def preflight(rest: str) -> JSONResponse:
        return JSONResponse({"ok": True})

    if publisher is not None:
        # Define API routes above, then mount static at '/'.
        app.mount("/", SPAStaticFiles(directory=publisher.asset_dir), name="static")
    else:

        @app.api_route("/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
        async def not_found(rest: str) -> None:
            raise NotFound()

    return app


settings = Settings.from_env()
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="[drawnix-store] %(levelname)s %(message)s")

    # Build before uvicorn opens the port so a failed build exits with its own code.
    if app.state.publisher is not None:
        try:
            app.state.publisher.ensure_ready()
        except BuildFailed as e:
            logger.error("%s", e)
            sys.exit(e.returncode or 1)

    logger.info("Server listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)
