from __future__ import annotations


class StoreError(Exception):
    """Base for failures that map onto a structured `{ok: false}` response."""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class MissingField(StoreError):
    status_code = 400
    message = "Missing field"


class InvalidBody(StoreError):
    status_code = 400
    message = "Invalid JSON"


class InvalidPath(StoreError):
    status_code = 400
    message = "Invalid path"


class Unauthorized(StoreError):
    status_code = 401
    message = "Unauthorized"


class NotFound(StoreError):
    status_code = 404
    message = "Not Found"


class PayloadTooLarge(StoreError):
    status_code = 413
    message = "Payload too large"


class WriteFailed(StoreError):
    message = "Write failed"


class ListFailed(StoreError):
    message = "List failed"


class ReadFailed(StoreError):
    message = "Read failed"


class BuildFailed(RuntimeError):
    """The asset build step exited non-zero; the server must not start."""

    def __init__(self, returncode: int, message: str | None = None) -> None:
        self.returncode = returncode
        super().__init__(message or f"Build failed with exit code {returncode}")
