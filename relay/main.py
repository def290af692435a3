import logging
import mimetypes
import time
from contextlib import asynccontextmanager
from typing import Callable
from urllib.parse import urlencode

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from relay.config import Settings, get_settings
from relay.errors import Expired, InvalidSignature, NotFound, PayloadTooLarge, StorageFailure
from relay.logging_config import configure_logging
from relay.models import HealthResponse, UploadResponse
from relay.signing import LinkSigner
from relay.storage import build_storage
from relay.store import ObjectRecord, ObjectStore
from relay.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

PREVIEWABLE_PREFIXES = ("image/", "video/", "audio/")
PREVIEWABLE_TYPES = ("text/plain", "application/pdf")


def sanitize_filename(filename: str) -> str:
    cleaned = "".join(c for c in filename if c.isalnum() or c in ".-_")[:255]
    return cleaned or "unknown"


def is_previewable(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.startswith(PREVIEWABLE_PREFIXES) or media_type in PREVIEWABLE_TYPES


def create_app(settings: Settings | None = None, clock: Callable[[], float] = time.time) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    storage = build_storage(settings.storage_backend, settings.storage_dir)
    store = ObjectStore(
        storage,
        max_size_bytes=settings.max_upload_size_bytes,
        default_ttl_seconds=settings.file_lifetime_seconds,
        clock=clock,
    )
    signer = LinkSigner(settings.secret_key)
    sweeper = ExpirySweeper(store, settings.sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        storage.init()
        await sweeper.start()
        logger.info(
            f"{settings.app_name} ready | backend: {settings.storage_backend} | "
            f"max: {settings.max_upload_size_bytes} bytes | ttl: {settings.file_lifetime_seconds}s"
        )
        try:
            yield
        finally:
            await sweeper.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.store = store
    app.state.signer = signer
    app.state.sweeper = sweeper

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    def error_response(status_code: int, message: str, code: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item not in ("body", "query", "path"))
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message, "bad_request")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        code_map = {
            400: "bad_request",
            403: "forbidden",
            404: "not_found",
            413: "payload_too_large",
            500: "storage_failure",
        }
        return error_response(exc.status_code, message, code_map.get(exc.status_code, "error"))

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            environment=settings.app_env,
            objects=len(store),
            resident_bytes=store.resident_bytes,
        )

    def signed_url(request: Request, record: ObjectRecord, mode: str) -> str:
        base_url = settings.base_url.rstrip("/") if settings.base_url else str(request.base_url)[:-1]
        params = urlencode(
            {
                "exp": record.expires_at,
                "sig": signer.sign(object_id=record.id, expires_at=record.expires_at),
                "mode": mode,
            }
        )
        return f"{base_url}/file/{record.id}?{params}"

    def read_limited(source: UploadFile) -> bytearray:
        buf = bytearray()
        while True:
            chunk = source.file.read(settings.chunk_size_bytes)
            if not chunk:
                break
            buf.extend(chunk)
            if len(buf) > settings.max_upload_size_bytes:
                raise PayloadTooLarge(len(buf), settings.max_upload_size_bytes)
        return buf

    @app.post("/upload", response_model=UploadResponse, status_code=201)
    def upload_file(request: Request, file: UploadFile = File(...)):
        name = sanitize_filename(file.filename or "")
        content_type = file.content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"

        try:
            data = read_limited(file)
            record = store.put(data, content_type, filename=name)
        except PayloadTooLarge as exc:
            logger.warning(f"Rejected upload {name}: {exc}")
            raise HTTPException(status_code=413, detail="file exceeds max upload size") from exc
        except StorageFailure as exc:
            logger.error(f"Upload of {name} failed: {exc}")
            raise HTTPException(status_code=500, detail="storage failure") from exc

        logger.info(f"Stored {record.id} | {name} | {record.size} bytes | {content_type}")
        return UploadResponse(
            id=record.id,
            name=record.filename,
            size=record.size,
            mime=record.content_type,
            view=signed_url(request, record, "inline"),
            download=signed_url(request, record, "attachment"),
            ttl=record.expires_at - record.created_at,
            expires_at=record.expires_at,
        )

    @app.get("/file/{object_id}")
    def download_file(
        object_id: str,
        exp: int = Query(...),
        sig: str = Query(...),
        mode: str = Query("attachment"),
    ):
        now = clock()
        try:
            signer.verify(object_id=object_id, expires_at=exp, signature=sig, now=now)
        except InvalidSignature as exc:
            logger.warning(f"Invalid signature for {object_id}")
            raise HTTPException(status_code=403, detail="invalid signature") from exc
        except Expired as exc:
            logger.info(f"Expired link for {object_id}")
            raise HTTPException(status_code=403, detail="link expired") from exc

        try:
            stored = store.get(object_id, now=now)
        except NotFound as exc:
            raise HTTPException(status_code=404, detail="file not found") from exc
        except StorageFailure as exc:
            logger.error(f"Read of {object_id} failed: {exc}")
            raise HTTPException(status_code=500, detail="storage failure") from exc

        record = stored.record
        disposition = "inline" if mode == "inline" and is_previewable(record.content_type) else "attachment"
        return Response(
            content=stored.data,
            headers={
                "Content-Type": record.content_type,
                "Content-Disposition": f'{disposition}; filename="{record.filename}"',
                "Cache-Control": "private, no-store",
            },
        )

    return app


app = create_app()
