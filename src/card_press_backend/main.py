from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from .asset_store import S3AssetStore
from .configuration import configure_logging, load_config
from .credentials import CredentialCache, TokenProvider
from .editing_service import EditingServiceClient
from .errors import CardPressError, FormError
from .models import ApplicantRecord
from .orchestrator import EditOrchestrator
from .stock_photos import DirectoryStockAssetPicker
from .utils import ensure_directory, sanitize_filename

logger = logging.getLogger(__name__)

config = load_config()
configure_logging(config.server.log_level)

app = FastAPI(title="Card Press API", version="0.1.0")

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

upload_root = ensure_directory(Path(config.server.upload_dir))
responses_root = ensure_directory(Path(config.server.responses_dir))

credential_cache = CredentialCache(
    TokenProvider.from_config(config),
    safety_margin=config.auth.safety_margin_seconds,
)
asset_store = S3AssetStore.from_config(config)
if not asset_store.is_configured():
    logger.warning("S3_BUCKET_NAME is not set; /generate-pdf will fail until a bucket is configured")

orchestrator = EditOrchestrator.from_config(
    config,
    credentials=credential_cache,
    asset_store=asset_store,
    editing=EditingServiceClient.from_config(config),
    stock_picker=DirectoryStockAssetPicker(Path(config.stock_photos.directory), config.stock_photos.extensions),
)


def get_orchestrator() -> EditOrchestrator:
    return orchestrator


@app.exception_handler(CardPressError)
async def card_press_error_handler(request: Request, exc: CardPressError) -> PlainTextResponse:
    logger.error(f"{request.url.path} failed with {type(exc).__name__}: {exc}")
    return PlainTextResponse("Failed to generate PDF", status_code=500)


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


async def _store_upload(file: UploadFile, destination: Path) -> Path:
    with destination.open("wb") as buffer:
        while chunk := await file.read(8 * 1024 * 1024):
            buffer.write(chunk)
    await file.close()
    return destination


@app.post("/generate-pdf")
async def generate_pdf(
    firstName: str = Form(""),
    lastName: str = Form(""),
    address1: str = Form(""),
    address2: str = Form(""),
    signature: Optional[UploadFile] = File(None),
    manager: EditOrchestrator = Depends(get_orchestrator),
) -> Response:
    if signature is None or not signature.filename:
        raise FormError("No signature image uploaded")
    try:
        record = ApplicantRecord.from_form(firstName, lastName, address1, address2)
    except ValidationError as exc:
        raise FormError("firstName and lastName are required", {"errors": exc.errors(include_url=False)}) from exc

    staging_dir = ensure_directory(upload_root / uuid4().hex)
    try:
        filename = sanitize_filename(signature.filename or "signature.png", fallback="signature", default_suffix=".png")
        signature_path = await _store_upload(signature, staging_dir / filename)
        document = await manager.generate_document(record, signature_path)
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)

    return Response(
        content=document,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{config.server.download_filename}"'},
    )


@app.post("/upload")
async def upload_result(
    file: Optional[UploadFile] = File(None),
    id: Optional[str] = Query(None),
) -> PlainTextResponse:
    if file is None or not file.filename:
        return PlainTextResponse("No file uploaded.", status_code=400)
    if not id:
        return PlainTextResponse("No ID provided.", status_code=400)

    filename = f"{sanitize_filename(id, fallback='unknown')}_{sanitize_filename(file.filename)}"
    await _store_upload(file, responses_root / filename)
    logger.info(f"Stored upload {filename}")
    return PlainTextResponse(f"File uploaded successfully with ID {id}: {filename}")


if Path(config.server.static_dir).is_dir():
    app.mount("/", StaticFiles(directory=config.server.static_dir, html=True), name="static")
