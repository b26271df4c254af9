from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from booking_bot.core.config import settings


router = APIRouter()


@router.get("/receipts/{filename}")
def download_receipt(filename: str) -> FileResponse:
    if Path(filename).name != filename or not filename.endswith(".pdf"):
        raise HTTPException(status_code=404, detail="Not found")
    path = Path(settings.RECEIPTS_DIR) / filename
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(path, media_type="application/pdf", filename=filename)
