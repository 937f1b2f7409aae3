# app/routers/ocr.py
"""
Plate recognition from gate snapshots.
POST /ocr/plate  one image → normalized plate reading
POST /ocr/batch  up to OCR_BATCH_MAX_FILES images, failures isolated per image
"""

from fastapi import APIRouter, File, HTTPException, UploadFile

from app.config import settings
from app.schemas.plate import BatchOut, PlateReadingOut
from app.services.errors import RecognitionError
from app.services.plate_recognizer import PlateRecognizer
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

recognizer = PlateRecognizer()


async def _read_upload(upload: UploadFile) -> bytes:
    data = await upload.read()
    if len(data) > settings.OCR_MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail=f"{upload.filename} exceeds the image size limit")
    return data


@router.post("/ocr/plate", response_model=PlateReadingOut, summary="Read a license plate from an image")
async def read_plate(image: UploadFile = File(...)):
    data = await _read_upload(image)
    if not data:
        raise HTTPException(status_code=400, detail="Image file is required")
    try:
        reading = recognizer.read_plate(data)
    except RecognitionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return reading.to_dict()


@router.post("/ocr/batch", response_model=BatchOut, summary="Read plates from several images")
async def read_plates_batch(images: list[UploadFile] = File(...)):
    if not images:
        raise HTTPException(status_code=400, detail="At least one image file is required")
    if len(images) > settings.OCR_BATCH_MAX_FILES:
        raise HTTPException(status_code=400,
                            detail=f"At most {settings.OCR_BATCH_MAX_FILES} images per batch")

    payload = [(upload.filename or f"image-{i}", await _read_upload(upload)) for i, upload in enumerate(images)]
    results = recognizer.read_batch(payload)
    logger.info(f"[OCR] Batch of {len(results)}: {sum(r.success for r in results)} plates found")
    return {"processed": len(results), "results": [r.to_dict() for r in results]}


@router.get("/ocr/health", summary="OCR engine availability")
def ocr_health():
    available = recognizer.is_available()
    return {"status": "ok" if available else "unavailable", "engine": "tesseract",
            "language": recognizer.lang}
