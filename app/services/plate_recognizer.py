# app/services/plate_recognizer.py
"""
Plate OCR on uploaded gate snapshots.
Uses Tesseract (via pytesseract) on a grayscale, upscaled copy of the image,
then hands the text to the plate normalizer.

Batch mode processes each image independently: one unreadable image is
reported in its own result and never aborts the rest of the batch.
"""

import io
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError

from app.config import settings
from app.services.errors import RecognitionError
from app.services.plate_normalizer import PlateReading, normalize
from app.utils.logger import get_logger

logger = get_logger(__name__)

PLATE_CHAR_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
TARGET_HEIGHT = 100   # px, Tesseract reads plate glyphs best around this height


@dataclass
class BatchItemResult:
    filename: str
    success: bool
    reading: Optional[PlateReading] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"filename": self.filename, "success": self.success}
        if self.reading is not None:
            out.update(self.reading.to_dict())
            out["success"] = self.success
        if self.error:
            out["error"] = self.error
        return out


class PlateRecognizer:
    """Thin wrapper over the Tesseract engine."""

    def __init__(self, lang: Optional[str] = None, psm: Optional[int] = None):
        self.lang = lang or settings.TESSERACT_LANG
        self.psm = psm or settings.TESSERACT_PSM

    @property
    def tesseract_config(self) -> str:
        return f"--oem 1 --psm {self.psm} -c tessedit_char_whitelist={PLATE_CHAR_WHITELIST}"

    def _preprocess(self, image_bytes: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"Unreadable image: {e}") from e

        gray = ImageOps.grayscale(image)
        if gray.height and gray.height != TARGET_HEIGHT:
            width = max(1, int(gray.width * TARGET_HEIGHT / gray.height))
            gray = gray.resize((width, TARGET_HEIGHT))
        return ImageOps.autocontrast(gray)

    def recognize(self, image_bytes: bytes) -> Tuple[str, float]:
        """Returns (text, confidence 0-100) for the whole image."""
        if not image_bytes:
            raise RecognitionError("Empty image")
        image = self._preprocess(image_bytes)

        try:
            data = pytesseract.image_to_data(
                image, lang=self.lang, config=self.tesseract_config,
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractError as e:
            raise RecognitionError(f"OCR engine error: {e}") from e

        words, scores = [], []
        for text, conf in zip(data.get("text", []), data.get("conf", [])):
            text = (text or "").strip()
            score = float(conf)
            if text and score >= 0:
                words.append(text)
                scores.append(score)

        confidence = sum(scores) / len(scores) if scores else 0.0
        return " ".join(words), confidence

    def read_plate(self, image_bytes: bytes) -> PlateReading:
        text, confidence = self.recognize(image_bytes)
        logger.debug(f"[OCR] raw={text!r} confidence={confidence:.1f}")
        reading = normalize(text, confidence)
        if reading.success:
            logger.info(f"[OCR] Plate detected: {reading.plate} ({reading.confidence}%)")
        else:
            logger.info(f"[OCR] No plate pattern found in {reading.cleaned_text!r}")
        return reading

    def read_batch(self, images: Iterable[Tuple[str, bytes]]) -> list:
        results = []
        for filename, image_bytes in images:
            try:
                reading = self.read_plate(image_bytes)
                results.append(BatchItemResult(filename=filename, success=reading.success, reading=reading))
            except RecognitionError as e:
                logger.warning(f"[OCR] {filename}: {e}")
                results.append(BatchItemResult(filename=filename, success=False, error=str(e)))
            except Exception as e:
                logger.error(f"[OCR] {filename}: unexpected failure: {e}", exc_info=True)
                results.append(BatchItemResult(filename=filename, success=False, error="OCR processing failed"))
        return results

    def is_available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
            return True
        except (pytesseract.TesseractNotFoundError, EnvironmentError):
            return False
