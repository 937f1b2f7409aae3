# tests/test_plate_recognizer.py
"""Unit tests for the OCR wrapper. Tesseract itself is mocked out."""

import io
import pytest
from unittest.mock import patch
from PIL import Image

import pytesseract
from app.services.errors import RecognitionError
from app.services.plate_recognizer import PlateRecognizer


def png_bytes(width=240, height=60) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buf, format="PNG")
    return buf.getvalue()


def ocr_output(words, confs):
    return {"text": words, "conf": confs}


@pytest.fixture
def recognizer():
    return PlateRecognizer(lang="eng", psm=8)


class TestRecognize:
    def test_averages_word_confidence(self, recognizer):
        with patch("pytesseract.image_to_data", return_value=ocr_output(["", "ABC", "123"], [-1, 80, 90])):
            text, confidence = recognizer.recognize(png_bytes())
        assert text == "ABC 123"
        assert confidence == 85.0

    def test_image_is_scaled_to_target_height(self, recognizer):
        with patch("pytesseract.image_to_data", return_value=ocr_output([], [])) as ocr:
            recognizer.recognize(png_bytes(240, 60))
        image = ocr.call_args.args[0]
        assert image.height == 100
        assert image.width == 400
        assert image.mode == "L"
        assert "--psm 8" in ocr.call_args.kwargs["config"]

    def test_no_words(self, recognizer):
        with patch("pytesseract.image_to_data", return_value=ocr_output(["", " "], [-1, -1])):
            assert recognizer.recognize(png_bytes()) == ("", 0.0)

    def test_empty_bytes(self, recognizer):
        with pytest.raises(RecognitionError):
            recognizer.recognize(b"")

    def test_not_an_image(self, recognizer):
        with pytest.raises(RecognitionError):
            recognizer.recognize(b"definitely not a png")

    def test_engine_error(self, recognizer):
        with patch("pytesseract.image_to_data", side_effect=pytesseract.TesseractError(1, "boom")):
            with pytest.raises(RecognitionError):
                recognizer.recognize(png_bytes())


class TestReadPlate:
    def test_plate_found(self, recognizer):
        with patch("pytesseract.image_to_data", return_value=ocr_output(["ABC", "123"], [88, 92])):
            reading = recognizer.read_plate(png_bytes())
        assert reading.success is True
        assert reading.plate == "ABC123"
        assert reading.confidence == 90
        assert reading.raw_text == "ABC 123"

    def test_no_plate(self, recognizer):
        with patch("pytesseract.image_to_data", return_value=ocr_output(["X7"], [30])):
            reading = recognizer.read_plate(png_bytes())
        assert reading.success is False
        assert reading.plate is None


class TestBatch:
    def test_bad_image_does_not_abort_batch(self, recognizer):
        images = [("a.png", png_bytes()), ("broken.jpg", b"\x00\x01"), ("c.png", png_bytes())]
        with patch("pytesseract.image_to_data", return_value=ocr_output(["DEF456"], [70])):
            results = recognizer.read_batch(images)

        assert [r.filename for r in results] == ["a.png", "broken.jpg", "c.png"]
        assert [r.success for r in results] == [True, False, True]
        assert results[0].reading.plate == "DEF456"
        assert "Unreadable image" in results[1].error

        broken = results[1].to_dict()
        assert broken == {"filename": "broken.jpg", "success": False, "error": results[1].error}
        assert results[2].to_dict()["plate"] == "DEF456"

    def test_unexpected_failure_is_isolated(self, recognizer):
        with patch("pytesseract.image_to_data", side_effect=[RuntimeError("segfault"), ocr_output(["ABC123"], [90])]):
            results = recognizer.read_batch([("a.png", png_bytes()), ("b.png", png_bytes())])
        assert results[0].success is False
        assert results[0].error == "OCR processing failed"
        assert results[1].reading.plate == "ABC123"


class TestAvailability:
    def test_available(self, recognizer):
        with patch("pytesseract.get_tesseract_version", return_value="5.3.0"):
            assert recognizer.is_available() is True

    def test_missing_binary(self, recognizer):
        with patch("pytesseract.get_tesseract_version", side_effect=pytesseract.TesseractNotFoundError()):
            assert recognizer.is_available() is False
