# app/schemas/plate.py
from pydantic import BaseModel
from typing import Optional


class PlateReadingOut(BaseModel):
    success: bool
    plate: Optional[str]
    confidence: int
    pattern_match: bool
    cleaned_text: str
    raw_text: str


class BatchItemOut(BaseModel):
    filename: str
    success: bool
    plate: Optional[str] = None
    confidence: Optional[int] = None
    pattern_match: Optional[bool] = None
    cleaned_text: Optional[str] = None
    raw_text: Optional[str] = None
    error: Optional[str] = None


class BatchOut(BaseModel):
    processed: int
    results: list[BatchItemOut]
