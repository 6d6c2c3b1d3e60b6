"""Failure kinds of the document-to-quiz pipeline.

Each error carries the HTTP status and the human-readable message that the
``/upload`` route puts into the failure envelope.
"""
from __future__ import annotations

from typing import Optional


class QuizPipelineError(Exception):
    """Base class for every classified pipeline failure."""

    status_code: int = 400
    default_message: str = "Processing failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NoFile(QuizPipelineError):
    default_message = "No file uploaded"


class FileTooLarge(QuizPipelineError):
    status_code = 413
    default_message = "File too large (max 25MB)"


class UnsupportedFormat(QuizPipelineError):
    default_message = "Unsupported file type. Use PDF, DOCX, or TXT."


class ExtractionFailed(QuizPipelineError):
    default_message = "Failed to extract text from document"


class InsufficientContent(QuizPipelineError):
    status_code = 422
    default_message = "Not enough readable text. If this is a scanned PDF, OCR is needed."


class GenerationFailure(QuizPipelineError):
    default_message = "LLM processing failed"


class InvalidModelOutput(QuizPipelineError):
    default_message = "Model did not return valid JSON"


class InvalidQuizShape(QuizPipelineError):
    default_message = "Model returned a malformed quiz"
