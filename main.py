"""Document Quiz Generator

A FastAPI service that turns an uploaded study document into a
multiple-choice quiz.

Pipeline for ``POST /upload``:
- Size-checked upload spooled to a per-request temporary file
- Text extraction for PDF, DOCX and plain text
- Whitespace cleanup and clamping to a character budget
- One strict-JSON generation call to the configured OpenAI model
- Strict JSON parsing (plus an optional quiz shape check) of the reply
"""
from __future__ import annotations

import logging
import os
import tempfile
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Literal, Optional

import aiofiles
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors import FileTooLarge, InsufficientContent, NoFile, QuizPipelineError
from extraction import extract_text, normalize_text
from quiz_generation import QuizGenerator, create_openai_client, parse_quiz

load_dotenv()

# Configuration Constants
MAX_FILE_BYTES = int(os.getenv("MAX_FILE_BYTES", 25 * 1024 * 1024))  # 25MB
MAX_TEXT_CHARS = int(os.getenv("MAX_TEXT_CHARS", 120_000))
MIN_TEXT_CHARS = int(os.getenv("MIN_TEXT_CHARS", 200))
STRICT_QUIZ_SHAPE = os.getenv("STRICT_QUIZ_SHAPE", "true").strip().lower() not in {"0", "false", "no"}
UPLOAD_CHUNK_SIZE = 1024 * 1024

# LLM Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-5.2")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", 120))

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("doc_quiz")


# Data Models
class StoredUpload(BaseModel):
    filename: Optional[str]
    size: int
    path: Path


class UploadSuccess(BaseModel):
    ok: Literal[True] = True
    filename: Optional[str]
    chars: int
    quiz: Any


class UploadFailure(BaseModel):
    ok: Literal[False] = False
    error: str


# FastAPI Application
app = FastAPI(
    title="Document Quiz Generator",
    description="Generate multiple-choice study quizzes from PDF, DOCX or TXT uploads",
    version="1.0.0",
    license_info={"name": "MIT"},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_quiz_generator() -> QuizGenerator:
    """Process-wide generator, built once from the environment."""
    client = create_openai_client(OPENAI_API_KEY, timeout=OPENAI_TIMEOUT)
    return QuizGenerator(client, model=OPENAI_MODEL)


def _too_large() -> FileTooLarge:
    return FileTooLarge(f"File too large (max {MAX_FILE_BYTES // (1024 * 1024)}MB)")


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=UploadFailure(error=message).model_dump())


# ---------------------------------------------------------------------------
# Upload pipeline
# ---------------------------------------------------------------------------
@asynccontextmanager
async def stored_upload(file: UploadFile) -> AsyncIterator[StoredUpload]:
    """Spool ``file`` to its own temporary file and always remove it afterwards."""
    tmp = tempfile.NamedTemporaryFile(prefix="upload-", delete=False)
    tmp_path = Path(tmp.name)
    tmp.close()

    try:
        size = 0
        async with aiofiles.open(tmp_path, "wb") as out:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > MAX_FILE_BYTES:
                    raise _too_large()
                await out.write(chunk)

        yield StoredUpload(filename=file.filename, size=size, path=tmp_path)

    finally:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clean up temp file {tmp_path}: {e}")


async def build_quiz_from_upload(
    file: Optional[UploadFile],
    generator: QuizGenerator,
    request_id: str = "-",
) -> Dict[str, Any]:
    """Run one upload through extraction, generation and validation."""
    if file is None:
        raise NoFile()

    if file.size is not None and file.size > MAX_FILE_BYTES:
        raise _too_large()

    async with stored_upload(file) as upload:
        logger.info(f"[{request_id}] Stored {upload.filename!r} ({upload.size:,} bytes)")

        async with aiofiles.open(upload.path, "rb") as f:
            data = await f.read()

        raw_text = await run_in_threadpool(extract_text, upload.filename, data)
        text = normalize_text(raw_text, MAX_TEXT_CHARS)
        logger.info(f"[{request_id}] Extracted {len(raw_text):,} chars, {len(text):,} after normalization")

        if len(text) < MIN_TEXT_CHARS:
            raise InsufficientContent()

        logger.info(f"[{request_id}] Generating quiz with {generator.model}")
        raw = await generator.generate(text)
        quiz = parse_quiz(raw, strict_shape=STRICT_QUIZ_SHAPE)

        return UploadSuccess(filename=upload.filename, chars=len(text), quiz=quiz).model_dump()


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------
@app.get("/health", tags=["Debug"])
async def health() -> Dict[str, Any]:
    return {"ok": True, "model": OPENAI_MODEL}


@app.post("/upload", tags=["Quiz"])
async def upload_document(
    file: Optional[UploadFile] = File(None),
    generator: QuizGenerator = Depends(get_quiz_generator),
) -> Response:
    """Generate a quiz from one uploaded PDF, DOCX or TXT file."""
    request_id = uuid.uuid4().hex[:8]
    logger.info(f"[{request_id}] Upload received: {file.filename if file else None!r}")

    try:
        payload = await build_quiz_from_upload(file, generator, request_id)
    except QuizPipelineError as e:
        logger.warning(f"[{request_id}] {type(e).__name__}: {e.message}")
        return _failure(e.status_code, e.message)
    except Exception as e:
        logger.exception(f"[{request_id}] Unexpected error: {e}")
        return _failure(400, str(e) or "Processing failed")

    logger.info(f"[{request_id}] Quiz generated from {payload['chars']:,} chars")
    return JSONResponse(status_code=200, content=payload)


# A form field named ``file`` that is not a file counts as no upload
@app.exception_handler(RequestValidationError)
async def handle_validation_error(_: Request, exc: RequestValidationError) -> Response:
    logger.warning(f"Request validation failed: {exc.errors()}")
    return _failure(NoFile.status_code, NoFile.default_message)


@app.exception_handler(Exception)
async def handle_exception(_: Request, exc: Exception) -> Response:
    logger.exception(f"Unhandled error: {exc}")
    return _failure(500, "Internal Server Error")


# CLI entry point
def main() -> None:
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=bool(os.getenv("DEV")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
