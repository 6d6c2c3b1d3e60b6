"""Shared fixtures: fake generators and in-memory test documents."""
import io
import tempfile
from pathlib import Path

import docx
import pytest

from main import app, get_quiz_generator

SAMPLE_LINES = [
    "Photosynthesis converts light energy into chemical energy in plants.",
    "Chlorophyll absorbs mostly blue and red light and reflects green light.",
    "The light reactions take place in the thylakoid membranes of chloroplasts.",
    "The Calvin cycle fixes carbon dioxide into sugars inside the stroma.",
    "Oxygen is released as a by-product when water molecules are split.",
    "ATP and NADPH carry energy from the light reactions to the Calvin cycle.",
]


def make_question(n: int) -> dict:
    return {
        "question": f"Question {n}: where does the Calvin cycle happen?",
        "choices": ["Stroma", "Thylakoid", "Nucleus", "Cell wall"],
        "answerIndex": 0,
        "explanation": "The Calvin cycle runs in the stroma of the chloroplast.",
    }


def make_quiz(count: int = 6) -> list:
    return [make_question(i + 1) for i in range(count)]


def make_pdf(lines) -> bytes:
    """Single-page PDF using the built-in Helvetica font."""
    ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
    for line in lines:
        ops.append(f"({line}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


def make_docx(paragraphs, table_rows=()) -> bytes:
    """Paragraphs followed by an optional table given as a list of rows."""
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, text in enumerate(row):
                table.cell(r, c).text = text
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class FakeGenerator:
    """Stands in for QuizGenerator; records every prompt content it receives."""

    model = "fake-model"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate(self, content: str) -> str:
        self.calls.append(content)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def use_generator():
    """Install a FakeGenerator for the /upload route."""
    def _install(reply=None, error=None) -> FakeGenerator:
        fake = FakeGenerator(reply=reply, error=error)
        app.dependency_overrides[get_quiz_generator] = lambda: fake
        return fake

    yield _install
    app.dependency_overrides.pop(get_quiz_generator, None)


@pytest.fixture
def temp_uploads(monkeypatch):
    """Paths of every temporary upload file created during the test."""
    created = []
    real_named_temporary_file = tempfile.NamedTemporaryFile

    def recording(*args, **kwargs):
        tmp = real_named_temporary_file(*args, **kwargs)
        created.append(Path(tmp.name))
        return tmp

    monkeypatch.setattr(tempfile, "NamedTemporaryFile", recording)
    yield created
    for path in created:
        path.unlink(missing_ok=True)
