"""Shared test fixtures.

Provides an adjustable clock, isolated settings, and a builder for small
text-bearing PDFs. No network access: the upstream model is either left
unconfigured (mock answers) or replaced with a mocked requests session.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from pdf_notebook.config import Settings


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def build_pdf(pages: List[str]) -> bytes:
    """Build a minimal PDF with one line of Helvetica text per page."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: (
            "<< /Type /Pages /Kids [{}] /Count {} >>".format(
                " ".join(f"{pid} 0 R" for pid in page_ids), len(pages)
            )
        ).encode(),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for pid, text in zip(page_ids, pages):
        objects[pid] = (
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
        ).encode()
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode()
        objects[pid + 1] = (
            b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = {}
    for obj_id in sorted(objects):
        offsets[obj_id] = len(out)
        out += f"{obj_id} 0 obj\n".encode() + objects[obj_id] + b"\nendobj\n"

    xref_offset = len(out)
    size = max(objects) + 1
    out += f"xref\n0 {size}\n".encode()
    out += b"0000000000 65535 f \n"
    for obj_id in range(1, size):
        out += f"{offsets[obj_id]:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(out)


# === FIXTURES ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_pdf() -> bytes:
    """Two-page PDF with recognisable text on each page."""
    return build_pdf(["Hello from page one", "Quarterly revenue grew"])


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(upload_dir) -> Settings:
    """Settings with no upstream credential and a private upload directory."""
    return Settings(
        _env_file=None,
        openrouter_api_key=None,
        upload_dir=str(upload_dir),
    )


@pytest.fixture
def configured_settings(upload_dir) -> Settings:
    """Settings with an upstream credential."""
    return Settings(
        _env_file=None,
        openrouter_api_key="sk-test",
        openrouter_model="anthropic/claude-3.5-sonnet",
        upload_dir=str(upload_dir),
    )


@pytest.fixture
def pdf_builder():
    """The ``build_pdf`` helper, for tests that need custom pages."""
    return build_pdf
