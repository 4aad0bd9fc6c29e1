"""Shared fixtures: small PDFs and signature images built in memory."""

import io

import fitz
import pytest
from PIL import Image

from docsign.persistence.local import InMemoryKeyValueStore
from docsign.services.history_service import SignatureHistoryStore
from docsign.services.image_service import encode_data_url
from docsign.services.storage_service import StorageService
from docsign.utils.audit import clear_audit_log

LETTER_WIDTH = 612.0
LETTER_HEIGHT = 792.0


def make_pdf(pages: int = 2, width: float = LETTER_WIDTH, height: float = LETTER_HEIGHT) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=width, height=height)
    content = doc.tobytes()
    doc.close()
    return content


def make_png(width: int = 200, height: int = 80, color=(20, 20, 120, 255)) -> bytes:
    img = Image.new("RGBA", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_data_url(width: int = 200, height: int = 80) -> str:
    return encode_data_url(make_png(width, height))


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


@pytest.fixture
def signature_data_url() -> str:
    return make_data_url(200, 80)


@pytest.fixture
def history() -> SignatureHistoryStore:
    return SignatureHistoryStore(InMemoryKeyValueStore())


@pytest.fixture
def local_storage(tmp_path) -> StorageService:
    return StorageService(enabled=False, local_dir=str(tmp_path / "documents"))


@pytest.fixture(autouse=True)
def _reset_audit_log():
    clear_audit_log()
    yield
    clear_audit_log()
