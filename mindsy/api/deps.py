"""FastAPI dependencies for external service clients.

Routes never build clients themselves; tests swap these out through
``app.dependency_overrides``.
"""

from functools import lru_cache

from mindsy.services.billing import StripeGateway
from mindsy.services.note_generation import NoteGenerator
from mindsy.services.pdf_renderer import PdfRenderer
from mindsy.services.storage import StorageService, storage_service
from mindsy.services.transcription import TranscriptionClient


def get_storage_service() -> StorageService:
    return storage_service


@lru_cache
def get_transcription_client() -> TranscriptionClient:
    return TranscriptionClient()


@lru_cache
def get_note_generator() -> NoteGenerator:
    return NoteGenerator()


@lru_cache
def get_pdf_renderer() -> PdfRenderer:
    return PdfRenderer()


@lru_cache
def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()
