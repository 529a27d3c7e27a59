"""
marginalia: section documents, annotate them, keep notes across revisions.

Basic usage:
    from marginalia import Workspace

    ws = Workspace()
    snap = ws.import_document_from_path("paper.md")
    ws.create_note(snap.document.id, snap.first_section_id, "Check the proof")
    ws.reimport_document(snap.document.id)
"""

__version__ = "0.1.0"

from .api import DocumentSnapshot, DocumentSummary, SourceFileStatus, Workspace
from .errors import (
    ConflictError,
    ErrorCode,
    InternalError,
    MarginaliaError,
    NotFoundError,
    ValidationError,
)
from .revision_store import NoteSelection

__all__ = [
    "ConflictError",
    "DocumentSnapshot",
    "DocumentSummary",
    "ErrorCode",
    "InternalError",
    "MarginaliaError",
    "NotFoundError",
    "NoteSelection",
    "SourceFileStatus",
    "ValidationError",
    "Workspace",
    "__version__",
]
