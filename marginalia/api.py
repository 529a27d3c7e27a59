"""
Workspace API: import, re-import and annotate documents.

- import_document_from_path(): validate → section → anchor → commit revision 1
- reimport_document(): re-section the source and commit the next revision,
  remapping notes by anchor key
- locate_document(): relink a moved source file without touching revisions
- notes, reassignment of orphaned notes, provocations, read models
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import StoreConfig, get_default_store_path, load_or_create_config
from .errors import ConflictError, NotFoundError
from .ids import IdGenerator, UuidIdGenerator
from .ingest import PreparedImport, prepare_import, resolve_source
from .providers.pdf import PdfExtractor, get_pdf_extractor
from .reassignment import ReassignmentService
from .reimport import NewDocument, ReimportOutcome, RevisionPlan, commit_revision
from .revision_store import (
    DocumentRecord,
    NoteRecord,
    NoteSelection,
    ProvocationRecord,
    RevisionRecord,
    RevisionStore,
    SectionRecord,
    UnassignedNote,
)

logger = logging.getLogger(__name__)

SOURCE_MISSING_MESSAGE = "Source file not found at original path."
SOURCE_MISSING_ACTIONS = ("Locate file", "Re-import")


@dataclass
class SourceFileStatus:
    """Whether a document's source file is still where it was imported from."""
    state: str  # "available" | "missing"
    message: Optional[str] = None
    actions: list[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.state == "available"


@dataclass
class DocumentSummary:
    """Display row for a document."""
    id: str
    title: str
    file_type: str
    source_path: str
    current_revision_id: Optional[str]
    revision_number: Optional[int]
    section_count: int
    unassigned_count: int
    source_status: SourceFileStatus
    created_at: str
    updated_at: str


@dataclass
class DocumentSnapshot:
    """Document summary plus its current sections and open queue entries."""
    document: DocumentSummary
    sections: list[SectionRecord]
    unassigned_notes: list[UnassignedNote]
    outcome: Optional[ReimportOutcome] = None

    @property
    def first_section_id(self) -> Optional[str]:
        return self.sections[0].id if self.sections else None


def _source_status(source_path: str) -> SourceFileStatus:
    if Path(source_path).is_file():
        return SourceFileStatus(state="available")
    return SourceFileStatus(
        state="missing",
        message=SOURCE_MISSING_MESSAGE,
        actions=list(SOURCE_MISSING_ACTIONS),
    )


class Workspace:
    """
    A reader's workspace: one store directory, one database, one owner id.

    Example:
        ws = Workspace("~/notes-store")
        snap = ws.import_document_from_path("paper.md")
        ws.create_note(snap.document.id, snap.first_section_id, "check this")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        ids: Optional[IdGenerator] = None,
        pdf_extractor: Optional[PdfExtractor] = None,
    ) -> None:
        """
        Open (or create) a workspace store.

        Args:
            store_path: Store directory. Uses $MARGINALIA_STORE_PATH or
                ~/.marginalia if not specified.
            config: Pre-loaded StoreConfig (skips filesystem config discovery)
            ids: Id generator (deterministic ones are useful in tests)
            pdf_extractor: PDF reader (defaults to the configured extractor)
        """
        if config is not None:
            self._config = config
            self._config.path.mkdir(parents=True, exist_ok=True)
        else:
            path = Path(store_path).expanduser().resolve() if store_path else get_default_store_path()
            self._config = load_or_create_config(path)

        self._ids = ids or UuidIdGenerator()
        self._pdf_extractor = pdf_extractor or get_pdf_extractor(self._config.pdf_extractor)

        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._config.path)

        self._store = RevisionStore(self._config.db_path, ids=self._ids)
        self._reassignment = ReassignmentService(self._store)

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def workspace_id(self) -> str:
        return self._config.workspace_id

    @property
    def store(self) -> RevisionStore:
        return self._store

    # -------------------------------------------------------------------------
    # Import, re-import, locate
    # -------------------------------------------------------------------------

    def _prepare(self, source_path: str | Path) -> PreparedImport:
        return prepare_import(
            source_path,
            limits=self._config.limits,
            pdf_extractor=self._pdf_extractor,
        )

    def _require_owned_document(self, document_id: str) -> DocumentRecord:
        document = self._store.require_document(document_id)
        if document.workspace_id != self.workspace_id:
            raise ConflictError(
                "Document does not belong to active workspace",
                {"documentId": document_id, "workspaceId": self.workspace_id},
            )
        return document

    def _ensure_not_imported(self, source_path: Path, except_id: Optional[str] = None) -> None:
        existing = self._store.find_document_by_source_path(self.workspace_id, str(source_path))
        if existing is not None and existing.id != except_id:
            raise ConflictError(
                "Document already imported in this workspace",
                {"documentId": existing.id, "sourcePath": str(source_path)},
            )

    def import_document_from_path(self, source_path: str | Path) -> DocumentSnapshot:
        """
        Import a .txt, .md or .pdf file as a new document with revision 1.

        Raises:
            ValidationError: Empty path or unsupported file type
            NotFoundError: Source file missing
            ConflictError: Already imported, over the word/page limit, or a
                PDF without a text layer
            InternalError: Persistence failure (nothing persisted)
        """
        path, _ = resolve_source(source_path)
        self._ensure_not_imported(path)
        prepared = self._prepare(path)

        plan = RevisionPlan(
            document_id=self._ids.new_id("doc"),
            source_path=str(prepared.source_path),
            fingerprint=prepared.fingerprint,
            sections=prepared.sections,
        )
        outcome = commit_revision(
            self._store, plan, self._ids, new_document=NewDocument(self.workspace_id)
        )
        logger.info(
            "Imported %s as %s (%s, %d sections)",
            prepared.title, plan.document_id, prepared.file_type, len(prepared.sections),
        )
        return self._snapshot(plan.document_id, outcome)

    def reimport_document(self, document_id: str, force: bool = False) -> DocumentSnapshot:
        """
        Re-section a document's source and commit the next revision.

        Notes follow their section when the new revision has a section with
        the same anchor key; the rest are orphaned into the reassignment
        queue. A source whose content hash is unchanged only refreshes the
        stored fingerprint, unless force is set.

        Raises:
            NotFoundError: Unknown document, or the source file is missing
                (details carry the source status and suggested actions)
            ConflictError: Document owned by another workspace, or the new
                source violates the import limits
            InternalError: Persistence failure (nothing changed)
        """
        document = self._require_owned_document(document_id)
        status = _source_status(document.source_path)
        if not status.available:
            raise NotFoundError(
                SOURCE_MISSING_MESSAGE,
                {
                    "documentId": document_id,
                    "sourcePath": document.source_path,
                    "status": status.state,
                    "actions": status.actions,
                },
            )

        prepared = self._prepare(document.source_path)
        # The document row may already carry a located file's fingerprint
        current = (
            self._store.get_revision(document.current_revision_id)
            if document.current_revision_id else None
        )
        if (
            not force
            and current is not None
            and prepared.fingerprint.same_content(current.fingerprint)
        ):
            if prepared.fingerprint != document.fingerprint:
                self._store.update_document_source(
                    document_id, str(prepared.source_path), prepared.fingerprint
                )
            logger.info("Source of %s unchanged; no new revision", document_id)
            return self._snapshot(document_id)

        plan = RevisionPlan(
            document_id=document_id,
            source_path=str(prepared.source_path),
            fingerprint=prepared.fingerprint,
            sections=prepared.sections,
        )
        outcome = commit_revision(self._store, plan, self._ids)
        return self._snapshot(document_id, outcome)

    def locate_document(self, document_id: str, new_path: str | Path) -> DocumentSnapshot:
        """
        Relink a document to a moved source file.

        The new file is fully validated, but only the stored path and
        fingerprint change; sections and notes are untouched. Re-import
        afterwards to pick up content changes.

        Raises:
            ValidationError, NotFoundError, ConflictError: As for import
        """
        self._require_owned_document(document_id)
        path, _ = resolve_source(new_path)
        self._ensure_not_imported(path, except_id=document_id)
        prepared = self._prepare(path)
        self._store.update_document_source(
            document_id, str(prepared.source_path), prepared.fingerprint
        )
        logger.info("Located %s at %s", document_id, prepared.source_path)
        return self._snapshot(document_id)

    def source_file_status(self, document_id: str) -> SourceFileStatus:
        document = self._require_owned_document(document_id)
        return _source_status(document.source_path)

    # -------------------------------------------------------------------------
    # Read models
    # -------------------------------------------------------------------------

    def _summary(self, document: DocumentRecord) -> DocumentSummary:
        revision = (
            self._store.get_revision(document.current_revision_id)
            if document.current_revision_id else None
        )
        return DocumentSummary(
            id=document.id,
            title=document.title,
            file_type=document.file_type,
            source_path=document.source_path,
            current_revision_id=document.current_revision_id,
            revision_number=revision.revision_number if revision else None,
            section_count=len(self._store.list_current_sections(document.id)),
            unassigned_count=self._store.count_unassigned_notes(document.id),
            source_status=_source_status(document.source_path),
            created_at=document.created_at,
            updated_at=document.updated_at,
        )

    def _snapshot(
        self, document_id: str, outcome: Optional[ReimportOutcome] = None
    ) -> DocumentSnapshot:
        with self._store.read_snapshot():
            document = self._store.require_document(document_id)
            return DocumentSnapshot(
                document=self._summary(document),
                sections=self._store.list_current_sections(document_id),
                unassigned_notes=self._store.list_unassigned_notes(document_id),
                outcome=outcome,
            )

    def get_document_snapshot(self, document_id: str) -> DocumentSnapshot:
        self._require_owned_document(document_id)
        return self._snapshot(document_id)

    def list_documents(self) -> list[DocumentSummary]:
        """Documents of this workspace, most recently updated first."""
        with self._store.read_snapshot():
            return [
                self._summary(document)
                for document in self._store.list_documents(self.workspace_id)
            ]

    def list_sections(self, document_id: str) -> list[SectionRecord]:
        """Sections of the current revision in document order."""
        self._require_owned_document(document_id)
        return self._store.list_current_sections(document_id)

    def list_revisions(self, document_id: str) -> list[RevisionRecord]:
        self._require_owned_document(document_id)
        return self._store.list_revisions(document_id)

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def create_note(
        self,
        document_id: str,
        section_id: str,
        content: str,
        selection: Optional[NoteSelection] = None,
    ) -> NoteRecord:
        self._require_owned_document(document_id)
        return self._store.create_note(document_id, section_id, content, selection)

    def _require_owned_note(self, note_id: str) -> NoteRecord:
        note = self._store.require_note(note_id)
        self._require_owned_document(note.document_id)
        return note

    def get_note(self, note_id: str) -> NoteRecord:
        return self._require_owned_note(note_id)

    def update_note(self, note_id: str, content: str) -> NoteRecord:
        self._require_owned_note(note_id)
        return self._store.update_note_content(note_id, content)

    def delete_note(self, note_id: str) -> None:
        self._require_owned_note(note_id)
        self._store.delete_note(note_id)

    def list_notes(self, document_id: str) -> list[NoteRecord]:
        self._require_owned_document(document_id)
        return self._store.list_notes(document_id)

    def list_notes_by_section(self, section_id: str) -> list[NoteRecord]:
        section = self._store.get_section(section_id)
        if section is None:
            raise NotFoundError("Section not found", {"sectionId": section_id})
        self._require_owned_document(section.document_id)
        return self._store.list_notes_by_section(section_id)

    # -------------------------------------------------------------------------
    # Reassignment
    # -------------------------------------------------------------------------

    def list_unassigned_notes(self, document_id: str) -> list[UnassignedNote]:
        self._require_owned_document(document_id)
        return self._reassignment.list_unassigned_notes(document_id)

    def skip_for_now(self, document_id: str, note_id: str) -> None:
        self._require_owned_document(document_id)
        self._reassignment.skip_for_now(document_id, note_id)

    def reassign(self, document_id: str, note_id: str, target_section_id: str) -> NoteRecord:
        self._require_owned_document(document_id)
        return self._reassignment.reassign(document_id, note_id, target_section_id)

    # -------------------------------------------------------------------------
    # Provocations
    # -------------------------------------------------------------------------

    def record_provocation(
        self,
        document_id: str,
        section_id: str,
        style: str,
        output_text: str,
        request_id: Optional[str] = None,
    ) -> ProvocationRecord:
        """Store generated output for a section of the current revision."""
        self._require_owned_document(document_id)
        return self._store.record_provocation(
            document_id, section_id, style, output_text, request_id=request_id
        )

    def list_active_provocations(self, document_id: str) -> list[ProvocationRecord]:
        self._require_owned_document(document_id)
        return self._store.list_provocations(document_id, active_only=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the store and detach the operations log."""
        if getattr(self, "_store", None) is not None:
            self._store.close()
            self._store = None

        if getattr(self, "_ops_log_handler", None) is not None:
            from .logging_config import remove_ops_log
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
