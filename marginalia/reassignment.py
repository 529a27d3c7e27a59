"""
Reassignment of orphaned notes.

Notes whose section did not survive a re-import wait in the reassignment
queue until a person either picks a new section for them or dismisses the
prompt for now.
"""

import logging

from .errors import ConflictError, NotFoundError
from .revision_store import NoteRecord, RevisionStore, UnassignedNote, utc_now

logger = logging.getLogger(__name__)


class ReassignmentService:
    """Reads and resolves open reassignment queue entries."""

    def __init__(self, store: RevisionStore):
        self._store = store

    def list_unassigned_notes(self, document_id: str) -> list[UnassignedNote]:
        """Open entries for a document with their previous heading/anchor/section."""
        self._store.require_document(document_id)
        return self._store.list_unassigned_notes(document_id)

    def skip_for_now(self, document_id: str, note_id: str) -> None:
        """
        Dismiss the prompt without changing anything.

        The entry stays open and keeps appearing in list_unassigned_notes().

        Raises:
            NotFoundError: No open entry for this note in this document
        """
        self._require_open_entry(document_id, note_id)
        logger.debug("Skipped reassignment of note %s for now", note_id)

    def reassign(self, document_id: str, note_id: str, target_section_id: str) -> NoteRecord:
        """
        Bind an orphaned note to a section of the current revision.

        Raises:
            ConflictError: Target section is not in the current revision
            NotFoundError: No open entry for this note in this document
        """
        with self._store.transaction() as conn:
            if self._store.get_current_section(document_id, target_section_id) is None:
                raise ConflictError(
                    "Target section is not in current document revision",
                    {"documentId": document_id, "sectionId": target_section_id},
                )
            self._require_open_entry(document_id, note_id)

            now = utc_now()
            conn.execute(
                "UPDATE notes SET section_id = ?, updated_at = ? WHERE id = ?",
                (target_section_id, now, note_id),
            )
            conn.execute("""
                UPDATE note_reassignment_queue
                SET status = 'resolved', resolved_at = ?
                WHERE note_id = ? AND status = 'open'
            """, (now, note_id))

        logger.info("Reassigned note %s to section %s", note_id, target_section_id)
        return self._store.require_note(note_id)

    def _require_open_entry(self, document_id: str, note_id: str) -> None:
        entry = self._store.get_queue_entry(note_id)
        if entry is None or entry.document_id != document_id or entry.status != "open":
            raise NotFoundError(
                "Open reassignment item not found",
                {"documentId": document_id, "noteId": note_id},
            )
