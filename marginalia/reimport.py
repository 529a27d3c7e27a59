"""
Revision commits: first import and re-import as one atomic unit.

A commit inserts the next revision and its sections, remaps every note of
the previous current revision by exact anchor-key match (orphaning the rest
into the reassignment queue), deactivates provocations of other revisions
and advances the document's current-revision pointer. Either every step
commits or none does.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .errors import ConflictError, InternalError, MarginaliaError, NotFoundError
from .fingerprint import SourceFingerprint
from .ids import IdGenerator
from .ingest import ImportedSection
from .revision_store import RevisionStore, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevisionPlan:
    """Everything a revision commit writes, computed before the transaction."""
    document_id: str
    source_path: str
    fingerprint: SourceFingerprint
    sections: Sequence[ImportedSection]


@dataclass(frozen=True)
class NewDocument:
    """Owner of a document created by the same commit as its first revision."""
    workspace_id: str


@dataclass
class ReimportOutcome:
    """What a committed revision changed."""
    document_id: str
    revision_id: str
    revision_number: int
    previous_revision_id: Optional[str]
    remapped_note_ids: list[str] = field(default_factory=list)
    orphaned_note_ids: list[str] = field(default_factory=list)
    resolved_queue_entries: int = 0
    deactivated_provocations: int = 0


@dataclass(frozen=True)
class _RemapCandidate:
    note_id: str
    previous_revision_id: str
    previous_section_id: str
    previous_anchor_key: str
    previous_heading: str
    new_section_id: Optional[str]


class RevisionTransaction:
    """
    The steps of one revision commit, run against an open transaction.

    Each step is a separate method so a failure can be injected at any point
    in tests; the caller owns BEGIN/COMMIT/ROLLBACK.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        ids: IdGenerator,
        clock: Callable[[], str] = utc_now,
    ):
        self._conn = conn
        self._ids = ids
        self._clock = clock

    def insert_document(self, plan: RevisionPlan, owner: NewDocument) -> None:
        """
        Create the document row; current_revision_id stays NULL until advanced.

        Raises:
            ConflictError: The workspace already has a document for this path
        """
        existing = self._conn.execute(
            "SELECT id FROM documents WHERE workspace_id = ? AND source_path = ?",
            (owner.workspace_id, plan.source_path),
        ).fetchone()
        if existing is not None:
            raise ConflictError(
                "Document already imported in this workspace",
                {"documentId": existing[0], "sourcePath": plan.source_path},
            )
        now = self._clock()
        fp = plan.fingerprint
        self._conn.execute("""
            INSERT INTO documents
            (id, workspace_id, source_path, source_size, source_mtime,
             source_sha256, current_revision_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, NULL, ?, ?)
        """, (
            plan.document_id, owner.workspace_id, plan.source_path,
            fp.size, fp.mtime, fp.sha256, now, now,
        ))

    def current_revision_id(self, document_id: str) -> Optional[str]:
        """
        Raises:
            NotFoundError: If the document does not exist
        """
        row = self._conn.execute(
            "SELECT current_revision_id FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("Document not found", {"documentId": document_id})
        return row[0]

    def insert_revision(self, plan: RevisionPlan) -> tuple[str, int]:
        """Insert the next revision; returns (revision_id, revision_number)."""
        revision_number = self._conn.execute("""
            SELECT COALESCE(MAX(revision_number), 0) + 1
            FROM document_revisions WHERE document_id = ?
        """, (plan.document_id,)).fetchone()[0]
        revision_id = self._ids.new_id("rev")
        fp = plan.fingerprint
        self._conn.execute("""
            INSERT INTO document_revisions
            (id, document_id, revision_number, source_path, size, mtime, sha256, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            revision_id, plan.document_id, revision_number, plan.source_path,
            fp.size, fp.mtime, fp.sha256, self._clock(),
        ))
        return revision_id, revision_number

    def insert_sections(self, plan: RevisionPlan, revision_id: str) -> dict[str, str]:
        """Insert the plan's sections; returns anchor_key -> section id."""
        now = self._clock()
        by_anchor: dict[str, str] = {}
        for section in plan.sections:
            section_id = self._ids.new_id("sec")
            self._conn.execute("""
                INSERT INTO sections
                (id, document_id, revision_id, anchor_key, heading, ordinal,
                 order_index, content, page_start, page_end, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                section_id, plan.document_id, revision_id, section.anchor_key,
                section.heading, section.ordinal, section.order_index,
                section.content, section.page_start, section.page_end, now,
            ))
            by_anchor[section.anchor_key] = section_id
        return by_anchor

    def remap_candidates(
        self,
        document_id: str,
        previous_revision_id: Optional[str],
        sections_by_anchor: dict[str, str],
    ) -> list[_RemapCandidate]:
        """Notes bound to the previous revision, paired with their exact-match target."""
        if previous_revision_id is None:
            return []
        rows = self._conn.execute("""
            SELECT n.id, s.revision_id, s.id, s.anchor_key, s.heading
            FROM notes n
            JOIN sections s ON s.id = n.section_id
            WHERE n.document_id = ? AND s.revision_id = ?
            ORDER BY n.created_at ASC, n.rowid ASC
        """, (document_id, previous_revision_id)).fetchall()
        return [
            _RemapCandidate(
                note_id=row[0],
                previous_revision_id=row[1],
                previous_section_id=row[2],
                previous_anchor_key=row[3],
                previous_heading=row[4],
                new_section_id=sections_by_anchor.get(row[3]),
            )
            for row in rows
        ]

    def orphan_notes(self, document_id: str, candidates: list[_RemapCandidate]) -> list[str]:
        """Detach unmatched notes and open (or reopen) their queue entries."""
        now = self._clock()
        orphaned = []
        for candidate in candidates:
            if candidate.new_section_id is not None:
                continue
            self._conn.execute("""
                INSERT INTO note_reassignment_queue
                (id, note_id, document_id, previous_revision_id, previous_section_id,
                 previous_anchor_key, previous_heading, status, created_at, resolved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 'open', ?, NULL)
                ON CONFLICT(note_id) DO UPDATE SET
                    document_id = excluded.document_id,
                    previous_revision_id = excluded.previous_revision_id,
                    previous_section_id = excluded.previous_section_id,
                    previous_anchor_key = excluded.previous_anchor_key,
                    previous_heading = excluded.previous_heading,
                    status = 'open',
                    resolved_at = NULL
            """, (
                self._ids.new_id("rq"), candidate.note_id, document_id,
                candidate.previous_revision_id, candidate.previous_section_id,
                candidate.previous_anchor_key, candidate.previous_heading, now,
            ))
            self._conn.execute(
                "UPDATE notes SET section_id = NULL WHERE id = ?", (candidate.note_id,)
            )
            orphaned.append(candidate.note_id)
        return orphaned

    def rebind_notes(self, candidates: list[_RemapCandidate]) -> tuple[list[str], int]:
        """Move matched notes to their new section and resolve open queue rows.

        Returns (remapped note ids, number of queue rows resolved).
        """
        now = self._clock()
        remapped = []
        resolved = 0
        for candidate in candidates:
            if candidate.new_section_id is None:
                continue
            self._conn.execute(
                "UPDATE notes SET section_id = ? WHERE id = ?",
                (candidate.new_section_id, candidate.note_id),
            )
            cursor = self._conn.execute("""
                UPDATE note_reassignment_queue
                SET status = 'resolved', resolved_at = ?
                WHERE note_id = ? AND status = 'open'
            """, (now, candidate.note_id))
            resolved += cursor.rowcount
            remapped.append(candidate.note_id)
        return remapped, resolved

    def deactivate_provocations(self, document_id: str, revision_id: str) -> int:
        """Deactivate provocations of every revision but the new one."""
        cursor = self._conn.execute("""
            UPDATE provocations SET is_active = 0
            WHERE document_id = ? AND revision_id <> ? AND is_active = 1
        """, (document_id, revision_id))
        return cursor.rowcount

    def advance_document(self, plan: RevisionPlan, revision_id: str) -> None:
        """Point the document at the new revision and refresh its fingerprint."""
        fp = plan.fingerprint
        self._conn.execute("""
            UPDATE documents
            SET source_path = ?, source_size = ?, source_mtime = ?,
                source_sha256 = ?, current_revision_id = ?, updated_at = ?
            WHERE id = ?
        """, (
            plan.source_path, fp.size, fp.mtime, fp.sha256,
            revision_id, self._clock(), plan.document_id,
        ))

    def run(self, plan: RevisionPlan, new_document: Optional[NewDocument] = None) -> ReimportOutcome:
        """Run every step in order."""
        if new_document is not None:
            self.insert_document(plan, new_document)
        previous_revision_id = self.current_revision_id(plan.document_id)

        revision_id, revision_number = self.insert_revision(plan)
        sections_by_anchor = self.insert_sections(plan, revision_id)

        candidates = self.remap_candidates(
            plan.document_id, previous_revision_id, sections_by_anchor
        )
        orphaned = self.orphan_notes(plan.document_id, candidates)
        remapped, resolved = self.rebind_notes(candidates)
        deactivated = self.deactivate_provocations(plan.document_id, revision_id)
        self.advance_document(plan, revision_id)

        return ReimportOutcome(
            document_id=plan.document_id,
            revision_id=revision_id,
            revision_number=revision_number,
            previous_revision_id=previous_revision_id,
            remapped_note_ids=remapped,
            orphaned_note_ids=orphaned,
            resolved_queue_entries=resolved,
            deactivated_provocations=deactivated,
        )


def commit_revision(
    store: RevisionStore,
    plan: RevisionPlan,
    ids: IdGenerator,
    new_document: Optional[NewDocument] = None,
) -> ReimportOutcome:
    """
    Atomically commit a new revision of a document.

    With new_document, the document row is created in the same transaction
    as revision 1.

    Raises:
        NotFoundError: Document does not exist (re-import)
        InternalError: Persistence failure; nothing was changed
    """
    try:
        with store.transaction() as conn:
            outcome = RevisionTransaction(conn, ids).run(plan, new_document)
    except sqlite3.Error as e:
        logger.warning(
            "Rolled back revision commit for %s: %s", plan.document_id, e
        )
        raise InternalError(
            "Failed to commit document revision",
            {"documentId": plan.document_id, "error": str(e)},
        ) from e
    except MarginaliaError:
        raise
    except Exception as e:
        logger.warning(
            "Rolled back revision commit for %s: %s", plan.document_id, e
        )
        raise

    logger.info(
        "Committed revision %d of %s: %d sections, %d notes remapped, "
        "%d orphaned, %d provocations deactivated",
        outcome.revision_number, plan.document_id, len(plan.sections),
        len(outcome.remapped_note_ids), len(outcome.orphaned_note_ids),
        outcome.deactivated_provocations,
    )
    return outcome
