"""
Revision store using SQLite.

Persists documents, their append-only revision history, the sections of
every revision, notes, the note reassignment queue and provocations.

The store is the single owner of the database connection. Writers run
inside ``transaction()`` (BEGIN IMMEDIATE), which serializes them across
threads through the store lock and across processes through SQLite's write
lock. Multi-query reads run inside ``read_snapshot()`` so they observe one
consistent state of the database.

Schema versions are tracked with ``PRAGMA user_version``:

- v1: documents, document_revisions, sections, notes,
  note_reassignment_queue, provocations
- v2: selection-anchor columns on notes, at most one active provocation
  per (document, section, revision)
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .errors import ConflictError, InternalError, NotFoundError, ValidationError
from .fingerprint import SourceFingerprint
from .ids import IdGenerator, UuidIdGenerator

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_SCHEMA_V1 = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        workspace_id TEXT NOT NULL,
        source_path TEXT NOT NULL,
        source_size INTEGER NOT NULL,
        source_mtime INTEGER NOT NULL,
        source_sha256 TEXT NOT NULL,
        current_revision_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS document_revisions (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES documents(id),
        revision_number INTEGER NOT NULL,
        source_path TEXT NOT NULL,
        size INTEGER NOT NULL,
        mtime INTEGER NOT NULL,
        sha256 TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (document_id, revision_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sections (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES documents(id),
        revision_id TEXT NOT NULL REFERENCES document_revisions(id),
        anchor_key TEXT NOT NULL,
        heading TEXT NOT NULL,
        ordinal INTEGER NOT NULL,
        order_index INTEGER NOT NULL,
        content TEXT NOT NULL,
        page_start INTEGER,
        page_end INTEGER,
        created_at TEXT NOT NULL,
        UNIQUE (revision_id, anchor_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES documents(id),
        section_id TEXT REFERENCES sections(id) ON DELETE SET NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS note_reassignment_queue (
        id TEXT PRIMARY KEY,
        note_id TEXT NOT NULL UNIQUE REFERENCES notes(id) ON DELETE CASCADE,
        document_id TEXT NOT NULL REFERENCES documents(id),
        previous_revision_id TEXT,
        previous_section_id TEXT,
        previous_anchor_key TEXT,
        previous_heading TEXT,
        status TEXT NOT NULL CHECK (status IN ('open', 'resolved')),
        created_at TEXT NOT NULL,
        resolved_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS provocations (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES documents(id),
        section_id TEXT NOT NULL REFERENCES sections(id),
        revision_id TEXT NOT NULL REFERENCES document_revisions(id),
        request_id TEXT,
        style TEXT NOT NULL,
        output_text TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_documents_workspace ON documents(workspace_id)",
    "CREATE INDEX IF NOT EXISTS idx_sections_revision ON sections(revision_id)",
    "CREATE INDEX IF NOT EXISTS idx_notes_document ON notes(document_id)",
    "CREATE INDEX IF NOT EXISTS idx_notes_section ON notes(section_id)",
    """
    CREATE INDEX IF NOT EXISTS idx_queue_document_status
    ON note_reassignment_queue(document_id, status)
    """,
    "CREATE INDEX IF NOT EXISTS idx_provocations_revision ON provocations(revision_id)",
)

_SCHEMA_V2 = (
    "ALTER TABLE notes ADD COLUMN paragraph_ordinal INTEGER",
    "ALTER TABLE notes ADD COLUMN start_offset INTEGER",
    "ALTER TABLE notes ADD COLUMN end_offset INTEGER",
    "ALTER TABLE notes ADD COLUMN selected_text_excerpt TEXT",
    # Keep only the newest active provocation per target before indexing
    """
    UPDATE provocations SET is_active = 0
    WHERE is_active = 1 AND rowid NOT IN (
        SELECT MAX(rowid) FROM provocations
        WHERE is_active = 1
        GROUP BY document_id, section_id, revision_id
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_provocations_one_active
    ON provocations(document_id, section_id, revision_id)
    WHERE is_active = 1
    """,
)

_MIGRATIONS = {1: _SCHEMA_V1, 2: _SCHEMA_V2}

_NOTE_COLUMNS = """
    id, document_id, section_id, content, paragraph_ordinal,
    start_offset, end_offset, selected_text_excerpt, created_at, updated_at
"""


def utc_now() -> str:
    """Current timestamp in ISO format, millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

@dataclass
class DocumentRecord:
    """A document and its pointer to the current revision."""
    id: str
    workspace_id: str
    source_path: str
    source_size: int
    source_mtime: int
    source_sha256: str
    current_revision_id: Optional[str]
    created_at: str
    updated_at: str

    @property
    def fingerprint(self) -> SourceFingerprint:
        return SourceFingerprint(self.source_size, self.source_mtime, self.source_sha256)

    @property
    def title(self) -> str:
        return Path(self.source_path).name

    @property
    def file_type(self) -> str:
        return Path(self.source_path).suffix.lower().lstrip(".")


@dataclass
class RevisionRecord:
    """One immutable revision with the fingerprint that produced it."""
    id: str
    document_id: str
    revision_number: int
    source_path: str
    size: int
    mtime: int
    sha256: str
    created_at: str

    @property
    def fingerprint(self) -> SourceFingerprint:
        return SourceFingerprint(self.size, self.mtime, self.sha256)


@dataclass
class SectionRecord:
    """A section of one revision."""
    id: str
    document_id: str
    revision_id: str
    anchor_key: str
    heading: str
    ordinal: int
    order_index: int
    content: str
    page_start: Optional[int]
    page_end: Optional[int]
    created_at: str


@dataclass
class NoteSelection:
    """Optional anchor of a note inside its section's text."""
    paragraph_ordinal: Optional[int] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None
    selected_text_excerpt: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            ValidationError: Offsets given partially, negative or empty range
        """
        if self.paragraph_ordinal is not None and self.paragraph_ordinal < 0:
            raise ValidationError("paragraph_ordinal must be >= 0")
        if (self.start_offset is None) != (self.end_offset is None):
            raise ValidationError("start_offset and end_offset must be given together")
        if self.start_offset is not None and not 0 <= self.start_offset < self.end_offset:
            raise ValidationError(
                "Selection offsets must satisfy 0 <= start_offset < end_offset",
                {"startOffset": self.start_offset, "endOffset": self.end_offset},
            )


@dataclass
class NoteRecord:
    """A note; section_id is None exactly when the note is orphaned."""
    id: str
    document_id: str
    section_id: Optional[str]
    content: str
    selection: Optional[NoteSelection]
    created_at: str
    updated_at: str


@dataclass
class QueueEntry:
    """Reassignment queue row for one note."""
    id: str
    note_id: str
    document_id: str
    previous_revision_id: Optional[str]
    previous_section_id: Optional[str]
    previous_anchor_key: Optional[str]
    previous_heading: Optional[str]
    status: str
    created_at: str
    resolved_at: Optional[str]


@dataclass
class UnassignedNote:
    """An open queue entry joined with its note, for display."""
    note_id: str
    document_id: str
    content: str
    previous_revision_id: Optional[str]
    previous_section_id: Optional[str]
    previous_anchor_key: Optional[str]
    previous_heading: Optional[str]
    queued_at: str


@dataclass
class ProvocationRecord:
    """Generated output scoped to one section of one revision."""
    id: str
    document_id: str
    section_id: str
    revision_id: str
    request_id: Optional[str]
    style: str
    output_text: str
    is_active: bool
    created_at: str


def _document_from_row(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        workspace_id=row["workspace_id"],
        source_path=row["source_path"],
        source_size=row["source_size"],
        source_mtime=row["source_mtime"],
        source_sha256=row["source_sha256"],
        current_revision_id=row["current_revision_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _section_from_row(row: sqlite3.Row) -> SectionRecord:
    return SectionRecord(**{key: row[key] for key in row.keys()})


def _note_from_row(row: sqlite3.Row) -> NoteRecord:
    selection = None
    if row["start_offset"] is not None or row["paragraph_ordinal"] is not None \
            or row["selected_text_excerpt"] is not None:
        selection = NoteSelection(
            paragraph_ordinal=row["paragraph_ordinal"],
            start_offset=row["start_offset"],
            end_offset=row["end_offset"],
            selected_text_excerpt=row["selected_text_excerpt"],
        )
    return NoteRecord(
        id=row["id"],
        document_id=row["document_id"],
        section_id=row["section_id"],
        content=row["content"],
        selection=selection,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _provocation_from_row(row: sqlite3.Row) -> ProvocationRecord:
    return ProvocationRecord(
        id=row["id"],
        document_id=row["document_id"],
        section_id=row["section_id"],
        revision_id=row["revision_id"],
        request_id=row["request_id"],
        style=row["style"],
        output_text=row["output_text"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


class RevisionStore:
    """
    SQLite-backed store for documents, revisions, sections and annotations.

    Owns one connection for its lifetime. All access goes through the store
    lock, so a store instance can be shared between threads.
    """

    def __init__(self, db_path: Path, ids: Optional[IdGenerator] = None):
        """
        Args:
            db_path: Path to SQLite database file
            ids: Id generator for notes and provocations
        """
        self._db_path = Path(db_path)
        self._ids = ids or UuidIdGenerator()
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self) -> None:
        """Open the connection and bring the schema up to date."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives us manual transaction control
        # so writers can use BEGIN IMMEDIATE
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row

        # WAL lets readers see the last committed state while a write is open
        self._conn.execute("PRAGMA journal_mode=WAL")
        # Wait up to 5 seconds for locks instead of failing immediately
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._migrate()

    def _migrate(self) -> None:
        """Apply pending schema migrations, one transaction per version."""
        version = self.schema_version()
        if version > SCHEMA_VERSION:
            raise InternalError(
                f"Database schema version {version} is newer than supported ({SCHEMA_VERSION})",
                {"dbPath": str(self._db_path)},
            )
        for target in range(version + 1, SCHEMA_VERSION + 1):
            with self.transaction() as conn:
                for statement in _MIGRATIONS[target]:
                    conn.execute(statement)
                # user_version is transactional: it rolls back with the DDL
                conn.execute(f"PRAGMA user_version = {target}")
            logger.info("Migrated %s to schema version %d", self._db_path.name, target)

    def schema_version(self) -> int:
        with self._lock:
            return self._conn.execute("PRAGMA user_version").fetchone()[0]

    @property
    def db_path(self) -> Path:
        return self._db_path

    # -------------------------------------------------------------------------
    # Transaction scopes
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Exclusive write scope: commits on success, rolls back on any error.

        BEGIN IMMEDIATE takes the database write lock up front, so
        concurrent writers (other threads or processes) wait rather than
        interleave. A scope opened while another is active on this store
        joins the outer one.
        """
        with self._lock:
            if self._conn.in_transaction:
                yield self._conn
                return
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
                self._conn.execute("COMMIT")
            except BaseException:
                # SQLite may already have rolled back on some errors
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise

    @contextmanager
    def read_snapshot(self) -> Iterator[sqlite3.Connection]:
        """Deferred read transaction: every query inside sees the same state."""
        with self._lock:
            if self._conn.in_transaction:
                yield self._conn
                return
            self._conn.execute("BEGIN")
            try:
                yield self._conn
            finally:
                if self._conn.in_transaction:
                    self._conn.execute("COMMIT")

    # -------------------------------------------------------------------------
    # Documents and revisions
    # -------------------------------------------------------------------------

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return _document_from_row(row) if row else None

    def require_document(self, document_id: str) -> DocumentRecord:
        """
        Raises:
            NotFoundError: If the document does not exist
        """
        document = self.get_document(document_id)
        if document is None:
            raise NotFoundError("Document not found", {"documentId": document_id})
        return document

    def find_document_by_source_path(
        self, workspace_id: str, source_path: str
    ) -> Optional[DocumentRecord]:
        with self._lock:
            row = self._conn.execute("""
                SELECT * FROM documents
                WHERE workspace_id = ? AND source_path = ?
                ORDER BY created_at ASC
                LIMIT 1
            """, (workspace_id, source_path)).fetchone()
        return _document_from_row(row) if row else None

    def list_documents(self, workspace_id: str) -> list[DocumentRecord]:
        """Documents of one workspace, most recently updated first."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT * FROM documents
                WHERE workspace_id = ?
                ORDER BY updated_at DESC, rowid DESC
            """, (workspace_id,)).fetchall()
        return [_document_from_row(row) for row in rows]

    def update_document_source(
        self, document_id: str, source_path: str, fingerprint: SourceFingerprint
    ) -> None:
        """Relink a document to a path/fingerprint without touching revisions."""
        with self.transaction() as conn:
            cursor = conn.execute("""
                UPDATE documents
                SET source_path = ?, source_size = ?, source_mtime = ?,
                    source_sha256 = ?, updated_at = ?
                WHERE id = ?
            """, (
                source_path, fingerprint.size, fingerprint.mtime,
                fingerprint.sha256, utc_now(), document_id,
            ))
            if cursor.rowcount == 0:
                raise NotFoundError("Document not found", {"documentId": document_id})

    def get_revision(self, revision_id: str) -> Optional[RevisionRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM document_revisions WHERE id = ?", (revision_id,)
            ).fetchone()
        return RevisionRecord(**dict(row)) if row else None

    def list_revisions(self, document_id: str) -> list[RevisionRecord]:
        """Revision history of a document, oldest first."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT * FROM document_revisions
                WHERE document_id = ?
                ORDER BY revision_number ASC
            """, (document_id,)).fetchall()
        return [RevisionRecord(**dict(row)) for row in rows]

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def get_section(self, section_id: str) -> Optional[SectionRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM sections WHERE id = ?", (section_id,)
            ).fetchone()
        return _section_from_row(row) if row else None

    def list_sections(self, revision_id: str) -> list[SectionRecord]:
        """Sections of one revision in document order."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT * FROM sections
                WHERE revision_id = ?
                ORDER BY order_index ASC
            """, (revision_id,)).fetchall()
        return [_section_from_row(row) for row in rows]

    def list_current_sections(self, document_id: str) -> list[SectionRecord]:
        """Sections of the document's current revision in document order."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT s.* FROM sections s
                JOIN documents d ON d.current_revision_id = s.revision_id
                WHERE d.id = ?
                ORDER BY s.order_index ASC
            """, (document_id,)).fetchall()
        return [_section_from_row(row) for row in rows]

    def get_current_section(self, document_id: str, section_id: str) -> Optional[SectionRecord]:
        """The section if it belongs to the document's current revision, else None."""
        with self._lock:
            row = self._conn.execute("""
                SELECT s.* FROM sections s
                JOIN documents d ON d.current_revision_id = s.revision_id
                WHERE d.id = ? AND s.id = ? AND s.document_id = d.id
            """, (document_id, section_id)).fetchone()
        return _section_from_row(row) if row else None

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
        """
        Attach a note to a section of the current revision.

        Raises:
            ValidationError: Empty content or invalid selection
            NotFoundError: Unknown document
            ConflictError: Section not in the current revision
        """
        if not content.strip():
            raise ValidationError("Note content is required", {"field": "content"})
        if selection is not None:
            selection.validate()
        selection = selection or NoteSelection()

        now = utc_now()
        note_id = self._ids.new_id("note")
        with self.transaction() as conn:
            self.require_document(document_id)
            if self.get_current_section(document_id, section_id) is None:
                raise ConflictError(
                    "Target section is not in current document revision",
                    {"documentId": document_id, "sectionId": section_id},
                )
            conn.execute("""
                INSERT INTO notes
                (id, document_id, section_id, content, paragraph_ordinal,
                 start_offset, end_offset, selected_text_excerpt, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                note_id, document_id, section_id, content,
                selection.paragraph_ordinal, selection.start_offset,
                selection.end_offset, selection.selected_text_excerpt, now, now,
            ))
        return self.require_note(note_id)

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id = ?", (note_id,)
            ).fetchone()
        return _note_from_row(row) if row else None

    def require_note(self, note_id: str) -> NoteRecord:
        note = self.get_note(note_id)
        if note is None:
            raise NotFoundError("Note not found", {"noteId": note_id})
        return note

    def update_note_content(self, note_id: str, content: str) -> NoteRecord:
        if not content.strip():
            raise ValidationError("Note content is required", {"field": "content"})
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE notes SET content = ?, updated_at = ? WHERE id = ?",
                (content, utc_now(), note_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Note not found", {"noteId": note_id})
        return self.require_note(note_id)

    def delete_note(self, note_id: str) -> None:
        """Delete a note; its queue entry goes with it."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Note not found", {"noteId": note_id})

    def list_notes(self, document_id: str) -> list[NoteRecord]:
        with self._lock:
            rows = self._conn.execute(f"""
                SELECT {_NOTE_COLUMNS} FROM notes
                WHERE document_id = ?
                ORDER BY created_at ASC, rowid ASC
            """, (document_id,)).fetchall()
        return [_note_from_row(row) for row in rows]

    def list_notes_by_section(self, section_id: str) -> list[NoteRecord]:
        with self._lock:
            rows = self._conn.execute(f"""
                SELECT {_NOTE_COLUMNS} FROM notes
                WHERE section_id = ?
                ORDER BY created_at ASC, rowid ASC
            """, (section_id,)).fetchall()
        return [_note_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Reassignment queue
    # -------------------------------------------------------------------------

    def get_queue_entry(self, note_id: str) -> Optional[QueueEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM note_reassignment_queue WHERE note_id = ?", (note_id,)
            ).fetchone()
        return QueueEntry(**dict(row)) if row else None

    def list_unassigned_notes(self, document_id: str) -> list[UnassignedNote]:
        """Open queue entries of a document, oldest first."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT q.note_id, q.document_id, n.content,
                       q.previous_revision_id, q.previous_section_id,
                       q.previous_anchor_key, q.previous_heading,
                       q.created_at AS queued_at
                FROM note_reassignment_queue q
                JOIN notes n ON n.id = q.note_id
                WHERE q.document_id = ? AND q.status = 'open'
                ORDER BY q.created_at ASC, q.rowid ASC
            """, (document_id,)).fetchall()
        return [UnassignedNote(**dict(row)) for row in rows]

    def count_unassigned_notes(self, document_id: str) -> int:
        with self._lock:
            row = self._conn.execute("""
                SELECT COUNT(*) FROM note_reassignment_queue
                WHERE document_id = ? AND status = 'open'
            """, (document_id,)).fetchone()
        return row[0]

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
        """
        Store generated output for a current-revision section.

        Any earlier active provocation for the same section and revision is
        deactivated in the same transaction.

        Raises:
            NotFoundError: Unknown document
            ConflictError: Section not in the current revision
        """
        provocation_id = self._ids.new_id("prov")
        with self.transaction() as conn:
            document = self.require_document(document_id)
            if self.get_current_section(document_id, section_id) is None:
                raise ConflictError(
                    "Provocation target section is not in current document revision",
                    {"documentId": document_id, "sectionId": section_id},
                )
            revision_id = document.current_revision_id
            conn.execute("""
                UPDATE provocations SET is_active = 0
                WHERE document_id = ? AND section_id = ? AND revision_id = ?
                  AND is_active = 1
            """, (document_id, section_id, revision_id))
            conn.execute("""
                INSERT INTO provocations
                (id, document_id, section_id, revision_id, request_id,
                 style, output_text, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?)
            """, (
                provocation_id, document_id, section_id, revision_id,
                request_id, style, output_text, utc_now(),
            ))
        return self.get_provocation(provocation_id)

    def get_provocation(self, provocation_id: str) -> Optional[ProvocationRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM provocations WHERE id = ?", (provocation_id,)
            ).fetchone()
        return _provocation_from_row(row) if row else None

    def list_provocations(
        self, document_id: str, active_only: bool = False
    ) -> list[ProvocationRecord]:
        query = "SELECT * FROM provocations WHERE document_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY created_at ASC, rowid ASC"
        with self._lock:
            rows = self._conn.execute(query, (document_id,)).fetchall()
        return [_provocation_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
