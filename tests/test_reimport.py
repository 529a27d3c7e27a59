"""
Tests for revision commits.

Covers exact anchor-key remapping, orphaning into the reassignment queue,
provocation deactivation and all-or-nothing rollback.
"""

import sqlite3

import pytest

from marginalia.errors import ConflictError, InternalError
from marginalia.ingest import prepare_import
from marginalia.reimport import NewDocument, RevisionPlan, RevisionTransaction, commit_revision

V1 = "# Intro\nhello\n# Methods\nsteps"
V2 = "# Intro\nhello again\n# Approach\nsteps"


def _section(snapshot, anchor_key):
    return next(s for s in snapshot.sections if s.anchor_key == anchor_key)


@pytest.fixture
def annotated(workspace, write_source):
    """Document at V1 with one note on each section."""
    path = write_source("paper.md", V1)
    snap = workspace.import_document_from_path(path)
    intro = _section(snap, "intro#1")
    methods = _section(snap, "methods#1")
    kept = workspace.create_note(snap.document.id, intro.id, "on intro")
    orphan = workspace.create_note(snap.document.id, methods.id, "on methods")
    return path, snap, kept, orphan


class TestRemap:
    """Notes follow exact anchor-key matches into the new revision."""

    def test_matched_note_is_rebound(self, workspace, annotated):
        path, snap, kept, _ = annotated
        path.write_text(V2, encoding="utf-8")

        new = workspace.reimport_document(snap.document.id)

        assert new.document.revision_number == 2
        assert new.outcome.remapped_note_ids == [kept.id]
        assert workspace.get_note(kept.id).section_id == _section(new, "intro#1").id

    def test_unmatched_note_is_orphaned(self, workspace, annotated):
        path, snap, _, orphan = annotated
        path.write_text(V2, encoding="utf-8")

        new = workspace.reimport_document(snap.document.id)

        assert new.outcome.orphaned_note_ids == [orphan.id]
        assert workspace.get_note(orphan.id).section_id is None
        entries = workspace.list_unassigned_notes(snap.document.id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.note_id == orphan.id
        assert entry.previous_heading == "Methods"
        assert entry.previous_anchor_key == "methods#1"
        assert entry.previous_section_id == _section(snap, "methods#1").id
        assert entry.previous_revision_id == snap.document.current_revision_id
        assert workspace.store.get_queue_entry(orphan.id).status == "open"

    def test_no_note_points_at_a_stale_revision(self, workspace, annotated):
        path, snap, _, _ = annotated
        path.write_text(V2, encoding="utf-8")
        new = workspace.reimport_document(snap.document.id)

        current_ids = {s.id for s in new.sections}
        for note in workspace.list_notes(snap.document.id):
            assert note.section_id is None or note.section_id in current_ids

    def test_reordered_sections_keep_notes(self, workspace, annotated):
        path, snap, kept, orphan = annotated
        path.write_text("# Methods\nsteps\n# Intro\nhello", encoding="utf-8")
        new = workspace.reimport_document(snap.document.id)

        assert new.outcome.orphaned_note_ids == []
        assert workspace.get_note(orphan.id).section_id == _section(new, "methods#1").id
        assert workspace.get_note(kept.id).section_id == _section(new, "intro#1").id

    def test_document_anchor_match_resolves_open_queue_row(self, workspace, write_source):
        path = write_source("plain.md", "no headings here")
        snap = workspace.import_document_from_path(path)
        section = _section(snap, "document#1")
        note = workspace.create_note(snap.document.id, section.id, "keep me")

        # Stale open queue row for a bound note
        conn = sqlite3.connect(str(workspace.config.db_path))
        conn.execute("""
            INSERT INTO note_reassignment_queue
            (id, note_id, document_id, previous_revision_id, previous_section_id,
             previous_anchor_key, previous_heading, status, created_at)
            VALUES ('rq-stale', ?, ?, NULL, NULL, 'document#1', 'Document', 'open', '2026-01-01')
        """, (note.id, snap.document.id))
        conn.commit()
        conn.close()

        path.write_text("still no headings, new words", encoding="utf-8")
        new = workspace.reimport_document(snap.document.id)

        assert workspace.get_note(note.id).section_id == _section(new, "document#1").id
        entry = workspace.store.get_queue_entry(note.id)
        assert entry.status == "resolved"
        assert entry.resolved_at is not None
        assert new.outcome.resolved_queue_entries == 1


class TestQueueUpsert:
    """One queue row per note, however often it is orphaned."""

    def test_reorphaned_note_reopens_same_row(self, workspace, annotated):
        path, snap, _, orphan = annotated
        doc_id = snap.document.id

        path.write_text(V2, encoding="utf-8")
        v2 = workspace.reimport_document(doc_id)
        approach = _section(v2, "approach#1")
        workspace.reassign(doc_id, orphan.id, approach.id)
        assert workspace.store.get_queue_entry(orphan.id).status == "resolved"

        path.write_text("# Intro\nhello\n# Discussion\nthoughts", encoding="utf-8")
        v3 = workspace.reimport_document(doc_id)

        assert v3.outcome.orphaned_note_ids == [orphan.id]
        entry = workspace.store.get_queue_entry(orphan.id)
        assert entry.status == "open"
        assert entry.resolved_at is None
        assert entry.previous_anchor_key == "approach#1"
        assert entry.previous_section_id == approach.id
        assert entry.previous_revision_id == v2.document.current_revision_id

        conn = sqlite3.connect(str(workspace.config.db_path))
        count = conn.execute(
            "SELECT COUNT(*) FROM note_reassignment_queue WHERE note_id = ?", (orphan.id,)
        ).fetchone()[0]
        conn.close()
        assert count == 1


class TestProvocations:

    def test_reimport_deactivates_stale_provocations(self, workspace, annotated):
        path, snap, _, _ = annotated
        intro = _section(snap, "intro#1")
        old = workspace.record_provocation(snap.document.id, intro.id, "skeptic", "Why?")
        assert old.is_active

        path.write_text(V2, encoding="utf-8")
        new = workspace.reimport_document(snap.document.id)

        assert new.outcome.deactivated_provocations == 1
        assert workspace.list_active_provocations(snap.document.id) == []
        assert workspace.store.get_provocation(old.id).is_active is False


class TestRevisionHistory:

    def test_revisions_are_append_only(self, workspace, annotated):
        path, snap, _, _ = annotated
        doc_id = snap.document.id
        path.write_text(V2, encoding="utf-8")
        workspace.reimport_document(doc_id)
        path.write_text(V1, encoding="utf-8")
        workspace.reimport_document(doc_id)

        revisions = workspace.list_revisions(doc_id)
        assert [r.revision_number for r in revisions] == [1, 2, 3]
        # Old sections survive as history
        assert len(workspace.store.list_sections(revisions[0].id)) == 2

    def test_unchanged_source_creates_no_revision(self, workspace, annotated):
        _, snap, _, _ = annotated
        again = workspace.reimport_document(snap.document.id)
        assert again.outcome is None
        assert again.document.current_revision_id == snap.document.current_revision_id
        assert len(workspace.list_revisions(snap.document.id)) == 1

    def test_force_creates_revision_and_keeps_notes(self, workspace, annotated):
        _, snap, kept, orphan = annotated
        forced = workspace.reimport_document(snap.document.id, force=True)
        assert forced.document.revision_number == 2
        assert sorted(forced.outcome.remapped_note_ids) == sorted([kept.id, orphan.id])
        assert forced.unassigned_notes == []


class TestAtomicity:
    """A failure at any step leaves every table exactly as it was."""

    @pytest.mark.parametrize("step", [
        "insert_sections",
        "orphan_notes",
        "rebind_notes",
        "deactivate_provocations",
        "advance_document",
    ])
    def test_persistence_failure_rolls_back(
        self, workspace, annotated, table_snapshot, monkeypatch, step
    ):
        path, snap, _, _ = annotated
        intro = _section(snap, "intro#1")
        workspace.record_provocation(snap.document.id, intro.id, "skeptic", "Why?")
        path.write_text(V2, encoding="utf-8")
        before = table_snapshot(workspace.config.db_path)

        def fail(self, *args, **kwargs):
            raise sqlite3.OperationalError("injected failure")

        monkeypatch.setattr(RevisionTransaction, step, fail)

        with pytest.raises(InternalError):
            workspace.reimport_document(snap.document.id)

        assert table_snapshot(workspace.config.db_path) == before

    def test_failure_after_all_steps_rolls_back(
        self, workspace, annotated, table_snapshot, monkeypatch
    ):
        """A non-database error after the last write still rolls everything back."""
        path, snap, _, _ = annotated
        path.write_text(V2, encoding="utf-8")
        before = table_snapshot(workspace.config.db_path)

        original = RevisionTransaction.advance_document

        def advance_then_fail(self, plan, revision_id):
            original(self, plan, revision_id)
            raise RuntimeError("crash after last step")

        monkeypatch.setattr(RevisionTransaction, "advance_document", advance_then_fail)

        with pytest.raises(RuntimeError):
            workspace.reimport_document(snap.document.id)

        assert table_snapshot(workspace.config.db_path) == before
        assert workspace.get_document_snapshot(snap.document.id).document.revision_number == 1

    def test_failed_first_import_persists_nothing(
        self, workspace, write_source, table_snapshot, monkeypatch
    ):
        path = write_source("new.md", "# A\nx")

        def fail(self, *args, **kwargs):
            raise sqlite3.IntegrityError("injected failure")

        monkeypatch.setattr(RevisionTransaction, "insert_sections", fail)

        with pytest.raises(InternalError):
            workspace.import_document_from_path(path)

        assert all(rows == [] for rows in table_snapshot(workspace.config.db_path).values())
        assert workspace.list_documents() == []


class TestDuplicateImportInsideCommit:
    """The same-path check is repeated under the write lock."""

    def test_second_commit_for_same_path_conflicts(
        self, workspace, write_source, ids, table_snapshot
    ):
        prepared = prepare_import(write_source("paper.md", V1))

        def plan():
            return RevisionPlan(
                document_id=ids.new_id("doc"),
                source_path=str(prepared.source_path),
                fingerprint=prepared.fingerprint,
                sections=prepared.sections,
            )

        owner = NewDocument(workspace.workspace_id)
        first = commit_revision(workspace.store, plan(), ids, new_document=owner)
        before = table_snapshot(workspace.config.db_path)

        with pytest.raises(ConflictError, match="already imported") as exc_info:
            commit_revision(workspace.store, plan(), ids, new_document=owner)

        assert exc_info.value.details["documentId"] == first.document_id
        assert table_snapshot(workspace.config.db_path) == before
