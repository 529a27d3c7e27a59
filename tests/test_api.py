"""Tests for the Workspace API: import, locate, status, notes, snapshots."""

import sqlite3

import pytest

from marginalia.api import SOURCE_MISSING_MESSAGE, Workspace
from marginalia.errors import ConflictError, NotFoundError, ValidationError
from marginalia.revision_store import NoteSelection


class TestImport:

    def test_import_creates_revision_one(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# One\nx\n# Two\ny"))

        assert snap.document.title == "a.md"
        assert snap.document.file_type == "md"
        assert snap.document.revision_number == 1
        assert snap.document.section_count == 2
        assert [s.anchor_key for s in snap.sections] == ["one#1", "two#1"]
        assert snap.first_section_id == snap.sections[0].id
        assert snap.unassigned_notes == []

    def test_deterministic_ids(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.txt", "plain words"))
        assert snap.document.id == "doc-1"
        assert snap.document.current_revision_id == "rev-1"
        assert [s.id for s in snap.sections] == ["sec-1"]

    def test_duplicate_import_conflicts(self, workspace, write_source):
        path = write_source("a.md", "# One\nx")
        workspace.import_document_from_path(path)
        with pytest.raises(ConflictError, match="already imported"):
            workspace.import_document_from_path(path)

    def test_over_limit_persists_nothing(self, workspace, write_source, table_snapshot):
        path = write_source("big.txt", " ".join(["word"] * 25_001))
        with pytest.raises(ConflictError, match="25,000-word"):
            workspace.import_document_from_path(path)
        assert all(rows == [] for rows in table_snapshot(workspace.config.db_path).values())

    def test_pdf_import(self, workspace, write_source, fake_pdf):
        path = write_source("scan.pdf", "%PDF-fake")
        fake_pdf.add("scan.pdf", ["alpha text", "", "gamma text", "delta text"])
        snap = workspace.import_document_from_path(path)
        assert [(s.heading, s.page_start, s.page_end) for s in snap.sections] == [
            ("Pages 1-2", 1, 2), ("Pages 3-4", 3, 4),
        ]
        assert [s.anchor_key for s in snap.sections] == ["pages-1-2#1", "pages-3-4#1"]

    def test_list_documents(self, workspace, write_source):
        workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        workspace.import_document_from_path(write_source("b.md", "# B\ny"))
        assert sorted(d.title for d in workspace.list_documents()) == ["a.md", "b.md"]


class TestSourceStatus:

    def test_missing_source_blocks_reimport(self, workspace, write_source):
        path = write_source("a.md", "# A\nx")
        snap = workspace.import_document_from_path(path)
        path.unlink()

        status = workspace.source_file_status(snap.document.id)
        assert status.state == "missing"
        assert status.message == SOURCE_MISSING_MESSAGE
        assert status.actions == ["Locate file", "Re-import"]

        with pytest.raises(NotFoundError) as exc_info:
            workspace.reimport_document(snap.document.id)
        assert exc_info.value.details["actions"] == ["Locate file", "Re-import"]

    def test_locate_relinks_without_new_revision(self, workspace, write_source, docs_dir):
        path = write_source("a.md", "# A\nx")
        snap = workspace.import_document_from_path(path)
        moved = docs_dir / "moved.md"
        path.rename(moved)

        located = workspace.locate_document(snap.document.id, moved)

        assert located.document.source_path == str(moved.resolve())
        assert located.document.source_status.available
        assert located.document.current_revision_id == snap.document.current_revision_id
        assert [s.id for s in located.sections] == [s.id for s in snap.sections]

    def test_reimport_after_locate_picks_up_changed_content(
        self, workspace, write_source, docs_dir
    ):
        path = write_source("a.md", "# Intro\nold")
        snap = workspace.import_document_from_path(path)
        path.unlink()
        moved = write_source("moved.md", "# Intro\nnew\n# Results\nmore")

        workspace.locate_document(snap.document.id, moved)
        reimported = workspace.reimport_document(snap.document.id)

        assert reimported.document.revision_number == 2
        assert [(s.heading, s.content) for s in reimported.sections] == [
            ("Intro", "new"), ("Results", "more"),
        ]

    def test_reimport_after_locate_to_identical_copy_is_noop(
        self, workspace, write_source, docs_dir
    ):
        path = write_source("a.md", "# Intro\nsame")
        snap = workspace.import_document_from_path(path)
        moved = docs_dir / "moved.md"
        path.rename(moved)

        workspace.locate_document(snap.document.id, moved)
        reimported = workspace.reimport_document(snap.document.id)

        assert reimported.document.revision_number == 1
        assert reimported.outcome is None

    def test_locate_validates_new_path(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        with pytest.raises(ValidationError):
            workspace.locate_document(snap.document.id, write_source("a.docx", "x"))

    def test_locate_onto_other_document_conflicts(self, workspace, write_source):
        a = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        b_path = write_source("b.md", "# B\ny")
        workspace.import_document_from_path(b_path)
        with pytest.raises(ConflictError):
            workspace.locate_document(a.document.id, b_path)


class TestWorkspaceOwnership:

    def test_foreign_document_is_rejected(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        conn = sqlite3.connect(str(workspace.config.db_path))
        conn.execute("UPDATE documents SET workspace_id = 'ws-other'")
        conn.commit()
        conn.close()

        with pytest.raises(ConflictError, match="does not belong to active workspace"):
            workspace.reimport_document(snap.document.id)
        assert workspace.list_documents() == []

    def test_unknown_document(self, workspace):
        with pytest.raises(NotFoundError, match="Document not found"):
            workspace.list_sections("doc-nope")


class TestNotes:

    def test_note_lifecycle(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        note = workspace.create_note(snap.document.id, snap.first_section_id, "first")

        assert workspace.list_notes_by_section(snap.first_section_id) == [note]
        updated = workspace.update_note(note.id, "second")
        assert updated.content == "second"

        workspace.delete_note(note.id)
        with pytest.raises(NotFoundError):
            workspace.get_note(note.id)

    def test_selection_anchor(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nsome text"))
        selection = NoteSelection(
            paragraph_ordinal=0, start_offset=0, end_offset=4, selected_text_excerpt="some"
        )
        note = workspace.create_note(snap.document.id, snap.first_section_id, "n", selection)
        assert workspace.get_note(note.id).selection == selection

    def test_invalid_selection(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        with pytest.raises(ValidationError):
            workspace.create_note(
                snap.document.id, snap.first_section_id, "n",
                NoteSelection(start_offset=5, end_offset=5),
            )

    def test_note_requires_current_section(self, workspace, write_source):
        path = write_source("a.md", "# A\nx")
        snap = workspace.import_document_from_path(path)
        path.write_text("# A\nchanged", encoding="utf-8")
        workspace.reimport_document(snap.document.id)

        with pytest.raises(ConflictError):
            workspace.create_note(snap.document.id, snap.first_section_id, "late")

    def test_empty_note(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        with pytest.raises(ValidationError):
            workspace.create_note(snap.document.id, snap.first_section_id, "  ")


class TestProvocations:

    def test_one_active_per_section(self, workspace, write_source):
        snap = workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        first = workspace.record_provocation(snap.document.id, snap.first_section_id, "skeptic", "1")
        second = workspace.record_provocation(snap.document.id, snap.first_section_id, "skeptic", "2")

        active = workspace.list_active_provocations(snap.document.id)
        assert [p.id for p in active] == [second.id]
        assert workspace.store.get_provocation(first.id).is_active is False

    def test_stale_section_conflicts(self, workspace, write_source):
        path = write_source("a.md", "# A\nx")
        snap = workspace.import_document_from_path(path)
        path.write_text("# A\ny", encoding="utf-8")
        workspace.reimport_document(snap.document.id)
        with pytest.raises(ConflictError):
            workspace.record_provocation(snap.document.id, snap.first_section_id, "s", "t")


class TestLifecycle:

    def test_reopen_store(self, store_config, ids, fake_pdf, write_source):
        with Workspace(config=store_config, ids=ids, pdf_extractor=fake_pdf) as ws:
            snap = ws.import_document_from_path(write_source("a.md", "# A\nx"))

        with Workspace(config=store_config, pdf_extractor=fake_pdf) as ws:
            assert [d.id for d in ws.list_documents()] == [snap.document.id]

    def test_ops_log_written(self, workspace, write_source):
        workspace.import_document_from_path(write_source("a.md", "# A\nx"))
        log_text = (workspace.config.path / "marginalia-ops.log").read_text()
        assert "Imported a.md" in log_text
