"""Tests for the tree walker."""

from unittest.mock import Mock, patch

import pytest

from drivedl.download import (
    AdmissionScheduler,
    NullProgressAggregator,
    RunContext,
    TreeWalker,
)


@pytest.fixture
def context():
    """Create a silent run context."""
    ctx = RunContext(AdmissionScheduler(2), NullProgressAggregator())
    yield ctx
    ctx.shutdown()


@pytest.fixture
def walker(fake_drive, context):
    return TreeWalker(fake_drive, context)


class TestListChildren:
    """Tests for paginated listing."""

    def test_concatenates_all_pages(self, fake_drive, walker):
        """Test every page is requested and results keep their order."""
        fake_drive.add_folder("root", "root")
        for i in range(5):
            fake_drive.add_file(f"f{i}", f"file{i}.txt", b"x", parent_id="root")

        children = walker.list_children("root")

        assert [c.id for c in children] == ["f0", "f1", "f2", "f3", "f4"]
        assert fake_drive.list_calls == [
            ("root", None),
            ("root", "2"),
            ("root", "4"),
        ]

    def test_empty_folder(self, fake_drive, walker):
        """Test an empty folder lists as an empty list."""
        fake_drive.add_folder("root", "root")

        assert walker.list_children("root") == []


class TestTraverse:
    """Tests for recursive traversal and dispatch."""

    def test_tree_is_mirrored(self, sample_tree, walker, context, temp_dir):
        """Test A/{f1, B/{f2}} produces both files locally."""
        local = temp_dir / "A"
        local.mkdir()

        walker.traverse("A", local)
        context.wait()

        assert (local / "f1").read_bytes() == b"first file content"
        assert (local / "B" / "f2").read_bytes() == b"second file, a bit longer"
        assert context.stats.downloaded == 2

    def test_directory_created_before_dispatch(self, sample_tree, fake_drive, context, temp_dir):
        """Test a subtree's directory exists when its files are dispatched."""
        transfer = Mock()
        seen = []
        transfer.run.side_effect = lambda node, path: seen.append(path.parent.is_dir())
        walker = TreeWalker(fake_drive, context, transfer=transfer)

        walker.traverse("A", temp_dir)
        context.wait()

        assert seen == [True, True]

    def test_listing_failure_skips_only_that_subtree(
        self, fake_drive, walker, context, temp_dir
    ):
        """Test siblings are still processed when one folder cannot be listed."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_folder("bad", "bad", parent_id="root")
        fake_drive.add_file("inbad", "inbad.txt", b"lost", parent_id="bad")
        fake_drive.add_folder("good", "good", parent_id="root")
        fake_drive.add_file("ingood", "ingood.txt", b"kept", parent_id="good")
        fake_drive.list_failures.add("bad")

        walker.traverse("root", temp_dir)
        context.wait()

        assert (temp_dir / "good" / "ingood.txt").read_bytes() == b"kept"
        assert not (temp_dir / "bad" / "inbad.txt").exists()
        assert context.stats.downloaded == 1

    def test_directory_creation_failure_skips_subtree(
        self, fake_drive, walker, context, temp_dir
    ):
        """Test a file blocking a folder path skips that folder only."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_folder("sub", "sub", parent_id="root")
        fake_drive.add_file("insub", "insub.txt", b"x", parent_id="sub")
        fake_drive.add_file("top", "top.txt", b"top", parent_id="root")
        (temp_dir / "sub").write_text("I am a file")

        walker.traverse("root", temp_dir)
        context.wait()

        assert ("sub", None) not in fake_drive.list_calls
        assert (temp_dir / "top.txt").read_bytes() == b"top"

    def test_folder_visited_once(self, fake_drive, walker, context, temp_dir):
        """Test a folder reachable twice is only walked once."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_folder("shared", "shared", parent_id="root")
        # Same folder id listed again under another name
        fake_drive.children["root"].append("shared")
        fake_drive.add_file("x", "x.txt", b"x", parent_id="shared")

        walker.traverse("root", temp_dir)
        context.wait()

        assert [c for c in fake_drive.list_calls if c[0] == "shared"] == [("shared", None)]
        assert context.stats.downloaded == 1

    def test_names_are_sanitized(self, fake_drive, walker, context, temp_dir):
        """Test forbidden characters are stripped from local names."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_folder("d", "what?*dir", parent_id="root")
        fake_drive.add_file("f", "it's@file!.txt", b"data", parent_id="d")

        walker.traverse("root", temp_dir)
        context.wait()

        assert (temp_dir / "whatdir" / "itsfile.txt").read_bytes() == b"data"

    def test_google_docs_are_skipped(self, fake_drive, walker, context, temp_dir):
        """Test native Google documents are not dispatched."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_file(
            "doc",
            "Notes",
            b"",
            parent_id="root",
            mime_type="application/vnd.google-apps.document",
        )

        walker.traverse("root", temp_dir)
        context.wait()

        assert fake_drive.range_requests == []
        assert context.stats.failed == 0

    def test_duplicate_names_get_one_writer(self, fake_drive, walker, context, temp_dir):
        """Test two remote files mapping to one local path are not both written."""
        fake_drive.add_folder("root", "root")
        fake_drive.add_file("one", "same.txt", b"first", parent_id="root")
        fake_drive.add_file("two", "same.txt", b"second", parent_id="root")

        walker.traverse("root", temp_dir)
        context.wait()

        assert (temp_dir / "same.txt").read_bytes() == b"first"
        assert context.stats.downloaded == 1
        assert context.stats.failed == 1

    def test_dispatch_does_not_wait_for_files(self, sample_tree, fake_drive, context, temp_dir):
        """Test traversal returns while dispatched transfers are still pending."""
        transfer = Mock()
        walker = TreeWalker(fake_drive, context, transfer=transfer)

        with patch.object(context, "dispatch") as mock_dispatch:
            walker.traverse("A", temp_dir)

        assert mock_dispatch.call_count == 2
        transfer.run.assert_not_called()
