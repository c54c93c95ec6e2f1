"""Tests for incremental folder sync, end to end over a temporary SQLite store."""

import pytest

from conftest import long_text
from vecsync.exceptions import SourceNotFoundError
from vecsync.sync.folder import FolderSync, scan_folder


class TestScanFolder:
    """Tests for scan_folder."""

    def test_filters_extensions_and_ignored_dirs(self, tmp_path):
        (tmp_path / "keep.txt").write_text("x")
        (tmp_path / "skip.exe").write_text("x")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "dep.txt").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "nested.md").write_text("x")

        files = scan_folder(tmp_path, {".txt", ".md"}, {"node_modules"})

        assert sorted(f.name for f in files) == ["keep.txt", "nested.md"]
        assert all(f.is_absolute() for f in files)

    def test_non_recursive(self, tmp_path):
        (tmp_path / "top.txt").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deep.txt").write_text("x")

        files = scan_folder(tmp_path, {".txt"}, set(), recursive=False)

        assert [f.name for f in files] == ["top.txt"]


class TestFolderSync:
    """Tests for FolderSync.sync."""

    @pytest.mark.asyncio
    async def test_first_sync_indexes_every_file(self, make_index, test_config, docs_folder):
        index = make_index()

        result = await FolderSync(index, test_config).sync(docs_folder)

        assert (result.added, result.skipped, result.removed) == (3, 0, 0)
        assert result.errors == []

        hits = await index.query("galaxy", top_k=1)
        assert hits[0].metadata["filePath"].endswith("astronomy.txt")
        assert hits[0].metadata["source"] == "file"

    @pytest.mark.asyncio
    async def test_second_sync_is_a_no_op(self, make_index, test_config, docs_folder, fake_embedder):
        index = make_index()
        engine = FolderSync(index, test_config)
        await engine.sync(docs_folder)
        calls_after_first = len(fake_embedder.calls)

        result = await engine.sync(docs_folder)

        assert (result.added, result.skipped, result.removed) == (0, 3, 0)
        assert len(fake_embedder.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_deleted_file_is_removed(self, make_index, test_config, docs_folder, sqlite_store):
        index = make_index()
        engine = FolderSync(index, test_config)
        await engine.sync(docs_folder)

        (docs_folder / "cooking.md").unlink()
        result = await engine.sync(docs_folder)

        assert result.removed == 1
        assert result.skipped == 2
        assert not any("cooking" in doc.id for doc in sqlite_store.get_all())

    @pytest.mark.asyncio
    async def test_new_file_is_added(self, make_index, test_config, docs_folder):
        index = make_index()
        engine = FolderSync(index, test_config)
        await engine.sync(docs_folder)

        (docs_folder / "botany.txt").write_text(long_text("orchid"))
        result = await engine.sync(docs_folder)

        assert (result.added, result.skipped, result.removed) == (1, 3, 0)

    @pytest.mark.asyncio
    async def test_other_roots_are_left_alone(self, make_index, test_config, docs_folder, tmp_path, sqlite_store):
        index = make_index()
        other = tmp_path / "other"
        other.mkdir()
        (other / "music.txt").write_text(long_text("melody"))

        engine = FolderSync(index, test_config)
        await engine.sync(docs_folder)
        result = await engine.sync(other)

        assert result.added == 1
        assert result.removed == 0
        assert sqlite_store.count() == 4

    @pytest.mark.asyncio
    async def test_bad_file_is_reported_and_others_indexed(self, make_index, test_config, docs_folder):
        (docs_folder / "broken.json").write_text("{not valid json")
        index = make_index()

        result = await FolderSync(index, test_config).sync(docs_folder)

        assert result.added == 3
        assert len(result.errors) == 1
        assert result.errors[0].key.endswith("broken.json")

    @pytest.mark.asyncio
    async def test_missing_folder(self, make_index, test_config, tmp_path):
        with pytest.raises(SourceNotFoundError):
            await FolderSync(make_index(), test_config).sync(tmp_path / "nope")
