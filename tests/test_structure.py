"""Tests for the vecsync package structure."""


def test_package_imports():
    """Test that main package can be imported."""
    import vecsync
    assert vecsync.__version__ == "0.1.0"


def test_server_subpackage():
    """Test that server subpackage exists."""
    import vecsync.server
    assert vecsync.server is not None


def test_client_subpackage():
    """Test that client subpackage exists."""
    import vecsync.client
    assert vecsync.client is not None


def test_sync_engines_import():
    """Test that every sync engine module imports without side effects."""
    from vecsync.sync import code, crawl, drive, folder

    assert folder.FolderSync and drive.DriveSync and crawl.CrawlSync and code.CodeSync
