"""Unit tests for DataCore loading and saving."""

import stat

import pytest
import yaml
from pathlib import Path
from unittest.mock import patch

from worktracker.data import DataCore, WorkContext
from worktracker.data.io import atomic_write, load_yaml_file
from worktracker.models import EntryId, EntryStatus, FileVersion, WorkDataFile
from worktracker.recovery import (
    CorruptionError, EntryNotFoundError, FatalError, FileOperationError,
    HomeDirectoryUnavailableError, VersionMismatchError
)


INITIAL_FILE = """\
version: initial
entries:
- id: 0
  name: Buy milk
  description: null
  created_at: '2024-03-01T10:00:00Z'
  modified_at: '2024-03-01T10:00:00Z'
  status: Created
"""


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "work-tracker.yml"


class TestLoadOrCreate:
    """Test DataCore.load_or_create."""

    def test_creates_missing_file(self, data_file):
        """Test that a fresh install gets a well-formed file right away."""
        store = DataCore.load_or_create(data_file)
        assert store.entries == []
        assert store.version == FileVersion.current()
        assert data_file.exists()
        assert yaml.safe_load(data_file.read_text()) == {"version": "nested", "entries": []}

    def test_creates_parent_directories(self, tmp_path):
        data_file = tmp_path / "config" / "nested" / "work-tracker.yml"
        DataCore.load_or_create(data_file)
        assert data_file.exists()

    def test_round_trip(self, data_file):
        """Test that save then load reproduces an equal store."""
        store = WorkDataFile()
        store.add_entry("Buy milk")
        parent = store.add_entry("Clean house", "kitchen")
        store.add_child_entry("Dishes", "all of them", parent)
        store.complete(EntryId.parse("0"))
        store.reprioritize(EntryId.parse("0"))

        DataCore.save(store, data_file)
        loaded = DataCore.load_or_create(data_file)

        assert loaded == store
        assert [str(e.id) for e in loaded.entries] == ["1", "0"]
        assert loaded.entries[1].status == EntryStatus.COMPLETED
        assert loaded.entries[0].children[0].description == "all of them"

    def test_ids_are_stored_as_lists(self, data_file):
        store = WorkDataFile()
        parent = store.add_entry("a")
        store.add_child_entry("b", None, parent)
        DataCore.save(store, data_file)

        raw = yaml.safe_load(data_file.read_text())
        assert raw["entries"][0]["id"] == [0]
        assert raw["entries"][0]["children"][0]["id"] == [0, 0]
        assert raw["entries"][0]["status"] == "created"

    def test_version_mismatch(self, data_file):
        """Test that an old file is refused and left untouched."""
        data_file.write_text(INITIAL_FILE)
        with pytest.raises(VersionMismatchError, match="work migrate"):
            DataCore.load_or_create(data_file)
        assert data_file.read_text() == INITIAL_FILE

    def test_unknown_version(self, data_file):
        data_file.write_text("version: future\nentries: []\n")
        with pytest.raises(CorruptionError, match="version tag"):
            DataCore.load_or_create(data_file)

    def test_invalid_yaml(self, data_file):
        data_file.write_text("version: nested\nentries: [\n")
        with pytest.raises(CorruptionError):
            DataCore.load_or_create(data_file)

    def test_not_a_mapping(self, data_file):
        data_file.write_text("- just\n- a list\n")
        with pytest.raises(CorruptionError):
            DataCore.load_or_create(data_file)

    def test_empty_file(self, data_file):
        data_file.write_text("")
        with pytest.raises(CorruptionError):
            DataCore.load_or_create(data_file)

    def test_malformed_entries(self, data_file):
        data_file.write_text("version: nested\nentries:\n- id: [0]\n  name: no timestamps\n")
        with pytest.raises(CorruptionError, match="Failed to parse work entries"):
            DataCore.load_or_create(data_file)

    def test_boolean_ids(self, data_file):
        """Test that YAML booleans are not read as entry IDs."""
        data_file.write_text(
            "version: nested\n"
            "entries:\n"
            "- id: [true]\n"
            "  name: Flag\n"
            "  created_at: '2024-03-01T10:00:00Z'\n"
            "  modified_at: '2024-03-01T10:00:00Z'\n"
            "  status: created\n"
        )
        with pytest.raises(CorruptionError, match="Failed to parse work entries"):
            DataCore.load_or_create(data_file)

    def test_read_failure(self, data_file):
        """Test that a data file which cannot be read raises FileOperationError."""
        data_file.mkdir()
        with pytest.raises(FileOperationError, match="Failed to read"):
            DataCore.load_or_create(data_file)

    def test_permission_denied(self, data_file):
        DataCore.load_or_create(data_file)
        with patch("builtins.open", side_effect=PermissionError("denied")):
            with pytest.raises(FileOperationError, match="denied"):
                load_yaml_file(data_file)

    def test_create_failure(self, data_file):
        """Test that a failed first-run write leaves nothing behind."""
        with patch("worktracker.data.io.os.replace", side_effect=OSError("read-only file system")):
            with pytest.raises(FileOperationError, match="read-only file system"):
                DataCore.load_or_create(data_file)
        assert not data_file.exists()
        assert list(data_file.parent.glob("*.tmp")) == []

    def test_create_directory_failure(self, tmp_path):
        data_file = tmp_path / "config" / "work-tracker.yml"
        with patch.object(Path, "mkdir", side_effect=PermissionError("denied")):
            with pytest.raises(FileOperationError, match="Cannot create directory"):
                DataCore.load_or_create(data_file)
        assert not data_file.parent.exists()

    def test_corruption_is_fatal(self):
        assert issubclass(CorruptionError, FatalError)


class TestSave:
    """Test DataCore.save and the atomic writer."""

    def test_save_replaces_file(self, data_file):
        store = DataCore.load_or_create(data_file)
        store.add_entry("New")
        DataCore.save(store, data_file)
        assert load_yaml_file(data_file)["entries"][0]["name"] == "New"
        assert list(data_file.parent.glob("*.tmp")) == []

    def test_write_failure(self, data_file):
        """Test that I/O errors surface as FileOperationError and keep the old file."""
        DataCore.load_or_create(data_file)
        before = data_file.read_text()
        store = WorkDataFile()
        store.add_entry("Lost")

        with patch("worktracker.data.io.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(FileOperationError, match="disk full"):
                DataCore.save(store, data_file)

        assert data_file.read_text() == before
        assert list(data_file.parent.glob("*.tmp")) == []

    def test_keeps_file_mode(self, data_file):
        """Test that saving does not change the permissions of the data file."""
        DataCore.load_or_create(data_file)
        data_file.chmod(0o644)
        store = WorkDataFile()
        store.add_entry("New")
        DataCore.save(store, data_file)
        assert stat.S_IMODE(data_file.stat().st_mode) == 0o644

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileOperationError):
            atomic_write(tmp_path / "missing" / "file.yml", {"a": 1})

    def test_unserializable_data(self, data_file):
        with pytest.raises(FatalError):
            atomic_write(data_file, {"a": object()})
        assert not data_file.exists()


class TestWorkContext:
    """Test the load/mutate/save context."""

    def test_saves_on_success(self, data_file):
        with DataCore.get_context(data_file) as context:
            context.store.add_entry("Saved")
        assert DataCore.load_or_create(data_file).entries[0].name == "Saved"

    def test_no_save_on_failure(self, data_file):
        """Test that a failed operation leaves the file as it was."""
        with DataCore.get_context(data_file) as context:
            context.store.add_entry("Existing")
        before = data_file.read_text()

        with pytest.raises(EntryNotFoundError):
            with DataCore.get_context(data_file) as context:
                context.store.add_entry("Not saved")
                context.store.complete(EntryId.parse("9"))

        assert data_file.read_text() == before

    def test_read_only(self, data_file):
        DataCore.load_or_create(data_file)
        before = data_file.read_text()
        with WorkContext(data_file, read_only=True) as context:
            context.store.add_entry("Not saved")
        assert data_file.read_text() == before


class TestDefaultLocation:
    """Test resolving the default data file."""

    def test_default_data_file(self, tmp_path):
        with patch.object(Path, "home", return_value=tmp_path):
            assert DataCore.default_data_file() == tmp_path / ".config" / "work-tracker.yml"

    def test_home_unavailable(self):
        with patch.object(Path, "home", side_effect=RuntimeError("Could not determine home directory")):
            with pytest.raises(HomeDirectoryUnavailableError):
                DataCore.default_data_file()
