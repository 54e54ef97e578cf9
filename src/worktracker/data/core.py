"""
DataCore - Loading, version checking and saving of the work tracker data file.

The data file holds the whole WorkDataFile as YAML. It is read in full, checked
against the schema version this application writes, and replaced in full on
every save. Nothing here upgrades old files; that is the job of the explicit
``work migrate`` command (see ``worktracker.data.migrate``).
"""
from pathlib import Path
from typing import Union
from pydantic import BaseModel, ValidationError
from worktracker.recovery import CorruptionError, HomeDirectoryUnavailableError, VersionMismatchError
from worktracker.models import FileVersion, WorkDataFile
from worktracker.logs import get_logger
from .io import atomic_write, load_yaml_file

log = get_logger("data")

class _VersionTag(BaseModel):
    """Only the version tag of a data file, read before anything else."""
    version: FileVersion

class WorkContext:
    """Loads the data file on entry and saves it on a clean exit."""

    def __init__(self, path : Path, read_only : bool = False):
        self.path = Path(path)
        self.read_only = read_only
        self.store : Union[WorkDataFile, None] = None

    def __enter__(self):
        """Context manager entry."""
        self.store = DataCore.load_or_create(self.path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - save changes unless the operation failed."""
        if exc_type is None and not self.read_only:
            self.save()
        return False

    def save(self):
        DataCore.save(self.store, self.path)

class DataCore:
    CONFIG_DIR = Path(".config")
    DATA_FILENAME = "work-tracker.yml"

    @classmethod
    def default_data_file(cls) -> Path:
        """Location of the data file when none is given: ~/.config/work-tracker.yml"""
        try:
            home = Path.home()
        except (RuntimeError, KeyError) as e:
            raise HomeDirectoryUnavailableError(f"Failed to read home directory: {e}") from e
        return home / cls.CONFIG_DIR / cls.DATA_FILENAME

    @classmethod
    def get_context(cls, path : Path, read_only : bool = False) -> WorkContext:
        return WorkContext(path, read_only)

    @classmethod
    def check_version(cls, version : FileVersion, path : Path):
        current = FileVersion.current()
        log.info(f"FILE: {version.value}; APP: {current.value};")
        if version != current:
            raise VersionMismatchError(
                f"Data file {path} uses schema version '{version.value}' but this version of "
                f"work tracker needs '{current.value}'. Run 'work migrate' to upgrade it."
            )

    @classmethod
    def load_or_create(cls, path : Path) -> WorkDataFile:
        """
        Load the data file at ``path``, creating an empty one if there is none.

        Raises:
            CorruptionError: The file is not a valid data file
            VersionMismatchError: The file was written with another schema version
            FileOperationError: The file cannot be read or created
        """
        path = Path(path)
        data = load_yaml_file(path)
        if data is None:
            log.info(f"No data file at {path}, creating a new one")
            store = WorkDataFile()
            atomic_write(path, store.model_dump(mode="json"), create_dirs=True)
            return store

        try:
            tag = _VersionTag.model_validate(data)
        except ValidationError as e:
            raise CorruptionError(f"Data file {path} has no valid version tag: {e}") from e

        cls.check_version(tag.version, path)

        try:
            store = WorkDataFile.model_validate(data)
        except ValidationError as e:
            raise CorruptionError(f"Failed to parse work entries in {path}: {e}") from e

        log.debug(f"Loaded {len(store.entries)} entries from {path}")
        return store

    @classmethod
    def save(cls, store : WorkDataFile, path : Path):
        """Replace the data file at ``path`` with the contents of ``store``."""
        atomic_write(path, store.model_dump(mode="json"))
        log.debug(f"Saved {len(store.entries)} entries to {path}")
