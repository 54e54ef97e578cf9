import shutil
from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from pydantic import ValidationError

from worktracker.logs import get_logger
from worktracker.migration import MIGRATIONS, Migration, migration_key
from worktracker.models import FileVersion, WorkDataFile
from worktracker.recovery import CorruptionError, FileOperationError, MigrationError, WorkTrackerError
from .io import atomic_write, load_yaml_file
from .validate import find_schema_version, normalise_document, validate_document

log = get_logger("data.migrate")

class MigrationEngine:
    """
    Upgrades a data file to the current schema version, one version step at a time.

    The engine is only ever run on explicit request; loading a data file never
    migrates it.
    """
    def __init__(self, migrations: Optional[List[Type[Migration]]] = None):
        """Registers the migration steps, keyed by '<from>_to_<to>'."""
        self.migrations: Dict[str, Migration] = {}
        for migration_class in MIGRATIONS if migrations is None else migrations:
            self.migrations[migration_class.key()] = migration_class()
        self.available_versions = list(FileVersion)
        self.latest_version = FileVersion.current()
        log.debug(f"Registered migrations: {sorted(self.migrations)}")

    def get_migration_path(self, current_version: FileVersion) -> List[str]:
        """
        Determines the sequence of migrations needed to get from
        current_version to the latest version.

        Returns:
            A list of migration step keys (e.g., ['initial_to_nested']).

        Raises:
            MigrationError: A step on the way has no migration.
        """
        current_index = self.available_versions.index(current_version)
        latest_index = self.available_versions.index(self.latest_version)

        migration_path = []
        for i in range(current_index, latest_index):
            key = migration_key(self.available_versions[i], self.available_versions[i + 1])
            if key not in self.migrations:
                raise MigrationError(f"No migration available for '{key}'")
            migration_path.append(key)

        return migration_path

    def migrate_file(self, file_path: Union[Path, str]) -> List[str]:
        """
        Migrates a data file in place.

        The file is backed up to ``<file>.bak`` first and restored from it
        if any step fails.

        Returns:
            The keys of the applied migrations, empty if the file was current.
        """
        file_path = Path(file_path)
        data = load_yaml_file(file_path)
        if data is None:
            raise FileOperationError(f"File not found: {file_path}")

        current_version = find_schema_version(data)
        if current_version is None:
            raise CorruptionError(f"{file_path} does not match any known data file format")

        migration_path = self.get_migration_path(current_version)
        if not migration_path:
            try:
                WorkDataFile.model_validate(normalise_document(data))
            except ValidationError as e:
                raise CorruptionError(f"{file_path} is at version {current_version.value} but its entries are invalid: {e}") from e
            log.info(f"No migration needed for {file_path} at version {current_version.value}.")
            return []

        backup_path = file_path.with_name(f"{file_path.name}.bak")
        try:
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            raise FileOperationError(f"Could not back up {file_path}: {e}") from e
        log.info(f"Created backup at {backup_path}")

        try:
            log.info(f"Starting migration for {file_path}...")
            for key in migration_path:
                log.info(f"Applying migration {key}...")
                data = self.migrations[key].upgrade(data)

            data = normalise_document(data)
            if not validate_document(data, self.latest_version):
                raise MigrationError(f"Migrated data does not match schema version '{self.latest_version.value}'")
            WorkDataFile.model_validate(data)

            atomic_write(file_path, data)
            log.info(f"Successfully migrated {file_path} to version {self.latest_version.value}.")
            return migration_path

        except (WorkTrackerError, ValidationError, KeyError, TypeError, ValueError) as e:
            log.error(f"Migration failed for {file_path}. Restoring from backup. Error: {e}")
            shutil.copy2(backup_path, file_path)
            if isinstance(e, MigrationError):
                raise
            raise MigrationError(f"Migration failed for {file_path}: {e}") from e
        finally:
            if backup_path.exists():
                backup_path.unlink()
