import abc
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, StrictInt

from .models import FileVersion
from .recovery import MigrationError

# Raw data file contents, as loaded from YAML.
MigrationData = Dict

class Migration(abc.ABC):
    """
    An abstract base class for all migration steps.

    Each concrete migration class must implement the upgrade() and downgrade()
    methods to handle schema changes for a single version jump.
    """
    FROM_VERSION: FileVersion = None
    TO_VERSION: FileVersion = None

    @classmethod
    def key(cls) -> str:
        return migration_key(cls.FROM_VERSION, cls.TO_VERSION)

    @abc.abstractmethod
    def upgrade(self, data: MigrationData) -> MigrationData:
        """
        Applies schema changes to the data to upgrade it to TO_VERSION.

        Args:
            data: The dictionary representing the data to be migrated.

        Returns:
            The migrated data dictionary.
        """
        pass

    @abc.abstractmethod
    def downgrade(self, data: MigrationData) -> MigrationData:
        """
        Reverts schema changes to downgrade the data to FROM_VERSION.

        Args:
            data: The dictionary representing the data to be reverted.

        Returns:
            The downgraded data dictionary.
        """
        pass

def migration_key(from_version: FileVersion, to_version: FileVersion) -> str:
    return f"{from_version.value}_to_{to_version.value}"

class InitialEntry(BaseModel):
    """Entry of the flat INITIAL file shape, kept to describe and validate old files."""
    id: StrictInt = Field(ge=0, description="Incremental number of the entry")
    name: str
    description: Optional[str] = None
    created_at: datetime
    modified_at: datetime
    status: Literal["created", "completed", "Created", "Completed"]

class InitialDataFile(BaseModel):
    version: Literal["initial"] = "initial"
    entries: List[InitialEntry] = Field(default_factory=list)

class InitialToNested(Migration):
    """Flat entries with numeric IDs become top-level entries of the tree shape."""

    FROM_VERSION = FileVersion.INITIAL
    TO_VERSION = FileVersion.NESTED

    def upgrade(self, data: MigrationData) -> MigrationData:
        entries = []
        for entry in data.get("entries") or []:
            upgraded = dict(entry)
            upgraded["id"] = [entry["id"]]
            upgraded["status"] = str(entry["status"]).lower()
            upgraded["children"] = []
            entries.append(upgraded)
        return {"version": self.TO_VERSION.value, "entries": entries}

    def downgrade(self, data: MigrationData) -> MigrationData:
        entries = []
        for entry in data.get("entries") or []:
            if entry.get("children"):
                raise MigrationError(
                    f"Entry {'.'.join(str(p) for p in entry['id'])} has sub-entries, "
                    f"which the {self.FROM_VERSION.value} format cannot hold"
                )
            downgraded = {k: v for k, v in entry.items() if k != "children"}
            downgraded["id"] = entry["id"][0]
            entries.append(downgraded)
        return {"version": self.FROM_VERSION.value, "entries": entries}

MIGRATIONS = [InitialToNested]
