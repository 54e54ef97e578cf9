from pydantic import BaseModel, ConfigDict, Field, RootModel, StrictInt, field_validator, model_validator
from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Annotated, Optional, List, Tuple
import re

from .recovery import AlreadyCompletedError, EntryNotFoundError, EntryValidationError, ParseError

MAX_NAME_LENGTH = 28

ID_PATTERN = re.compile(r'[0-9]+(?:\.[0-9]+)*')

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class EntryStatus(Enum):
    CREATED = "created"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return self.value.capitalize()

class FileVersion(Enum):
    """Shape of the data file. INITIAL is a flat list, NESTED a tree of entries."""
    INITIAL = "initial"
    NESTED = "nested"

    @classmethod
    def current(cls) -> 'FileVersion':
        """The shape this version of the tracker reads and writes."""
        return cls.NESTED

@total_ordering
class EntryId(RootModel):
    """Hierarchical entry identifier, one number per nesting level.

    ``2`` is a top-level entry, ``2.0`` the first child of entry ``2``. IDs
    compare lexicographically over their components and are written to the
    data file as a list of numbers.
    """

    model_config = ConfigDict(frozen=True)

    root: Tuple[Annotated[StrictInt, Field(ge=0)], ...] = Field(min_length=1)

    @classmethod
    def parse(cls, text: str) -> 'EntryId':
        """Parse a dot-separated ID such as ``3`` or ``3.1``."""
        if not ID_PATTERN.fullmatch(text):
            raise ParseError(f"Invalid entry ID '{text}', expected numbers separated by dots (e.g. 3 or 3.1)")
        return cls(tuple(int(part) for part in text.split('.')))

    @classmethod
    def zero(cls) -> 'EntryId':
        return cls((0,))

    @property
    def depth(self) -> int:
        return len(self.root)

    def next(self) -> 'EntryId':
        """The ID following this one on the same level."""
        return EntryId(self.root[:-1] + (self.root[-1] + 1,))

    def child(self, index: int = 0) -> 'EntryId':
        return EntryId(self.root + (index,))

    def parent(self) -> Optional['EntryId']:
        if self.depth == 1:
            return None
        return EntryId(self.root[:-1])

    def prefix(self, depth: int) -> 'EntryId':
        return EntryId(self.root[:depth])

    def __lt__(self, other):
        if not isinstance(other, EntryId):
            return NotImplemented
        return self.root < other.root

    def __str__(self) -> str:
        return '.'.join(str(part) for part in self.root)

    def __repr__(self) -> str:
        return f"EntryId('{self}')"

def _next_id(siblings: List['WorkEntry'], first: EntryId) -> EntryId:
    highest = max((entry.id for entry in siblings), default=None)
    return highest.next() if highest is not None else first

def _check_unique_ids(entries: List['WorkEntry']):
    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise ValueError(f"Duplicate entry ID: {entry.id}")
        seen.add(entry.id)

class WorkEntry(BaseModel):
    """A single work item, with optional sub-entries of the same shape."""

    id: EntryId = Field(description="Path of the entry in the tree")
    name: str = Field(description="Short name of the entry")
    description: Optional[str] = Field(default=None, description="Longer free-form description")
    created_at: datetime = Field(description="When the entry was added")
    modified_at: datetime = Field(description="When the entry was last changed")
    status: EntryStatus = Field(default=EntryStatus.CREATED, description="Lifecycle status of the entry")
    children: List['WorkEntry'] = Field(
        default_factory=list,
        description="Sub-entries, in insertion order"
    )

    @field_validator('created_at', 'modified_at')
    @classmethod
    def ensure_utc(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def validate_entry(self):
        if self.modified_at < self.created_at:
            raise ValueError("modified_at must not be before created_at")
        for child in self.children:
            if child.id.parent() != self.id:
                raise ValueError(f"Sub-entry {child.id} does not belong to entry {self.id}")
        _check_unique_ids(self.children)
        return self

    @classmethod
    def create(cls, id: EntryId, name: str, description: Optional[str] = None) -> 'WorkEntry':
        now = utc_now()
        return cls(id=id, name=name, description=description, created_at=now, modified_at=now)

    def touch(self):
        self.modified_at = utc_now()

    def complete(self):
        """Mark as completed. Sub-entries keep their own status."""
        self.status = EntryStatus.COMPLETED
        self.touch()

    def is_completed(self) -> bool:
        return self.status == EntryStatus.COMPLETED

    def next_child_id(self) -> EntryId:
        return _next_id(self.children, self.id.child(0))

WorkEntry.model_rebuild()

class WorkDataFile(BaseModel):
    """All tracked work, as stored in the data file.

    ``entries`` holds the top-level entries in insertion order; moving an
    entry to the end gives it the highest priority, since every read path
    walks the list backwards.
    """

    version: FileVersion = Field(default_factory=FileVersion.current, description="Shape of the data file")
    entries: List[WorkEntry] = Field(
        default_factory=list,
        description="Top-level entries, lowest priority first"
    )

    @model_validator(mode='after')
    def validate_entries(self):
        for entry in self.entries:
            if entry.id.depth != 1:
                raise ValueError(f"Top-level entry has nested ID {entry.id}")
        _check_unique_ids(self.entries)
        return self

    @staticmethod
    def _check_name(name: str):
        if len(name) > MAX_NAME_LENGTH:
            raise EntryValidationError(f"Name can have at most {MAX_NAME_LENGTH} chars, got {len(name)}")

    def next_id(self) -> EntryId:
        return _next_id(self.entries, EntryId.zero())

    def add_entry(self, name: str, description: Optional[str] = None) -> EntryId:
        """Append a new top-level entry and return its ID."""
        self._check_name(name)
        entry = WorkEntry.create(self.next_id(), name, description)
        self.entries.append(entry)
        return entry.id

    def add_child_entry(self, name: str, description: Optional[str], parent_id: EntryId) -> EntryId:
        """Append a new sub-entry as the last child of ``parent_id``."""
        self._check_name(name)
        parent = self.resolve_path(parent_id)
        entry = WorkEntry.create(parent.next_child_id(), name, description)
        parent.children.append(entry)
        parent.touch()
        return entry.id

    def find_index(self, entry_id: EntryId) -> int:
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return index
        raise EntryNotFoundError(f"No entry with the ID {entry_id}")

    def find_entry(self, entry_id: EntryId) -> WorkEntry:
        """Find a top-level entry. Sub-entries are not addressable here."""
        return self.entries[self.find_index(entry_id)]

    def resolve_path(self, entry_id: EntryId) -> WorkEntry:
        """Find an entry at any depth by walking its ID one level at a time."""
        level = self.entries
        entry = None
        for depth in range(1, entry_id.depth + 1):
            prefix = entry_id.prefix(depth)
            entry = next((e for e in level if e.id == prefix), None)
            if entry is None:
                raise EntryNotFoundError(f"No entry with the ID {entry_id}")
            level = entry.children
        return entry

    def find_entry_or_default(self, entry_id: Optional[EntryId] = None) -> Optional[WorkEntry]:
        """The entry for ``entry_id``, or the one to work on next if no ID is given."""
        if entry_id is not None:
            return self.find_entry(entry_id)
        return next((e for e in reversed(self.entries) if not e.is_completed()), None)

    def remove(self, entry_id: EntryId) -> WorkEntry:
        return self.entries.pop(self.find_index(entry_id))

    def complete(self, entry_id: EntryId):
        entry = self.find_entry(entry_id)
        if entry.is_completed():
            raise AlreadyCompletedError(f"Entry {entry_id} is already marked as completed")
        entry.complete()

    def reprioritize(self, entry_id: EntryId):
        entry = self.entries.pop(self.find_index(entry_id))
        entry.touch()
        self.entries.append(entry)

    def edit(self, entry_id: EntryId, description: Optional[str] = None, status: Optional[EntryStatus] = None):
        """Overwrite the description and, if given, the status of an entry.

        The description is replaced as a whole, so leaving it out clears it.
        The status is set as-is; unlike ``complete`` this can also move a
        completed entry back to created.
        """
        if description is None and status is None:
            raise EntryValidationError("Nothing to edit, provide a description and/or a status")
        entry = self.find_entry(entry_id)
        entry.description = description
        if status is not None:
            entry.status = status
        entry.touch()

    def list_entries(self, include_completed: bool = False) -> List[WorkEntry]:
        """Entries by priority, highest first."""
        return [e for e in reversed(self.entries) if include_completed or not e.is_completed()]
