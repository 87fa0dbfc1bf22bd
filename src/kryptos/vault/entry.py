# Vault - Password Entry
#
# The credential record stored inside an encrypted vault, and its JSON
# form (the plaintext that gets encrypted).

import json
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import FormatError

# Fields a caller may change after creation
MUTABLE_FIELDS = ("title", "username", "password", "url", "notes", "tags")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip blanks and duplicates, keep first-seen order."""
    result: List[str] = []
    for tag in tags or ():
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        raise FormatError(f"Timestamp must be a string, got {type(value).__name__}")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise FormatError(f"Invalid timestamp {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class PasswordEntry:
    """A single credential record.

    ``id`` and ``created_at`` never change once the entry exists;
    ``update()`` refreshes ``updated_at``.
    """
    id: str
    title: str
    username: str
    password: str = field(repr=False)
    url: str = ""
    notes: str = ""
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        # Same shape as an entry read back from JSON
        self.url = self.url or ""
        self.notes = self.notes or ""
        self.tags = list(self.tags or [])
        for name in ("created_at", "updated_at"):
            value = getattr(self, name)
            if value.tzinfo is None:
                setattr(self, name, value.replace(tzinfo=timezone.utc))

    @classmethod
    def create(
        cls,
        title: str,
        username: str,
        password: str,
        url: str = "",
        notes: str = "",
        tags: Optional[Iterable[str]] = None,
    ) -> "PasswordEntry":
        """New entry with a fresh UUID and matching created/updated times."""
        now = _utcnow()
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            username=username,
            password=password,
            url=url or "",
            notes=notes or "",
            tags=_normalize_tags(tags),
            created_at=now,
            updated_at=now,
        )

    def update(self, **changes: Any) -> "PasswordEntry":
        """Apply field changes in place and bump ``updated_at``.

        Raises:
            ValueError: Unknown or immutable field
        """
        for name in changes:
            if name not in MUTABLE_FIELDS:
                raise ValueError(f"Field {name!r} cannot be changed")
        for name, value in changes.items():
            if name == "tags":
                value = _normalize_tags(value)
            elif name in ("url", "notes"):
                value = value or ""
            setattr(self, name, value)
        self.updated_at = _utcnow()
        return self

    def matches(self, term: str) -> bool:
        """Case-insensitive match on title, username and notes."""
        term = term.lower()
        return (
            term in self.title.lower()
            or term in self.username.lower()
            or term in self.notes.lower()
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "password": self.password,
        }
        # Optional fields are omitted when empty
        if self.url:
            data["url"] = self.url
        if self.notes:
            data["notes"] = self.notes
        if self.tags:
            data["tags"] = list(self.tags)
        data["createdAt"] = format_timestamp(self.created_at)
        data["updatedAt"] = format_timestamp(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "PasswordEntry":
        """Build an entry from its JSON object form.

        Raises:
            FormatError: Missing fields or wrong types
        """
        if not isinstance(data, dict):
            raise FormatError("Entry must be a JSON object")

        for key in ("id", "title", "username", "password"):
            if not isinstance(data.get(key), str):
                raise FormatError(f"Entry field {key!r} missing or not a string")
        for key in ("url", "notes"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise FormatError(f"Entry field {key!r} must be a string")

        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise FormatError("Entry field 'tags' must be a list of strings")

        if not data["id"]:
            raise FormatError("Entry id must not be empty")

        return cls(
            id=data["id"],
            title=data["title"],
            username=data["username"],
            password=data["password"],
            url=data.get("url") or "",
            notes=data.get("notes") or "",
            tags=list(tags),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


def ensure_unique_ids(entries: Iterable[PasswordEntry]) -> None:
    """Raise FormatError if two entries share an id."""
    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise FormatError(f"Duplicate entry id: {entry.id}")
        seen.add(entry.id)


def serialize_entries(entries: Iterable[PasswordEntry]) -> bytes:
    """JSON array of entry objects, UTF-8 encoded."""
    entries = list(entries)
    ensure_unique_ids(entries)
    return json.dumps([e.to_dict() for e in entries], ensure_ascii=False).encode("utf-8")


def deserialize_entries(payload: bytes) -> List[PasswordEntry]:
    """Inverse of serialize_entries().

    Raises:
        FormatError: Not UTF-8 JSON, not an array, or bad entries
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FormatError(f"Vault payload is not valid JSON: {e}") from e

    # Older vault files may hold `null` for an empty entry list
    if data is None:
        return []
    if not isinstance(data, list):
        raise FormatError("Vault payload must be a JSON array")

    entries = [PasswordEntry.from_dict(item) for item in data]
    ensure_unique_ids(entries)
    return entries


def filter_entries(entries: Iterable[PasswordEntry], term: Optional[str]) -> List[PasswordEntry]:
    """Entries matching ``term``; all entries when term is empty."""
    if not term:
        return list(entries)
    return [e for e in entries if e.matches(term)]


def copy_entry(entry: PasswordEntry) -> PasswordEntry:
    """Detached copy (tags list not shared)."""
    values = {f.name: getattr(entry, f.name) for f in fields(entry)}
    values["tags"] = list(entry.tags)
    return PasswordEntry(**values)
