"""
Credential records and the in-memory record set.

A ``RecordSet`` is the complete plaintext content of an open vault. It is a
read-only mapping of ``name -> CredentialRecord``; changes go through
``add``, ``update`` and ``remove`` so name uniqueness always holds.
"""
from typing import Optional
from collections.abc import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import DuplicateNameError, InvalidRecordError, NotFoundError


class CredentialRecord(BaseModel):
    """A named username/password pair."""

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    name: str = Field(min_length=1)
    username: str
    password: str = Field(repr=False)
    comments: str = ""


def invalid_fields(err: ValidationError) -> list[str]:
    """Names of the fields a ValidationError complains about.

    Values are left out; they may be passwords.
    """
    return sorted({str(e["loc"][0]) for e in err.errors() if e["loc"]})


def _build_record(**fields) -> CredentialRecord:
    try:
        return CredentialRecord(**fields)
    except ValidationError as err:
        raise InvalidRecordError(
            f"Invalid record fields: {', '.join(invalid_fields(err))}"
        ) from None


def fuzzy_match(term: str, candidate: str) -> bool:
    """True when every character of ``term`` appears in ``candidate`` in order.

    Matching is case-insensitive; an empty term matches everything.
    """
    it = iter(candidate.lower())
    return all(ch in it for ch in term.lower())


class RecordSet(Mapping[str, CredentialRecord]):
    """Mapping of record name to CredentialRecord.

    Tracks whether it changed since the last ``mark_clean()`` so a store
    can tell when there is unsaved work.
    """

    def __init__(self, records: Optional[list[CredentialRecord]] = None) -> None:
        self._records: dict[str, CredentialRecord] = {}
        self._changed = False
        for record in records or ():
            if record.name in self._records:
                raise DuplicateNameError(record.name)
            self._records[record.name] = record

    def __repr__(self) -> str:
        return f'<RecordSet names={sorted(self._records)}>'

    # --- Mapping ---

    def __getitem__(self, name: str) -> CredentialRecord:
        return self._records[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RecordSet):
            return self._records == other._records
        return NotImplemented

    # --- Properties ---

    @property
    def is_changed(self) -> bool:
        return self._changed

    def mark_clean(self) -> None:
        self._changed = False

    # --- Operations ---

    def add(
        self,
        name: str,
        username: str,
        password: str,
        comments: str = "",
    ) -> CredentialRecord:
        """Insert a new record.

        Raises:
            DuplicateNameError: If ``name`` is already present.
            InvalidRecordError: If a field is empty where required or not text.
        """
        if name in self._records:
            raise DuplicateNameError(name)
        record = _build_record(
            name=name, username=username, password=password, comments=comments,
        )
        self._records[name] = record
        self._changed = True
        return record

    def get(self, name: str) -> CredentialRecord:  # type: ignore[override]
        """Return the record for ``name``.

        Raises:
            NotFoundError: If there is no such record.
        """
        try:
            return self._records[name]
        except KeyError:
            raise NotFoundError(name) from None

    def update(
        self,
        name: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> CredentialRecord:
        """Replace the given fields of an existing record.

        Raises:
            NotFoundError: If there is no such record.
            InvalidRecordError: If a new value is not text.
        """
        current = self.get(name)
        changes = {
            key: value for key, value in (
                ("username", username),
                ("password", password),
                ("comments", comments),
            ) if value is not None
        }
        record = _build_record(**{**current.model_dump(), **changes})
        self._records[name] = record
        self._changed = True
        return record

    def remove(self, name: str) -> None:
        if name not in self._records:
            raise NotFoundError(name)
        del self._records[name]
        self._changed = True

    def names(self) -> list[str]:
        return sorted(self._records)

    def search(self, term: str = "") -> list[str]:
        """Names fuzzily matching ``term``, sorted."""
        return [name for name in self.names() if fuzzy_match(term, name)]

    def clear(self) -> None:
        """Drop every record reference."""
        self._records.clear()
        self._changed = False
