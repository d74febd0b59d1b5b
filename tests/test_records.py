"""
Tests for CredentialRecord and RecordSet.

Tests cover:
- Record validation and password hiding in repr
- add / get / update / remove semantics and name uniqueness
- InvalidRecordError for empty names and non-text values
- Listing, fuzzy search and change tracking
"""
import pytest
from pydantic import ValidationError

from ppa_vault.exceptions import (
    DuplicateNameError,
    InvalidRecordError,
    NotFoundError,
    VaultError,
)
from ppa_vault.records import CredentialRecord, RecordSet, fuzzy_match


@pytest.fixture
def records():
    rs = RecordSet()
    rs.add("github", "alice", "s3cr3t")
    rs.add("gitlab", "bob", "hunter2", comments="work")
    rs.mark_clean()
    return rs


class TestCredentialRecord:
    """Tests for the record model."""

    def test_fields(self):
        record = CredentialRecord(name="github", username="alice", password="s3cr3t")
        assert record.username == "alice"
        assert record.password == "s3cr3t"
        assert record.comments == ""

    def test_password_hidden_from_repr(self):
        record = CredentialRecord(name="github", username="alice", password="s3cr3t")
        assert "s3cr3t" not in repr(record)
        assert "alice" in repr(record)

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            CredentialRecord(name="", username="alice", password="x")

    def test_non_text_field_rejected(self):
        with pytest.raises(ValidationError):
            CredentialRecord(name="github", username=42, password="x")

    def test_frozen(self):
        record = CredentialRecord(name="github", username="alice", password="x")
        with pytest.raises(ValidationError):
            record.password = "changed"


class TestRecordSetOperations:
    """Tests for the mutating operations."""

    def test_add_and_get(self, records):
        record = records.get("github")
        assert record.username == "alice"
        assert record.password == "s3cr3t"

    def test_add_duplicate_keeps_size(self, records):
        with pytest.raises(DuplicateNameError):
            records.add("github", "mallory", "other")
        assert len(records) == 2
        assert records.get("github").username == "alice"

    def test_get_missing(self, records):
        with pytest.raises(NotFoundError):
            records.get("bitbucket")

    def test_not_found_is_key_error(self, records):
        with pytest.raises(KeyError):
            records.get("bitbucket")

    def test_update_changes_only_given_fields(self, records):
        records.update("gitlab", password="new-pass")
        record = records.get("gitlab")
        assert record.password == "new-pass"
        assert record.username == "bob"
        assert record.comments == "work"

    def test_update_missing(self, records):
        with pytest.raises(NotFoundError):
            records.update("bitbucket", password="x")

    def test_remove(self, records):
        records.remove("github")
        assert "github" not in records
        assert len(records) == 1

    def test_remove_missing(self, records):
        with pytest.raises(NotFoundError):
            records.remove("bitbucket")

    def test_duplicate_in_constructor(self):
        rec = CredentialRecord(name="a", username="u", password="p")
        with pytest.raises(DuplicateNameError):
            RecordSet([rec, rec])

    def test_add_empty_name(self, records):
        with pytest.raises(InvalidRecordError) as exc:
            records.add("", "alice", "s3cr3t")
        assert "name" in str(exc.value)
        assert len(records) == 2
        assert records.is_changed is False

    def test_add_non_text_field(self, records):
        with pytest.raises(InvalidRecordError):
            records.add("bitbucket", 42, "s3cr3t")
        assert "bitbucket" not in records

    def test_update_non_text_field(self, records):
        with pytest.raises(InvalidRecordError):
            records.update("github", password=12345678)
        assert records["github"].password == "s3cr3t"
        assert records.is_changed is False

    def test_invalid_record_is_vault_error(self, records):
        with pytest.raises(VaultError):
            records.add("", "alice", "s3cr3t")
        with pytest.raises(ValueError):
            records.add("", "alice", "s3cr3t")

    def test_invalid_record_error_hides_values(self, records):
        with pytest.raises(InvalidRecordError) as exc:
            records.update("github", username="alice", password=987654321)
        assert "password" in str(exc.value)
        assert "987654321" not in str(exc.value)
        assert exc.value.__cause__ is None


class TestRecordSetQueries:
    """Tests for listing and searching."""

    def test_names_sorted(self, records):
        records.add("aws", "root", "x")
        assert records.names() == ["aws", "github", "gitlab"]

    def test_search_fuzzy(self, records):
        assert records.search("gh") == ["github"]
        assert records.search("GIT") == ["github", "gitlab"]

    def test_search_empty_term_lists_all(self, records):
        assert records.search("") == ["github", "gitlab"]

    def test_search_no_match(self, records):
        assert records.search("zzz") == []

    @pytest.mark.parametrize("term,candidate,expected", [
        ("gh", "github", True),
        ("hg", "github", False),
        ("", "anything", True),
        ("Lab", "gitlab", True),
    ])
    def test_fuzzy_match(self, term, candidate, expected):
        assert fuzzy_match(term, candidate) is expected


class TestChangeTracking:
    """Tests for is_changed / mark_clean."""

    def test_clean_after_mark(self, records):
        assert records.is_changed is False

    @pytest.mark.parametrize("op", [
        lambda rs: rs.add("new", "u", "p"),
        lambda rs: rs.update("github", username="carol"),
        lambda rs: rs.remove("github"),
    ])
    def test_mutations_mark_changed(self, records, op):
        op(records)
        assert records.is_changed is True

    def test_failed_add_does_not_mark_changed(self, records):
        with pytest.raises(DuplicateNameError):
            records.add("github", "x", "y")
        assert records.is_changed is False

    def test_clear(self, records):
        records.clear()
        assert len(records) == 0

    def test_equality(self):
        a = RecordSet([CredentialRecord(name="n", username="u", password="p")])
        b = RecordSet([CredentialRecord(name="n", username="u", password="p")])
        assert a == b
        b.update("n", password="q")
        assert a != b
