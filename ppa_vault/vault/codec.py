"""
Vault Codec — record set ⇄ plaintext payload bytes.

Payload (orjson, sorted keys, records sorted by name):
    {"records": [{"comments": ..., "name": ..., "password": ...,
                  "username": ...}, ...], "version": 1}

Encoding is deterministic, so equal record sets give equal payloads.

Security Note:
    The payload is plaintext; never log it.
"""
from typing import Any

import orjson
from pydantic import ValidationError

from ..exceptions import DuplicateNameError, FormatError
from ..records import CredentialRecord, RecordSet, invalid_fields

PAYLOAD_VERSION = 1


def encode(records: RecordSet) -> bytes:
    """Serialize a RecordSet to payload bytes."""
    payload = {
        "version": PAYLOAD_VERSION,
        "records": [records[name].model_dump() for name in records.names()],
    }
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)


def _parse(data: bytes) -> Any:
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as err:
        # orjson also rejects invalid UTF-8 here.
        raise FormatError(f"Vault payload is not valid JSON: {err.msg}") from None


def decode(data: bytes) -> RecordSet:
    """Deserialize payload bytes back to a RecordSet.

    Raises:
        FormatError: On malformed structure, unknown payload version,
            records with missing, extra or non-text fields, or duplicate names.
    """
    payload = _parse(bytes(data))
    if not isinstance(payload, dict) or set(payload) != {"version", "records"}:
        raise FormatError("Vault payload has an unexpected structure")
    version = payload["version"]
    # bool is an int subclass and 1.0 == 1; only the integer 1 is accepted.
    if type(version) is not int or version != PAYLOAD_VERSION:
        raise FormatError(f"Unsupported payload version: {version!r}")
    raw_records = payload["records"]
    if not isinstance(raw_records, list):
        raise FormatError("Vault payload 'records' must be a list")

    records = []
    for index, item in enumerate(raw_records):
        if not isinstance(item, dict):
            raise FormatError(f"Record #{index} is not an object")
        try:
            records.append(CredentialRecord.model_validate(item))
        except ValidationError as err:
            raise FormatError(
                f"Record #{index} is malformed "
                f"(fields: {', '.join(invalid_fields(err))})"
            ) from None
    try:
        return RecordSet(records)
    except DuplicateNameError as err:
        raise FormatError(f"Duplicate record name in payload: {err.args[0]!r}") from None
