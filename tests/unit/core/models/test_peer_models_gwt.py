"""
GWT Tests for peer directory models.
"""

import pytest

from catalogmesh.core.exceptions import PeerProtocolError
from catalogmesh.core.models.peer import (
    DirectoryEntry,
    PeerRecord,
    normalize_directory_url,
)
from catalogmesh.core.models.peer_error import (
    NETWORK_FAILURE_STATUS,
    PeerErrorType,
    PeerFailure,
)


# =============================================================================
# GIVEN: Directory URLs in different spellings
# =============================================================================


def test_normalize_given_mixed_case_host_and_trailing_slash_when_normalized_then_canonical():
    # Given
    url = "HTTPS://Peer.Example.ORG/api/directory/"

    # When
    normalized = normalize_directory_url(url)

    # Then
    assert normalized == "https://peer.example.org/api/directory"


def test_normalize_given_path_case_when_normalized_then_path_is_preserved():
    assert normalize_directory_url("https://a.org/API/Dir") == "https://a.org/API/Dir"


def test_normalize_given_blank_url_when_normalized_then_empty():
    assert normalize_directory_url("   ") == ""


# =============================================================================
# GIVEN: Wire payloads from peer directories
# =============================================================================


def test_from_payload_given_full_entry_when_parsed_then_all_fields_mapped():
    # Given
    payload = {
        "directoryUrl": "https://b.org/api/directory",
        "title": "B",
        "summary": "Peer B",
        "catalogIds": ["c1", "c2"],
        "publicationsEndpoint": "https://b.org/api/publications",
        "unknownField": {"ignored": True},
    }

    # When
    entry = DirectoryEntry.from_payload(payload)

    # Then
    assert entry.directory_url == "https://b.org/api/directory"
    assert entry.title == "B"
    assert entry.description == ""
    assert entry.catalog_ids == ["c1", "c2"]
    assert entry.publications_endpoint == "https://b.org/api/publications"


def test_from_payload_given_legacy_directory_key_when_parsed_then_accepted():
    # Given
    payload = {"directory": "https://old.org/api/directory", "uuid": "cat-9"}

    # When
    entry = DirectoryEntry.from_payload(payload)

    # Then
    assert entry.directory_url == "https://old.org/api/directory"
    assert entry.catalog_ids == ["cat-9"]


@pytest.mark.parametrize(
    "payload",
    [
        {"title": "No URL"},
        {"directoryUrl": ""},
        {"directoryUrl": "   "},
        "https://not-an-object.org",
        None,
    ],
)
def test_from_payload_given_missing_directory_url_when_parsed_then_protocol_error(payload):
    with pytest.raises(PeerProtocolError):
        DirectoryEntry.from_payload(payload)


# =============================================================================
# GIVEN: A stored PeerRecord
# =============================================================================


def test_record_given_wire_aliases_when_validated_then_snake_case_fields_populated():
    # Given
    data = {
        "directoryUrl": "https://c.org/api/directory",
        "statusCode": 200,
        "isDefault": False,
        "catalogIds": ["x"],
    }

    # When
    record = PeerRecord.model_validate(data)

    # Then
    assert record.directory_url == "https://c.org/api/directory"
    assert record.status_code == 200
    assert record.is_default is False
    assert record.catalog_ids == ["x"]


def test_record_given_local_fields_when_republished_then_local_fields_stripped():
    # Given
    record = PeerRecord(
        id="abc",
        directory_url="https://c.org/api/directory",
        title="C",
        status_code=200,
        available=True,
    )

    # When
    entry = record.to_directory_entry()

    # Then
    assert entry["directoryUrl"] == "https://c.org/api/directory"
    assert entry["title"] == "C"
    for local in ("id", "statusCode", "available", "isDefault", "lastSync"):
        assert local not in entry


def test_record_given_blank_publications_endpoint_when_checked_then_not_aggregatable():
    record = PeerRecord(directory_url="https://c.org", publications_endpoint="  ")
    assert record.is_aggregatable is False


def test_record_given_non_default_peer_when_checked_then_not_aggregatable():
    record = PeerRecord(
        directory_url="https://c.org",
        publications_endpoint="https://c.org/pubs",
        is_default=False,
    )
    assert record.is_aggregatable is False


# =============================================================================
# GIVEN: Peer failures
# =============================================================================


def test_failure_given_network_error_when_recorded_then_uses_sentinel_status():
    failure = PeerFailure(url="https://d.org", error_type=PeerErrorType.TIMEOUT)
    assert failure.recorded_status == NETWORK_FAILURE_STATUS


def test_failure_given_http_error_when_recorded_then_keeps_http_status():
    failure = PeerFailure(
        url="https://d.org", error_type=PeerErrorType.HTTP_ERROR, status_code=404
    )
    assert failure.recorded_status == 404
    assert failure.error_type == "HTTP_ERROR"


def test_entry_given_remote_claims_default_when_converted_then_record_not_default():
    # Given
    payload = {"directoryUrl": "https://a.org/api/directory", "isDefault": True}

    # When
    record = DirectoryEntry.from_payload(payload).to_record()

    # Then
    assert record.is_default is False
