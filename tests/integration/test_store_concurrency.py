"""
Concurrency Tests for the JSON-file peer store.

Several worker processes (standing in for the API server and the scheduler)
write to one peers.json at the same time; the inter-process file lock must
keep every write.
"""

import json
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict

import pytest

from catalogmesh.core.models.peer import PeerRecord, normalize_directory_url
from catalogmesh.storage.object_store import JsonFileObjectStore
from catalogmesh.storage.peer_store import PeerRecordStore


def _open(path: Path) -> PeerRecordStore:
    return PeerRecordStore(
        JsonFileObjectStore(
            path,
            key_field="directory_url",
            normalize_key=normalize_directory_url,
            lock_timeout=10.0,
        )
    )


def _worker_register_peers(path: Path, worker_id: int, count: int) -> Dict[str, Any]:
    """Register ``count`` peers and touch the status of a shared one."""
    store = _open(path)
    errors = []
    for i in range(count):
        try:
            store.upsert(
                PeerRecord(directory_url=f"https://w{worker_id}-{i}.org/api/directory")
            )
            shared = store.find_by_directory_url("https://shared.org/api/directory")
            store.update_status(shared.id, 200, True)
        except Exception as e:
            errors.append(f"Write {i}: {e}")
    return {"worker_id": worker_id, "errors": errors}


@pytest.mark.integration
def test_json_store_given_concurrent_writer_processes_when_registering_then_no_lost_writes(
    tmp_path,
):
    # Given
    path = tmp_path / "peers.json"
    _open(path).upsert(PeerRecord(directory_url="https://shared.org/api/directory"))
    num_workers = 4
    per_worker = 15

    # When
    with ProcessPoolExecutor(max_workers=num_workers) as executor:
        futures = [
            executor.submit(_worker_register_peers, path, worker_id, per_worker)
            for worker_id in range(num_workers)
        ]
        results = [future.result() for future in as_completed(futures)]

    # Then
    assert all(not r["errors"] for r in results), results
    store = _open(path)
    assert store.count() == num_workers * per_worker + 1
    assert store.find_by_directory_url("https://shared.org/api/directory").available

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    assert len(data["documents"]) == num_workers * per_worker + 1
