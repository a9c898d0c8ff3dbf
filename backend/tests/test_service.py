"""End-to-end tests for RelayService orchestration.

Scenarios follow a single client session: allocate, upload, list, download,
delete, read the activity log.
"""
import json
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from relay.storage.errors import NotFoundError, StorageIOError
from relay.storage.service import RelayService


def _metadata(name: str, size: int, checksum: str = "abc123") -> str:
    return json.dumps({
        "checksum": checksum,
        "iv": "aXY=",
        "timestamp": 1715938215.0,
        "fileName": name,
        "fileSize": size,
    })


@pytest.fixture
def mango(service) -> str:
    return service.sessions.allocate("mango")


class TestScenarios:
    def test_upload_download_list(self, service, mango):
        """Upload into a session, then download and list it."""
        file_id, meta = service.upload(mango, _metadata("a.txt", 5), b"hello")

        assert service.download(mango, file_id) == b"hello"
        entries = service.ledger.list(mango)
        assert len(entries) == 1
        assert entries[0].file_id == file_id
        assert entries[0].metadata().file_name == "a.txt"
        assert entries[0].metadata().file_size == 5
        assert meta.checksum == "abc123"

    def test_delete_then_list_and_download(self, service, mango):
        """Deleting the only file empties the listing and download reports NotFound."""
        file_id, _ = service.upload(mango, _metadata("a.txt", 5), b"hello")

        assert service.delete(mango, file_id) == 1
        assert service.ledger.list(mango) == []
        with pytest.raises(NotFoundError):
            service.download(mango, file_id)

    def test_partial_metadata_accepted(self, service, mango):
        """Only fileName and fileSize are sent; the other fields take zero values."""
        raw = json.dumps({"fileName": "a.txt", "fileSize": 5})
        file_id, meta = service.upload(mango, raw, b"hello")

        assert service.download(mango, file_id) == b"hello"
        assert service.read_ledger(mango) == f"{file_id}: {raw}\n"
        assert (meta.checksum, meta.iv, meta.timestamp) == ("", "", 0.0)
        assert meta.file_size == 5

    def test_fresh_session_log_is_empty(self, service):
        assert service.read_log("quiet") == ""

    def test_delete_first_keeps_second(self, service, mango):
        """Deleting one file leaves the other's bytes and ledger entry unchanged."""
        first, _ = service.upload(mango, _metadata("one.txt", 3), b"one")
        second, _ = service.upload(mango, _metadata("two.txt", 3), b"two")
        before = [e for e in service.ledger.list(mango) if e.file_id == second]

        service.delete(mango, first)

        assert service.ledger.list(mango) == before
        assert service.download(mango, second) == b"two"

    def test_listing_in_upload_order(self, service, mango):
        ids = [service.upload(mango, _metadata(f"f{i}", i), b"x")[0] for i in range(6)]
        assert [e.file_id for e in service.ledger.list(mango)] == ids


class TestUpload:
    def test_raw_metadata_stored_verbatim(self, service, mango):
        raw = '{"checksum":"c","iv":"i","timestamp":1,"fileName":"a","fileSize":1,"extra":true}'
        file_id, _ = service.upload(mango, raw, b"x")
        assert service.ledger.list(mango)[0].payload == raw

    def test_only_trailing_newline_stripped(self, service, mango):
        raw = ' {"fileName": "a", "fileSize": 1}'
        service.upload(mango, raw + "\r\n", b"x")
        assert service.ledger.list(mango)[0].payload == raw

    def test_multiline_metadata_compacted(self, service, mango):
        raw = json.dumps(json.loads(_metadata("a.txt", 5)), indent=2)
        service.upload(mango, raw, b"x")
        payload = service.ledger.list(mango)[0].payload
        assert "\n" not in payload
        assert json.loads(payload)["fileName"] == "a.txt"

    def test_malformed_metadata_rejected_before_write(self, service, mango):
        with pytest.raises(ValidationError):
            service.upload(mango, '{"fileName": "a.txt"', b"x")
        assert list(service.sessions.resolve(mango).iterdir()) == []

    def test_wrong_type_rejected_before_write(self, service, mango):
        with pytest.raises(ValidationError):
            service.upload(mango, '{"fileName": "a.txt", "fileSize": "five"}', b"x")
        assert list(service.sessions.resolve(mango).iterdir()) == []

    def test_upload_creates_unallocated_session(self, service):
        file_id, _ = service.upload("river", _metadata("a", 1), b"x")
        assert service.download("river", file_id) == b"x"

    def test_failed_put_records_nothing(self, service, mango):
        with patch.object(service.files, "put", side_effect=StorageIOError("disk full")):
            with pytest.raises(StorageIOError):
                service.upload(mango, _metadata("a", 1), b"x")
        assert service.ledger.list(mango) == []


class TestDelete:
    def test_missing_file_and_entry_not_found(self, service, mango):
        with pytest.raises(NotFoundError):
            service.delete(mango, "0d7f3a52-0000-4000-8000-000000000000")

    def test_retry_clears_dangling_entry(self, service, mango):
        """A delete interrupted after removing the bytes can be retried."""
        keep, _ = service.upload(mango, _metadata("keep", 1), b"k")
        file_id, _ = service.upload(mango, _metadata("a", 1), b"x")
        service.files.delete(mango, file_id)

        assert service.delete(mango, file_id) == 1
        assert [e.file_id for e in service.ledger.list(mango)] == [keep]
        with pytest.raises(NotFoundError):
            service.delete(mango, file_id)

    def test_dangling_bytes_without_ledger_entry(self, service, mango):
        file_id = service.files.put(mango, b"x")
        assert service.delete(mango, file_id) == 0


class TestActivity:
    def test_events_logged_in_order(self, service):
        session_id = service.create_session()
        file_id, _ = service.upload(session_id, _metadata("a.txt", 5, checksum="ck"), b"hello")
        service.read_ledger(session_id)
        service.download(session_id, file_id)
        service.delete(session_id, file_id)

        lines = service.read_log(session_id).splitlines()
        assert lines == [
            f"[2024-05-17 09:30:15] Created session '{session_id}'",
            f"[2024-05-17 09:30:15] Session '{session_id}' uploaded file 'a.txt' (ck, 5 bytes)",
            f"[2024-05-17 09:30:15] Session '{session_id}' requested metadata listing",
            f"[2024-05-17 09:30:15] Session '{session_id}' downloaded file '{file_id}'",
            f"[2024-05-17 09:30:15] File '{file_id}' was deleted from session '{session_id}'",
        ]

    def test_listing_without_ledger_not_logged(self, service, mango):
        service.read_ledger(mango)
        assert service.read_log(mango) == ""

    def test_failed_download_not_logged(self, service, mango):
        with pytest.raises(NotFoundError):
            service.download(mango, "0d7f3a52-0000-4000-8000-000000000000")
        assert service.read_log(mango) == ""

    def test_log_failure_does_not_fail_upload(self, service, mango):
        with patch.object(service.activity, "append", side_effect=StorageIOError("log disk full")):
            file_id, _ = service.upload(mango, _metadata("a", 1), b"x")
        assert service.download(mango, file_id) == b"x"


class TestSingleton:
    def test_get_instance_uses_settings(self, settings, monkeypatch):
        monkeypatch.setattr(RelayService, "_instance", None)
        svc = RelayService.get_instance(settings)
        assert RelayService.get_instance() is svc
        assert svc.sessions.uploads_dir == settings.uploads_path
        RelayService.reset_instance()
        assert RelayService._instance is None
