from __future__ import annotations

from pathlib import Path

import anyio
import pytest
from botocore.exceptions import EndpointConnectionError

from errors import StorageFailure
from fakes import FakeS3Client, client_error, make_storage
from s3_client import S3StorageClient, is_not_found, is_transient, sha256_hex


def _recording_sleep(sleeps: list[float]):
    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return sleep


def test_error_classification():
    assert is_transient(client_error("SlowDown", 503))
    assert is_transient(client_error("InternalError", 500))
    assert is_transient(client_error("Weird", 502))
    assert is_transient(EndpointConnectionError(endpoint_url="https://s3.us-east-2.amazonaws.com"))
    assert not is_transient(client_error("AccessDenied", 403))
    assert not is_transient(ValueError("bad"))
    assert is_not_found(client_error("NoSuchKey", 404, "GetObject"))
    assert not is_not_found(client_error("AccessDenied", 403))


def test_upload_stores_body_metadata_and_returns_url():
    s3 = FakeS3Client()
    storage = make_storage(s3)

    async def _run():
        return await storage.upload(b"%PDF-1.7 body", "documents/x.pdf")

    stored = anyio.run(_run)
    assert stored.url == "https://test-bucket.s3.us-east-2.amazonaws.com/documents/x.pdf"
    assert stored.size == len(b"%PDF-1.7 body")
    assert stored.checksum == sha256_hex(b"%PDF-1.7 body")
    obj = s3.objects["documents/x.pdf"]
    assert obj["ContentType"] == "application/pdf"
    assert obj["Metadata"]["original-filename"] == "x.pdf"
    assert obj["Metadata"]["file-size"] == str(len(b"%PDF-1.7 body"))
    assert obj["Metadata"]["sha256"] == stored.checksum
    assert "uploaded-at" in obj["Metadata"]


def test_transient_errors_are_retried_with_backoff():
    s3 = FakeS3Client()
    s3.failures["put_object"] = [client_error("SlowDown", 503), client_error("SlowDown", 503)]
    sleeps: list[float] = []
    storage = make_storage(s3, sleep=_recording_sleep(sleeps))

    async def _run():
        return await storage.upload(b"pdf", "documents/x.pdf")

    anyio.run(_run)
    assert s3.count("put_object") == 3
    assert sleeps == [0.5, 1.0]
    assert "documents/x.pdf" in s3.objects


def test_exhausted_retries_raise_storage_failure():
    s3 = FakeS3Client()
    s3.always_fail["put_object"] = EndpointConnectionError(endpoint_url="https://s3.us-east-2.amazonaws.com")
    storage = make_storage(s3)

    async def _run():
        await storage.upload(b"pdf", "documents/x.pdf")

    with pytest.raises(StorageFailure) as exc_info:
        anyio.run(_run)
    assert exc_info.value.attempts == 3
    assert exc_info.value.operation == "upload"
    assert exc_info.value.key == "documents/x.pdf"
    assert isinstance(exc_info.value.cause, EndpointConnectionError)
    assert s3.count("put_object") == 3


def test_permanent_errors_are_not_retried():
    s3 = FakeS3Client()
    s3.always_fail["put_object"] = client_error("AccessDenied", 403)
    storage = make_storage(s3)

    async def _run():
        await storage.upload(b"pdf", "documents/x.pdf")

    with pytest.raises(StorageFailure) as exc_info:
        anyio.run(_run)
    assert exc_info.value.attempts == 1
    assert s3.count("put_object") == 1


def test_missing_bucket_fails_without_calling_s3():
    s3 = FakeS3Client()
    storage = make_storage(s3, bucket="")

    async def _run():
        await storage.upload(b"pdf", "documents/x.pdf")

    with pytest.raises(StorageFailure) as exc_info:
        anyio.run(_run)
    assert exc_info.value.attempts == 0
    assert s3.calls == []


def test_upload_file_removes_the_temp_file(tmp_path: Path):
    s3 = FakeS3Client()
    storage = make_storage(s3)
    path = tmp_path / "wholesale_bos_RP2001_1.pdf"
    path.write_bytes(b"%PDF-1.7 temp")

    async def _run():
        return await storage.upload_file(path)

    stored = anyio.run(_run)
    assert stored.key == "documents/wholesale_bos_RP2001_1.pdf"
    assert s3.objects[stored.key]["Body"] == b"%PDF-1.7 temp"
    assert not path.exists()


def test_temp_file_cleanup_failure_is_only_logged(tmp_path: Path, monkeypatch, caplog):
    s3 = FakeS3Client()
    storage = make_storage(s3)
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF")

    def refuse(self, missing_ok=False):
        raise PermissionError("file is locked")

    monkeypatch.setattr(Path, "unlink", refuse)

    async def _run():
        return await storage.upload_file(path, key="documents/doc.pdf")

    with caplog.at_level("WARNING", logger="s3_client"):
        stored = anyio.run(_run)
    assert stored.key == "documents/doc.pdf"
    assert "Failed to remove temp file" in caplog.text


def test_unreadable_temp_file_is_a_storage_failure(tmp_path: Path):
    s3 = FakeS3Client()
    storage = make_storage(s3)

    async def _run():
        await storage.upload_file(tmp_path / "gone.pdf")

    with pytest.raises(StorageFailure) as exc_info:
        anyio.run(_run)
    assert exc_info.value.operation == "upload"
    assert exc_info.value.key == "documents/gone.pdf"
    assert isinstance(exc_info.value.cause, FileNotFoundError)
    assert s3.calls == []


def test_exists_download_and_delete():
    s3 = FakeS3Client()
    storage = make_storage(s3)

    async def _run():
        assert await storage.exists("documents/a.pdf") is False
        await storage.upload(b"%PDF a", "documents/a.pdf")
        assert await storage.exists("documents/a.pdf") is True
        assert await storage.download("documents/a.pdf") == b"%PDF a"
        await storage.delete("documents/a.pdf")
        assert await storage.exists("documents/a.pdf") is False

    anyio.run(_run)


def test_download_of_missing_object_is_a_storage_failure():
    storage = make_storage(FakeS3Client())

    async def _run():
        await storage.download("documents/missing.pdf")

    with pytest.raises(StorageFailure) as exc_info:
        anyio.run(_run)
    assert exc_info.value.operation == "download"


def test_check_bucket():
    s3 = FakeS3Client()
    storage = make_storage(s3)
    assert anyio.run(storage.check_bucket) is True

    s3.always_fail["head_bucket"] = client_error("NoSuchBucket", 404, "HeadBucket")
    assert anyio.run(storage.check_bucket) is False
    assert anyio.run(make_storage(s3, bucket="").check_bucket) is False


def test_key_and_url_helpers():
    storage = S3StorageClient("dealer-docs", "us-west-2", prefix="deals/", client=FakeS3Client())
    assert storage.key_for("a.pdf") == "deals/a.pdf"
    assert storage.object_url("deals/a.pdf") == "https://dealer-docs.s3.us-west-2.amazonaws.com/deals/a.pdf"
