"""Tests for the GCS object writer (client mocked)."""
from unittest import mock
from urllib.parse import unquote, urlparse

import pytest

from portal.common.errors import ConfigError
from portal.config.runtime_config import UploadConfig
from portal.storage.gcs_writer import GcsObjectWriter, InMemoryObjectWriter, public_url
from portal.uploads.keys import build_key
from portal.uploads.models import FileStream


def _mock_client():
    client = mock.MagicMock()
    bucket = client.bucket.return_value
    blob = bucket.blob.return_value
    handle = blob.open.return_value.__enter__.return_value
    return client, bucket, blob, handle


def test_write_streams_chunks_in_order_and_returns_public_url():
    client, bucket, blob, handle = _mock_client()
    writer = GcsObjectWriter("portal-bucket", client=client)

    result = writer.write("private_files/u1/docs/a.pdf", FileStream([b"one", b"two", b"three"]), "application/pdf")

    client.bucket.assert_called_once_with("portal-bucket")
    bucket.blob.assert_called_once_with("private_files/u1/docs/a.pdf")
    blob.open.assert_called_once_with("wb", content_type="application/pdf")
    assert handle.write.call_args_list == [mock.call(b"one"), mock.call(b"two"), mock.call(b"three")]
    blob.open.return_value.__exit__.assert_called_once()
    blob.make_public.assert_not_called()
    assert result.success
    assert result.public_url == "https://storage.googleapis.com/portal-bucket/private_files/u1/docs/a.pdf"
    assert result.error_detail is None


def test_make_public_is_decided_per_write():
    client, _, blob, _ = _mock_client()
    writer = GcsObjectWriter("portal-bucket", client=client)

    writer.write("private_files/u1/general/a.pdf", FileStream([b"x"]), "application/pdf")
    blob.make_public.assert_not_called()

    writer.write("general/a.png", FileStream([b"x"]), "image/png", make_public=True)
    blob.make_public.assert_called_once()


@pytest.mark.parametrize(
    "key",
    [
        "private_files/u1/docs/my%20report.pdf",
        "private_files/u1/docs/acta%20junta%20%233.pdf",
        "general/factura%20a%C3%B1o.pdf",
        "general/plain.txt",
    ],
)
def test_public_url_resolves_to_the_stored_object_name(key):
    url = public_url("portal-bucket", key)
    parsed = urlparse(url)
    assert parsed.netloc == "storage.googleapis.com"
    assert unquote(parsed.path) == f"/portal-bucket/{key}"
    assert "?" not in url and "#" not in url


def test_public_url_for_name_with_spaces_and_accents():
    key = build_key("u1", "docs", "informe año 2024.pdf")
    assert key == "private_files/u1/docs/informe%20a%C3%B1o%202024.pdf"
    assert public_url("b", key) == (
        "https://storage.googleapis.com/b/private_files/u1/docs/informe%2520a%25C3%25B1o%25202024.pdf"
    )


def test_write_stream_error_becomes_failed_result():
    client, _, blob, handle = _mock_client()
    handle.write.side_effect = RuntimeError("connection reset")
    writer = GcsObjectWriter("portal-bucket", client=client)

    result = writer.write("general/a.png", FileStream([b"x"]), "image/png")

    assert not result.success
    assert result.public_url is None
    assert result.error_detail == "Upload to GCS failed: connection reset"


def test_finish_error_becomes_failed_result():
    client, _, blob, _ = _mock_client()
    blob.open.return_value.__exit__.side_effect = RuntimeError("finalize rejected")
    writer = GcsObjectWriter("portal-bucket", client=client)

    result = writer.write("general/a.png", FileStream([b"x"]), "image/png")
    assert not result.success
    assert "finalize rejected" in result.error_detail


def test_bucket_handle_is_reused_across_writes():
    client, _, _, _ = _mock_client()
    writer = GcsObjectWriter("portal-bucket", client=client)
    writer.write("a", FileStream([b"1"]), "text/plain")
    writer.write("b", FileStream([b"2"]), "text/plain")
    client.bucket.assert_called_once_with("portal-bucket")


def test_missing_bucket_is_a_config_error():
    with pytest.raises(ConfigError):
        GcsObjectWriter("")


def test_from_config_builds_client_from_service_account_info():
    config = UploadConfig(
        bucket="portal-bucket",
        project_id="portal-project",
        credentials={"type": "service_account"},
        public_read=True,
    )
    with mock.patch("portal.storage.gcs_writer.storage.Client.from_service_account_info") as factory:
        writer = GcsObjectWriter.from_config(config)

    factory.assert_called_once_with({"type": "service_account"}, project="portal-project")
    assert writer.bucket_name == "portal-bucket"


def test_from_config_maps_rejected_credentials_to_config_error():
    config = UploadConfig(bucket="portal-bucket", credentials={"type": "service_account"})
    with mock.patch(
        "portal.storage.gcs_writer.storage.Client.from_service_account_info",
        side_effect=ValueError("missing private_key"),
    ):
        with pytest.raises(ConfigError, match="missing private_key"):
            GcsObjectWriter.from_config(config)


def test_in_memory_writer_records_objects():
    writer = InMemoryObjectWriter(bucket_name="mem")
    result = writer.write("docs/a.txt", FileStream([b"a", b"b"]), "text/plain")
    assert writer.objects == {"docs/a.txt": b"ab"}
    assert result.public_url == "https://storage.googleapis.com/mem/docs/a.txt"


def test_in_memory_writer_records_public_keys():
    writer = InMemoryObjectWriter()
    writer.write("general/a.txt", FileStream([b"a"]), "text/plain", make_public=True)
    writer.write("private_files/u1/general/b.txt", FileStream([b"b"]), "text/plain")
    assert writer.public_keys == {"general/a.txt"}
