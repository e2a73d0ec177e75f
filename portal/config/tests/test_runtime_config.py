import pytest

from portal.common.errors import ConfigError
from portal.config.runtime_config import (
    get_gcp_project,
    get_required_fields,
    load_firebase_config,
    load_upload_config,
    parse_credentials,
    reset_config_cache,
)


def test_upload_config_reads_environment(monkeypatch):
    monkeypatch.setenv("GCS_BUCKET", "portal-files")
    monkeypatch.setenv("UPLOAD_DEFAULT_FOLDER", "misc")
    monkeypatch.setenv("GCS_PUBLIC_READ", "true")
    monkeypatch.setenv("UPLOAD_REQUIRED_FIELDS", "residentUid, folderPath")
    reset_config_cache()

    config = load_upload_config()

    assert config.bucket == "portal-files"
    assert config.default_folder == "misc"
    assert config.public_read is True
    assert config.required_fields == ("residentUid", "folderPath")
    assert config.credentials["type"] == "service_account"


def test_upload_config_is_built_once(monkeypatch):
    first = load_upload_config()
    monkeypatch.setenv("GCS_BUCKET", "changed")
    assert load_upload_config() is first
    reset_config_cache()
    assert load_upload_config().bucket == "changed"


def test_missing_credentials_is_config_error(monkeypatch):
    monkeypatch.delenv("GOOGLE_CLOUD_CREDENTIALS", raising=False)
    with pytest.raises(ConfigError, match="GOOGLE_CLOUD_CREDENTIALS") as exc_info:
        load_upload_config()
    assert exc_info.value.status_code == 500


def test_invalid_config_is_not_cached(monkeypatch):
    monkeypatch.delenv("GCS_BUCKET", raising=False)
    with pytest.raises(ConfigError, match="GCS_BUCKET"):
        load_upload_config()
    monkeypatch.setenv("GCS_BUCKET", "late-bucket")
    assert load_upload_config().bucket == "late-bucket"


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"string"'])
def test_malformed_credentials(monkeypatch, raw):
    monkeypatch.setenv("GOOGLE_CLOUD_CREDENTIALS", raw)
    with pytest.raises(ConfigError):
        parse_credentials("GOOGLE_CLOUD_CREDENTIALS")


def test_project_falls_back_through_env_names(monkeypatch):
    for name in ("GCP_PROJECT_ID", "GCP_PROJECT", "VITE_FIREBASE_PROJECT_ID"):
        monkeypatch.delenv(name, raising=False)
    assert get_gcp_project() is None
    monkeypatch.setenv("VITE_FIREBASE_PROJECT_ID", "vite-proj")
    assert get_gcp_project() == "vite-proj"
    monkeypatch.setenv("GCP_PROJECT_ID", "explicit")
    assert get_gcp_project() == "explicit"


def test_project_defaults_to_credentials_project(monkeypatch):
    for name in ("GCP_PROJECT_ID", "GCP_PROJECT", "VITE_FIREBASE_PROJECT_ID"):
        monkeypatch.delenv(name, raising=False)
    assert load_upload_config().project_id == "test-project"


def test_required_fields_empty_by_default(monkeypatch):
    monkeypatch.delenv("UPLOAD_REQUIRED_FIELDS", raising=False)
    assert get_required_fields() == ()


def test_firebase_config_requires_admin_credentials(monkeypatch):
    monkeypatch.delenv("FIREBASE_ADMIN_CREDENTIALS", raising=False)
    with pytest.raises(ConfigError, match="FIREBASE_ADMIN_CREDENTIALS"):
        load_firebase_config()
