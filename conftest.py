import json
import os
import sys
from pathlib import Path

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portal.config.runtime_config import reset_config_cache  # noqa: E402
from portal.roles.service import set_role_service  # noqa: E402
from portal.uploads.service import set_object_writer  # noqa: E402

TEST_CREDENTIALS = {"type": "service_account", "project_id": "test-project"}

os.environ.setdefault("GOOGLE_CLOUD_CREDENTIALS", json.dumps(TEST_CREDENTIALS))
os.environ.setdefault("FIREBASE_ADMIN_CREDENTIALS", json.dumps(TEST_CREDENTIALS))
os.environ.setdefault("GCS_BUCKET", "test-bucket")
os.environ.setdefault("GCP_PROJECT", "test-project")


@pytest.fixture(autouse=True)
def _reset_process_state():
    reset_config_cache()
    set_object_writer(None)
    set_role_service(None)
    yield
    reset_config_cache()
    set_object_writer(None)
    set_role_service(None)
