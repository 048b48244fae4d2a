import logging
import os
import shutil
import tempfile

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Keep log files and the module-level app's storage out of the working tree
TEST_ROOT = tempfile.mkdtemp(prefix="pdf_file_server_test_")
os.environ["LOG_DIR"] = os.path.join(TEST_ROOT, "logs")
os.environ["STORAGE_DIR"] = os.path.join(TEST_ROOT, "storage")

from pdf_file_server.app.services.file_store import FileStore  # noqa: E402
from pdf_file_server.config import Settings  # noqa: E402
from pdf_file_server.logger_config import LOGGER_NAME  # noqa: E402
from pdf_file_server.main import create_app  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


@pytest.fixture(scope="session", autouse=True)
def session_root():
    yield TEST_ROOT

    # Release the open log file before removing its directory
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        if isinstance(handler, logging.FileHandler):
            handler.close()
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_dir=tmp_path / "storage")


@pytest_asyncio.fixture
async def file_store(settings):
    store = FileStore(settings.storage_dir)
    await store.initialize()
    return store


@pytest.fixture
def client(settings):
    # Entering the context runs the lifespan, which creates the storage root
    with TestClient(create_app(settings)) as test_client:
        yield test_client
