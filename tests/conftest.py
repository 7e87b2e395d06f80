import os
import sys

import pytest

# Ensure project root is on sys.path so tests can import app.py and utils
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from utils.db_conn import StorageConfig
from utils.gradebook import Gradebook
from utils.storage import StorageBackend


@pytest.fixture
def config(tmp_path):
    return StorageConfig(data_dir=str(tmp_path / "data"), debounce_ms=20, undo_window_seconds=10)


@pytest.fixture
def local_config(config):
    config.force_local_storage = True
    return config


@pytest.fixture
def backend(config):
    backend = StorageBackend(config)
    backend.init()
    yield backend
    backend.close()


@pytest.fixture
def gradebook(config):
    gradebook = Gradebook(StorageBackend(config)).init()
    yield gradebook
    gradebook.close()


@pytest.fixture
def app(config):
    from app import create_app

    app = create_app(config)
    app.config["TESTING"] = True
    yield app
    app.extensions["gradebook"].close()


@pytest.fixture
def client(app):
    return app.test_client()


def make_student(name="Ama Mensah", scores=((30, 50),), subject_names=None, **extra):
    """Student record with one subject per (classScore, examScore) pair."""
    import uuid

    names = subject_names or [f"Subject {i + 1}" for i in range(len(scores))]
    record = {
        "id": str(uuid.uuid4()),
        "name": name,
        "className": "Class 4",
        "subjects": [
            {"id": str(uuid.uuid4()), "name": n, "classScore": c, "examScore": e}
            for n, (c, e) in zip(names, scores)
        ],
    }
    record.update(extra)
    return record
