# tests/test_analyze_task.py
import pytest

from tests.fakes import BrokenReader, FakeContainerReader, FakeImage, FakeOpener, InMemoryResultStore
from wim_inspector.adapters.system import celery_app as tasks
from wim_inspector.domain.image_service import ImageMetadataService


@pytest.fixture
def store(monkeypatch):
    s = InMemoryResultStore()
    monkeypatch.setattr(tasks, "_store", s)
    return s


def use_containers(monkeypatch, containers):
    monkeypatch.setattr(tasks, "_make_service", lambda: ImageMetadataService(FakeOpener(containers)))


def test_job_stores_all_records(store, monkeypatch):
    reader = FakeContainerReader([FakeImage(name="a"), FakeImage(name="b")], boot_index=1)
    use_containers(monkeypatch, {"/data/install.wim": reader})

    assert tasks.analyze_container("job1", "/data/install.wim") == "ok"
    entry = store.get("job1")
    assert entry["status"] == "done"
    assert entry["result"]["imageCount"] == 2
    assert [i["name"] for i in entry["result"]["images"]] == ["a", "b"]
    assert entry["result"]["images"][0]["isBootable"] == "yes"


def test_container_error_is_stored_not_raised(store, monkeypatch):
    use_containers(monkeypatch, {"/data/bad.wim": BrokenReader([FakeImage()])})

    assert tasks.analyze_container("job2", "/data/bad.wim") == "error"
    entry = store.get("job2")
    assert entry["status"] == "error"
    assert "I/O error" in entry["error"]


def test_unexpected_error_is_stored_and_raised(store, monkeypatch):
    def boom():
        raise RuntimeError("worker misconfigured")

    monkeypatch.setattr(tasks, "_make_service", boom)
    with pytest.raises(RuntimeError):
        tasks.analyze_container("job3", "/data/install.wim")
    assert store.get("job3") == {"status": "error", "error": "worker misconfigured"}
