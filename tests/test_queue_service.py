import uuid
from types import SimpleNamespace

import pytest

from src.services import queue_service as queue_module
from src.services.ai_task_service import UnknownAITaskError
from src.services.queue_service import QueueService, _count_for_queue
from src.worker import stats


class _FakeTask:
    def __init__(self, job_id: str):
        self.job_id = job_id
        self.calls: list[dict] = []

    def apply_async(self, args=None, **options):
        self.calls.append({"args": args, **options})
        return SimpleNamespace(id=self.job_id)


def test_add_media_processing_job_returns_job_id(monkeypatch):
    task = _FakeTask("job-media")
    monkeypatch.setattr(queue_module, "process_media", task)

    media_id = uuid.uuid4()
    job_id = QueueService().add_media_processing_job(media_id)

    assert job_id == "job-media"
    assert task.calls == [{"args": [str(media_id)]}]


def test_add_github_build_job_applies_time_limit_and_overrides(monkeypatch):
    task = _FakeTask("job-gh")
    monkeypatch.setattr(queue_module, "build_github_project", task)

    user_id, session_id = uuid.uuid4(), uuid.uuid4()
    spec = {"name": "demo", "files": [{"path": "a.py", "content": "print(1)"}]}

    job_id = QueueService().add_github_build_job(user_id, session_id, spec, countdown=5)

    assert job_id == "job-gh"
    call = task.calls[0]
    assert call["args"] == [str(user_id), str(session_id), spec]
    assert call["soft_time_limit"] == 330
    assert call["time_limit"] == 360
    assert call["countdown"] == 5


def test_add_ai_task_job_rejects_unknown_types(monkeypatch):
    task = _FakeTask("job-ai")
    monkeypatch.setattr(queue_module, "run_ai_task", task)

    with pytest.raises(UnknownAITaskError):
        QueueService().add_ai_task_job("translate", {})

    assert task.calls == []


def test_add_ai_task_job(monkeypatch):
    task = _FakeTask("job-ai")
    monkeypatch.setattr(queue_module, "run_ai_task", task)

    assert QueueService().add_ai_task_job("extract_intent", {"message": "hi"}) == "job-ai"
    assert task.calls == [{"args": ["extract_intent", {"message": "hi"}]}]


def test_get_job_status_unknown_queue_is_none():
    assert QueueService().get_job_status("nope", "abc") is None


@pytest.mark.parametrize(
    "raw_state,expected",
    [("PENDING", "waiting"), ("STARTED", "active"), ("RETRY", "delayed"), ("SUCCESS", "completed")],
)
def test_get_job_status_maps_celery_states(monkeypatch, raw_state, expected):
    class _FakeResult:
        def __init__(self, job_id, app=None):
            self.queue = "ai-task"
            self.state = raw_state
            self.info = None
            self.result = {"success": True} if raw_state == "SUCCESS" else None

    monkeypatch.setattr(queue_module, "AsyncResult", _FakeResult)

    job = QueueService().get_job_status("ai-task", "abc")

    assert job["id"] == "abc"
    assert job["state"] == expected
    assert job["result"] == ({"success": True} if raw_state == "SUCCESS" else None)
    assert job["failed_reason"] is None


def test_get_job_status_reports_failure_reason(monkeypatch):
    class _FakeResult:
        def __init__(self, job_id, app=None):
            self.queue = "github-build"
            self.state = "FAILURE"
            self.info = RuntimeError("GitHub API error")
            self.result = self.info

    monkeypatch.setattr(queue_module, "AsyncResult", _FakeResult)

    job = QueueService().get_job_status("github-build", "abc")

    assert job["state"] == "failed"
    assert job["result"] is None
    assert job["failed_reason"] == "GitHub API error"


def test_get_queue_stats_combines_broker_workers_and_counters(monkeypatch):
    def _task(queue):
        return {"id": "t", "delivery_info": {"routing_key": queue}}

    class _FakeInspect:
        def active(self):
            return {"w1": [_task("media-processing"), _task("ai-task")], "w2": [_task("media-processing")]}

        def scheduled(self):
            return {"w1": [{"eta": "soon", "request": _task("media-processing")}]}

    fake_app = SimpleNamespace(control=SimpleNamespace(inspect=lambda timeout=None: _FakeInspect()))
    monkeypatch.setattr(queue_module, "celery_app", fake_app)
    monkeypatch.setattr(stats, "read_outcomes", lambda queue: {"completed": 7, "failed": 1})

    service = QueueService()
    monkeypatch.setattr(service, "_broker_queue_length", lambda queue: 4)

    assert service.get_queue_stats("media-processing") == {
        "waiting": 4,
        "active": 2,
        "completed": 7,
        "failed": 1,
        "delayed": 1,
    }


def test_count_for_queue_tolerates_no_workers():
    assert _count_for_queue(None, "ai-task") == 0


def test_get_queues_lists_all_three():
    assert QueueService().get_queues() == ("media-processing", "github-build", "ai-task")


def test_get_job_status_of_job_from_another_queue_is_none(monkeypatch):
    class _FakeResult:
        def __init__(self, job_id, app=None):
            self.queue = "github-build"
            self.state = "SUCCESS"
            self.info = None
            self.result = {"success": True}

    monkeypatch.setattr(queue_module, "AsyncResult", _FakeResult)

    assert QueueService().get_job_status("ai-task", "abc") is None
    assert QueueService().get_job_status("github-build", "abc")["state"] == "completed"
