from fastapi.testclient import TestClient

from dayplanner.observability import client as client_module


def _get_client() -> TestClient:
    from dayplanner.main import app

    return TestClient(app)


class _RecordingTrace:
    def __init__(self, name, metadata):
        self.name = name
        self.metadata = metadata or {}
        self.ended = False

    def update(self, **kwargs):
        pass

    def end(self):
        self.ended = True


class _RecordingClient:
    def __init__(self):
        self.traces = []

    def trace(self, name, metadata=None):
        recorded = _RecordingTrace(name, metadata)
        self.traces.append(recorded)
        return recorded


def test_health_endpoint_returns_ok() -> None:
    client = _get_client()
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_request_id_generated_and_returned() -> None:
    client = _get_client()
    response = client.get("/time-blocks")

    assert response.headers.get("X-Request-Id")


def test_request_id_echoed_into_trace(monkeypatch) -> None:
    recorder = _RecordingClient()
    monkeypatch.setattr(client_module, "get_opik_client", lambda: recorder)
    client = _get_client()

    response = client.get("/health", headers={"X-Request-Id": "probe-42"})

    assert response.headers.get("X-Request-Id") == "probe-42"
    health_trace = next(t for t in recorder.traces if t.name == "http.health_check")
    assert health_trace.metadata["request_id"] == "probe-42"
    assert health_trace.ended is True
