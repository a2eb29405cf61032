"""
Unit tests for the FastAPI app and reel routes

The lifespan is not run; a fake service is placed on app.state instead.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.main import app
from core.errors import MediaNotFoundError, PipelineError

POST_URL = "https://www.instagram.com/reel/C8abc123xyz/"


def make_service(result=None, error=None):
    service = Mock()
    artifact = Mock()
    artifact.to_dict.return_value = result or {'summary': {'title': '3 AI Tools'}}
    service.submit = AsyncMock(return_value=artifact, side_effect=error)
    service.queue.get_status.return_value = {'queue_length': 0, 'processing': False, 'current_item': None}
    service.pool.get_status.return_value = {'connected': False, 'launching': False, 'active_pages': 0}
    return service


@pytest.fixture
def client():
    yield TestClient(app)
    app.state.reel_service = None


class TestReelRoutes:
    """Tests for /api/reels and status endpoints"""

    @pytest.mark.unit
    def test_process_returns_artifact(self, client):
        """Should submit the URL and return the artifact JSON"""
        service = make_service()
        app.state.reel_service = service

        response = client.post("/api/reels/process", json={'url': POST_URL})

        assert response.status_code == 200
        assert response.json() == {'summary': {'title': '3 AI Tools'}}
        service.submit.assert_awaited_once_with(POST_URL, requester="api")

    @pytest.mark.unit
    def test_invalid_url_is_400(self, client):
        """Should reject non-post URLs before submitting"""
        service = make_service()
        app.state.reel_service = service

        response = client.post("/api/reels/process", json={'url': "https://www.youtube.com/watch?v=abc"})

        assert response.status_code == 400
        assert response.json()['error'] == "INVALID_URL"
        service.submit.assert_not_called()

    @pytest.mark.unit
    def test_pipeline_failure_reports_step(self, client):
        """Should map PipelineError to its status code with the failed step"""
        app.state.reel_service = make_service(error=PipelineError("fetching", MediaNotFoundError("gone")))

        response = client.post("/api/reels/process", json={'url': POST_URL})

        assert response.status_code == 404
        body = response.json()
        assert body['step'] == "fetching"
        assert body['details']['cause_code'] == "MEDIA_NOT_FOUND"

    @pytest.mark.unit
    def test_service_unavailable_without_state(self, client):
        """Should return 503 when the service was never initialized"""
        app.state.reel_service = None
        assert client.get("/api/queue/status").status_code == 503

    @pytest.mark.unit
    def test_status_endpoints(self, client):
        """Should expose queue and browser status"""
        app.state.reel_service = make_service()

        assert client.get("/api/queue/status").json()['processing'] is False
        assert client.get("/api/browser/status").json() == {
            'connected': False, 'launching': False, 'active_pages': 0,
        }
        health = client.get("/health").json()
        assert health['status'] == "healthy"
        assert health['queue']['queue_length'] == 0

    @pytest.mark.unit
    def test_unknown_stream_job_is_404(self, client):
        """Should 404 for a job id with no emitter"""
        assert client.get("/api/reels/stream/not-a-job").status_code == 404
