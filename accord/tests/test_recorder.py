"""Tests for UnderstandingRecorder."""

from unittest.mock import MagicMock

import pytest

from accord.common.embedding_service import EmbeddingService, EmbeddingServiceError
from accord.common.store import RecordNotFoundError
from accord.ingest import RecordValidationError, UnderstandingRecorder


@pytest.fixture
def embedding_service():
    service = MagicMock(spec=EmbeddingService)
    service.embed_single.return_value = [0.1, 0.2, 0.3]
    return service


@pytest.fixture
def recorder(store, embedding_service):
    return UnderstandingRecorder(store, embedding_service)


class TestRecord:
    def test_records_trimmed_understanding(self, recorder, store, project, embedding_service):
        u = recorder.record(
            project.id,
            developer_name="  alice ",
            module_name=" auth ",
            understanding_text="  Sessions live in Redis.  ",
            change_description="  ",
            confidence_score=4,
        )

        embedding_service.embed_single.assert_called_once_with("Sessions live in Redis.")
        assert u.developer_name == "alice"
        assert u.module_name == "auth"
        assert u.understanding_text == "Sessions live in Redis."
        assert u.change_description is None
        assert u.embedding == [0.1, 0.2, 0.3]
        assert store.get_understanding(u.id) == u

    @pytest.mark.parametrize("field,label", [
        ("developer_name", "Developer name"),
        ("module_name", "Module name"),
        ("understanding_text", "Understanding text"),
    ])
    def test_required_fields(self, recorder, project, field, label):
        kwargs = dict(developer_name="alice", module_name="auth", understanding_text="text")
        kwargs[field] = "   "
        with pytest.raises(RecordValidationError, match=f"{label} is required"):
            recorder.record(project.id, **kwargs)

    @pytest.mark.parametrize("score", [0, 6])
    def test_confidence_out_of_range(self, recorder, project, score):
        with pytest.raises(RecordValidationError, match="between 1 and 5"):
            recorder.record(project.id, "alice", "auth", "text", confidence_score=score)

    def test_unknown_project(self, recorder, embedding_service):
        with pytest.raises(RecordNotFoundError):
            recorder.record("missing", "alice", "auth", "text")
        embedding_service.embed_single.assert_not_called()

    def test_embedding_failure_stores_nothing(self, recorder, store, project, embedding_service):
        embedding_service.embed_single.side_effect = EmbeddingServiceError("quota exceeded")
        with pytest.raises(EmbeddingServiceError):
            recorder.record(project.id, "alice", "auth", "text")
        assert store.list_understandings(project.id) == []
