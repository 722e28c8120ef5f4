"""Tests for ConsensusAnalyzer and ModuleConsensus."""

import pytest

from accord.common.schemas import ADRStatus
from accord.common.store import RecordNotFoundError
from accord.consensus import ConsensusAnalyzer


def _add(store, project, module, embedding, developer, confidence=None, text=None):
    from accord.common.schemas import Understanding
    return store.add_understanding(Understanding(
        project_id=project.id,
        developer_name=developer,
        module_name=module,
        understanding_text=text or f"{developer} on {module}",
        confidence_score=confidence,
        embedding=embedding,
    ))


class TestAnalyzeModule:
    @pytest.fixture
    def analyzer(self, store):
        return ConsensusAnalyzer(store)

    def test_majority_cluster(self, store, project, analyzer):
        _add(store, project, "auth", [1.0, 0.0], "alice", confidence=4)
        _add(store, project, "auth", [0.99, 0.05], "bob", confidence=5)
        _add(store, project, "auth", [0.97, 0.1], "carol")
        _add(store, project, "auth", [0.0, 1.0], "dave", confidence=2)

        result = analyzer.analyze_module(project.id, "auth")

        assert result.consensus_percentage == pytest.approx(75.0)
        assert result.status == ADRStatus.ACCEPTED
        assert result.valid_count == 4
        assert not result.insufficient_data
        assert [c.size for c in result.clusters] == [3, 1]
        assert result.contributors == ["alice", "bob", "carol", "dave"]

    def test_only_requested_module(self, store, project, analyzer):
        _add(store, project, "auth", [1.0, 0.0], "alice")
        _add(store, project, "auth", [1.0, 0.0], "bob")
        _add(store, project, "billing", [0.0, 1.0], "carol")

        result = analyzer.analyze_module(project.id, "auth")
        assert len(result.understandings) == 2

    def test_insufficient_data(self, store, project, analyzer):
        _add(store, project, "auth", [1.0, 0.0], "alice")
        _add(store, project, "auth", None, "bob")

        result = analyzer.analyze_module(project.id, "auth")

        assert result.insufficient_data
        assert result.consensus_percentage == 0.0
        assert result.clusters == []
        assert result.status == ADRStatus.UNDER_DISCUSSION
        assert result.message == (
            "Need at least 2 understandings with valid embeddings. Found 1 valid out of 2 total."
        )

    def test_unknown_module_is_empty(self, store, project, analyzer):
        result = analyzer.analyze_module(project.id, "nothing-here")
        assert result.understandings == []
        assert result.insufficient_data

    def test_unknown_project_raises(self, analyzer):
        with pytest.raises(RecordNotFoundError):
            analyzer.analyze_module("missing", "auth")

    def test_to_dict(self, store, project, analyzer):
        a = _add(store, project, "auth", [1.0, 0.0], "alice", confidence=4)
        b = _add(store, project, "auth", [1.0, 0.02], "bob")
        c = _add(store, project, "auth", [0.0, 1.0], "carol", confidence=1)

        data = analyzer.analyze_module(project.id, "auth").to_dict()

        assert data["module_name"] == "auth"
        assert data["consensus_percentage"] == 66.7
        assert data["status"] == "Proposed"
        assert data["total_understandings"] == 3
        assert data["valid_understandings"] == 3
        assert data["insufficient_data"] is False
        assert "message" not in data

        first, second = data["clusters"]
        assert first["id"] == 1
        assert first["size"] == 2
        assert first["percentage"] == 66.7
        assert first["representative_id"] == a.id
        assert first["developers"] == [
            {"name": "alice", "understanding_id": a.id, "confidence_score": 4},
            {"name": "bob", "understanding_id": b.id, "confidence_score": None},
        ]
        assert second["percentage"] == 33.3
        assert second["developers"][0]["understanding_id"] == c.id

    def test_to_dict_includes_message(self, store, project, analyzer):
        _add(store, project, "auth", [1.0, 0.0], "alice")
        data = analyzer.analyze_module(project.id, "auth").to_dict()
        assert data["insufficient_data"] is True
        assert data["message"].startswith("Need at least 2")


class TestAnalyzeProject:
    def test_one_result_per_module(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice")
        _add(store, project, "billing", [1.0, 0.0], "bob")
        _add(store, project, "auth", [1.0, 0.0], "carol")

        results = ConsensusAnalyzer(store).analyze_project(project.id)

        assert [r.module_name for r in results] == ["auth", "billing"]
        assert results[0].consensus_percentage == pytest.approx(100.0)
        assert results[1].insufficient_data

    def test_empty_project(self, store, project):
        assert ConsensusAnalyzer(store).analyze_project(project.id) == []
