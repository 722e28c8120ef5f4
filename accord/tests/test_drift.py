"""
Tests for drift analysis and the forecaster

Per-developer drift against their first understanding, the recent window,
module forecasts, and narration with and without an LLM.
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from accord.common.llm_client import LLMClient
from accord.common.schemas import Severity, Understanding
from accord.common.store import RecordNotFoundError
from accord.consensus.drift import MIN_UNDERSTANDINGS, DriftAnalyzer
from accord.narrator import Forecaster


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _days_back(days):
    return NOW - timedelta(days=days)


def _add(store, project, module, embedding, developer, days_ago, text=None):
    return store.add_understanding(Understanding(
        project_id=project.id,
        developer_name=developer,
        module_name=module,
        understanding_text=text or f"{developer}'s view of {module}",
        embedding=embedding,
        created_at=_days_back(days_ago),
    ))


@pytest.fixture
def drifting_team(store, project):
    """alice flips her view of auth this week, bob holds his, ledger agrees"""
    _add(store, project, "auth", [1.0, 0.0], "alice", 30, "Stateless JWT access tokens")
    _add(store, project, "auth", [1.0, 0.0], "bob", 29, "JWTs verified at the gateway")
    _add(store, project, "auth", [1.0, 0.0], "carol", 2)
    _add(store, project, "auth", [0.0, 1.0], "alice", 1, "Server-side sessions in Redis")
    _add(store, project, "auth", [1.0, 0.0], "bob", 1)
    _add(store, project, "ledger", [1.0, 0.0], "dave", 3)
    _add(store, project, "ledger", [0.99, 0.05], "erin", 2)
    return project


class TestDriftAnalyzer:
    def test_too_few_understandings(self, store, project):
        for i in range(MIN_UNDERSTANDINGS - 1):
            _add(store, project, "auth", [1.0, 0.0], f"dev{i}", 1)

        report = DriftAnalyzer(store).analyze(project.id, now=NOW)

        assert report.insufficient_data
        assert report.drifts == []
        data = report.to_dict()
        assert data["predictions"] == []
        assert data["at_risk_developers"] == []
        assert data["stable_modules"] == []
        assert data["message"] == "Not enough data for predictions (need at least 5 understandings)"

    def test_unknown_project(self, store):
        with pytest.raises(RecordNotFoundError):
            DriftAnalyzer(store).analyze("missing", now=NOW)

    def test_drift_against_first_understanding(self, store, drifting_team):
        report = DriftAnalyzer(store).analyze(drifting_team.id, now=NOW)

        drifts = {(d.developer, d.module): d for d in report.drifts}
        assert set(drifts) == {("alice", "auth"), ("bob", "auth")}

        alice = drifts[("alice", "auth")]
        assert alice.similarity_trend == pytest.approx(0.0)
        assert alice.at_risk
        assert alice.severity == Severity.HIGH
        assert alice.trend == "declining"
        assert alice.recent_count == 1
        assert alice.total_count == 2
        assert alice.recent_understanding == "Server-side sessions in Redis"

        bob = drifts[("bob", "auth")]
        assert bob.similarity_trend == pytest.approx(1.0)
        assert not bob.at_risk
        assert bob.severity == Severity.LOW

    def test_partial_drift_is_medium(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice", 20)
        _add(store, project, "auth", [0.6, 0.8], "alice", 1)
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        drift = DriftAnalyzer(store).analyze(project.id, now=NOW).drifts[0]

        assert drift.similarity_trend == pytest.approx(0.6)
        assert drift.severity == Severity.MEDIUM

    def test_report_summaries(self, store, drifting_team):
        report = DriftAnalyzer(store).analyze(drifting_team.id, now=NOW)
        data = report.to_dict()

        assert data["total_understandings"] == 7
        assert data["recent_count"] == 5
        assert [p["developer"] for p in data["predictions"]] == ["alice"]
        assert data["predictions"][0]["current_similarity"] == 0
        assert data["predictions"][0]["severity"] == "High"
        assert data["at_risk_developers"] == [
            {"name": "alice", "modules": ["auth"], "alignment": 0, "trend": "declining"},
        ]
        assert data["stable_modules"] == ["ledger"]

        forecasts = {f["module"]: f for f in data["consensus_forecast"]}
        assert forecasts["auth"]["current_consensus"] == 80.0
        assert forecasts["auth"]["trend"] == "declining"
        assert forecasts["auth"]["drifting_developers"] == ["alice"]
        assert forecasts["ledger"]["trend"] == "stable"

    def test_history_outside_recent_window_ignored(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice", 30)
        _add(store, project, "auth", [0.0, 1.0], "alice", 10)
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        assert DriftAnalyzer(store, recent_days=7).analyze(project.id, now=NOW).drifts == []

        wider = DriftAnalyzer(store, recent_days=14).analyze(project.id, now=NOW)
        assert [(d.developer, d.similarity_trend) for d in wider.drifts] == [("alice", pytest.approx(0.0))]

    def test_latest_recent_statement_is_compared(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice", 30)
        _add(store, project, "auth", [0.0, 1.0], "alice", 5)
        _add(store, project, "auth", [1.0, 0.0], "alice", 1)
        _add(store, project, "auth", [1.0, 0.0], "bob", 2)
        _add(store, project, "auth", [1.0, 0.0], "carol", 2)

        drift = DriftAnalyzer(store).analyze(project.id, now=NOW).drifts[0]

        assert drift.recent_count == 2
        assert drift.total_count == 3
        assert drift.similarity_trend == pytest.approx(1.0)

    def test_solo_module_not_measured(self, store, project):
        _add(store, project, "billing", [1.0, 0.0], "alice", 30)
        _add(store, project, "billing", [0.0, 1.0], "alice", 1)
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        assert DriftAnalyzer(store).analyze(project.id, now=NOW).drifts == []

    def test_unembedded_statements_ignored(self, store, project):
        _add(store, project, "auth", None, "alice", 30)
        _add(store, project, "auth", [0.0, 1.0], "alice", 1)
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        assert DriftAnalyzer(store).analyze(project.id, now=NOW).drifts == []

    def test_excerpt_truncated(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice", 30)
        _add(store, project, "auth", [0.0, 1.0], "alice", 1, "x" * 150)
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        drift = DriftAnalyzer(store).analyze(project.id, now=NOW).drifts[0]

        assert drift.recent_understanding == "x" * 100 + "..."

    def test_naive_timestamps_treated_as_utc(self, store, project):
        _add(store, project, "auth", [1.0, 0.0], "alice", 30)
        store.add_understanding(Understanding(
            project_id=project.id,
            developer_name="alice",
            module_name="auth",
            understanding_text="naive",
            embedding=[0.0, 1.0],
            created_at=_days_back(1).replace(tzinfo=None),
        ))
        for developer in ("bob", "carol", "dave"):
            _add(store, project, "auth", [1.0, 0.0], developer, 2)

        assert [d.developer for d in DriftAnalyzer(store).analyze(project.id, now=NOW).drifts] == ["alice"]


class TestForecaster:
    def test_template_fallback(self, store, drifting_team):
        forecaster = Forecaster(store)
        result = forecaster.generate(drifting_team.id, now=NOW)

        assert not forecaster.has_llm
        assert not result.used_llm
        assert result.narrative.startswith("## Developer Drift")
        assert "- alice on auth: 0% similar to their first understanding" in result.narrative
        assert "- auth: 80.0% consensus, declining (drifting: alice)" in result.narrative
        assert result.narrative.rstrip().endswith("ledger")

    def test_llm_narration(self, store, drifting_team):
        llm = MagicMock(spec=LLMClient)
        llm.is_available = True
        llm.generate.return_value = "## Early Warnings\n\nalice is drifting on auth."

        result = Forecaster(store, llm).generate(drifting_team.id, now=NOW)

        assert result.used_llm
        assert result.narrative == "## Early Warnings\n\nalice is drifting on auth."
        prompt = llm.generate.call_args[0][0]
        assert "alice on auth: 0% similar" in prompt
        assert "=== Stable Modules ===\nledger" in prompt
        assert result.report.stable_modules == ["ledger"]

    def test_llm_failure_falls_back(self, store, drifting_team, caplog):
        llm = MagicMock(spec=LLMClient)
        llm.is_available = True
        llm.generate.side_effect = RuntimeError("quota exceeded")

        with caplog.at_level(logging.WARNING, logger="accord.narrator.forecaster"):
            result = Forecaster(store, llm).generate(drifting_team.id, now=NOW)

        assert not result.used_llm
        assert result.narrative.startswith("## Developer Drift")
        assert "quota exceeded" in caplog.text

    def test_insufficient_data_skips_llm(self, store, project):
        llm = MagicMock(spec=LLMClient)
        llm.is_available = True
        _add(store, project, "auth", [1.0, 0.0], "alice", 1)

        result = Forecaster(store, llm).generate(project.id, now=NOW)

        assert result.narrative == "Not enough data for predictions (need at least 5 understandings)"
        assert not result.used_llm
        llm.generate.assert_not_called()
