"""Tests for record schemas and Markdown templates."""

from datetime import date

import numpy as np
import pytest
from pydantic import ValidationError

from accord.common.schemas import (
    ConflictAnalysis,
    Severity,
    Understanding,
    format_contributors,
    format_date,
    parse_vector_text,
    render_adr,
    truncate,
)


def _understanding(**overrides):
    fields = dict(
        project_id="p1",
        developer_name="alice",
        module_name="auth",
        understanding_text="Tokens are refreshed by the gateway.",
    )
    fields.update(overrides)
    return Understanding(**fields)


class TestParseVectorText:
    def test_bracketed(self):
        assert parse_vector_text("[1,2,3]") == [1.0, 2.0, 3.0]

    def test_bare(self):
        assert parse_vector_text(" 0.5, -1 ") == [0.5, -1.0]

    @pytest.mark.parametrize("text", ["garbage", "[1,[2]]", '["a"]', "[true, 1]", "{}"])
    def test_unparseable(self, text):
        assert parse_vector_text(text) is None


class TestUnderstanding:
    def test_defaults(self):
        u = _understanding()
        assert u.id
        assert u.embedding is None
        assert not u.has_embedding
        assert u.created_at.tzinfo is not None

    def test_frozen(self):
        u = _understanding()
        with pytest.raises(ValidationError):
            u.understanding_text = "changed"

    @pytest.mark.parametrize("score", [0, 6])
    def test_confidence_range(self, score):
        with pytest.raises(ValidationError):
            _understanding(confidence_score=score)

    def test_embedding_from_text(self):
        assert _understanding(embedding="[1, 2]").embedding == [1.0, 2.0]

    def test_embedding_from_numpy(self):
        assert _understanding(embedding=np.array([0.25, 0.5])).embedding == [0.25, 0.5]

    def test_malformed_embedding_becomes_none(self):
        assert _understanding(embedding="not a vector").embedding is None
        assert _understanding(embedding=[1.0, "x"]).embedding is None
        assert _understanding(embedding=[True, False]).embedding is None
        assert _understanding(embedding={"a": 1}).embedding is None

    def test_zero_vector_kept(self):
        u = _understanding(embedding=[0.0, 0.0])
        assert u.embedding == [0.0, 0.0]
        assert u.has_embedding


class TestConflictAnalysis:
    def test_partial_answer_uses_defaults(self):
        analysis = ConflictAnalysis.model_validate({"root_cause": "Unclear ownership"})
        assert analysis.risks.severity == Severity.MEDIUM
        assert analysis.action_items == []

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValidationError):
            ConflictAnalysis.model_validate({"risks": {"severity": "Critical"}})


class TestTemplates:
    def test_format_date(self):
        assert format_date(date(2026, 3, 5)) == "March 5, 2026"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("abcdefghij", 4) == "abcd..."

    def test_format_contributors(self):
        people = [_understanding(confidence_score=4), _understanding(developer_name="bob")]
        assert format_contributors(people) == "alice (4/5), bob (N/A/5)"
        assert format_contributors([]) == "(none)"

    def test_render_adr_without_clusters(self):
        text = render_adr(
            number=3, title="auth Architecture Decision", module="auth", status="Under Discussion",
            consensus=0.0, clusters=[], understandings=[_understanding()], day=date(2026, 10, 19),
            low_alignment_threshold=70.0,
        )
        assert text.startswith("# ADR-003: auth Architecture Decision")
        assert "**Date:** October 19, 2026" in text
        assert "(no agreed approach yet)" in text
        assert "Recommend follow-up discussion" in text
