"""Shared fixtures for Accord tests."""

import itertools

import pytest


@pytest.fixture
def make_understanding():
    """Factory for Understanding records with sequential developer names"""
    from accord.common.schemas import Understanding

    counter = itertools.count(1)

    def _make(embedding, developer=None, module="auth", text=None, confidence=None, project_id="proj-1", **extra):
        n = next(counter)
        return Understanding(
            project_id=project_id,
            developer_name=developer or f"dev{n}",
            module_name=module,
            understanding_text=text or f"statement {n}",
            confidence_score=confidence,
            embedding=embedding,
            **extra,
        )

    return _make


@pytest.fixture
def store():
    from accord.common.store import DocumentStore
    return DocumentStore()


@pytest.fixture
def project(store):
    return store.create_project(
        "Payments",
        hld_text="Payments are processed through an event-sourced ledger.",
        lld_text="The ledger service writes to PostgreSQL with idempotency keys.",
    )
