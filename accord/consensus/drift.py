"""
Drift Analyzer

Early warning for alignment problems before they become conflicts.

For every developer who has written about a module more than once and has
been active in the recent window, compare their latest recent statement with
their first one. A low similarity means their view of the module has moved;
if teammates also write about that module, the developer is flagged as
drifting away from the shared picture.

Figures only; narration lives in accord.narrator.forecaster.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..common.schemas import Severity, Understanding, as_utc, truncate
from ..common.store import DocumentStore
from .analyzer import ConsensusAnalyzer
from .engine import ACCEPTED_THRESHOLD, SIMILARITY_THRESHOLD, cosine_similarity, filter_embedded

logger = logging.getLogger("accord.consensus.drift")

MIN_UNDERSTANDINGS = 5
DRIFT_THRESHOLD = SIMILARITY_THRESHOLD
HIGH_SEVERITY_THRESHOLD = 0.5
EXCERPT_CHARS = 100


@dataclass
class DeveloperDrift:
    """How far one developer's view of one module has moved"""
    developer: str
    module: str
    recent_count: int
    total_count: int
    similarity_trend: float  # latest recent vs first statement, -1..1
    recent_understanding: str

    @property
    def at_risk(self) -> bool:
        return self.similarity_trend < DRIFT_THRESHOLD

    @property
    def trend(self) -> str:
        return "declining" if self.at_risk else "stable"

    @property
    def severity(self) -> Severity:
        if self.similarity_trend < HIGH_SEVERITY_THRESHOLD:
            return Severity.HIGH
        if self.at_risk:
            return Severity.MEDIUM
        return Severity.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "developer_drift",
            "developer": self.developer,
            "module": self.module,
            "severity": self.severity.value,
            "current_similarity": round(self.similarity_trend * 100),
            "trend": self.trend,
            "recent_count": self.recent_count,
            "total_count": self.total_count,
            "recent_understanding": self.recent_understanding,
        }


@dataclass
class ModuleForecast:
    """Current consensus of a module and whether anyone is drifting from it"""
    module: str
    current_consensus: float
    insufficient_data: bool
    drifting_developers: List[str] = field(default_factory=list)

    @property
    def trend(self) -> str:
        return "declining" if self.drifting_developers else "stable"

    @property
    def stable(self) -> bool:
        return (
            not self.insufficient_data
            and not self.drifting_developers
            and self.current_consensus >= ACCEPTED_THRESHOLD
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "current_consensus": round(self.current_consensus, 1),
            "insufficient_data": self.insufficient_data,
            "trend": self.trend,
            "drifting_developers": self.drifting_developers,
        }


@dataclass
class DriftReport:
    """Drift figures for a whole project"""
    project_id: str
    total_understandings: int
    recent_count: int = 0
    drifts: List[DeveloperDrift] = field(default_factory=list)
    forecasts: List[ModuleForecast] = field(default_factory=list)
    message: str = ""

    @property
    def insufficient_data(self) -> bool:
        return self.total_understandings < MIN_UNDERSTANDINGS

    @property
    def at_risk(self) -> List[DeveloperDrift]:
        """Drifting developer/module pairs, lowest similarity first"""
        return sorted((d for d in self.drifts if d.at_risk), key=lambda d: d.similarity_trend)

    @property
    def at_risk_developers(self) -> List[Dict[str, Any]]:
        """One entry per drifting developer, with their weakest alignment"""
        by_developer: Dict[str, List[DeveloperDrift]] = {}
        for drift in self.at_risk:
            by_developer.setdefault(drift.developer, []).append(drift)
        return [
            {
                "name": name,
                "modules": [d.module for d in drifts],
                "alignment": round(min(d.similarity_trend for d in drifts) * 100),
                "trend": "declining",
            }
            for name, drifts in by_developer.items()
        ]

    @property
    def stable_modules(self) -> List[str]:
        return [f.module for f in self.forecasts if f.stable]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "total_understandings": self.total_understandings,
            "recent_count": self.recent_count,
            "predictions": [d.to_dict() for d in self.at_risk],
            "consensus_forecast": [f.to_dict() for f in self.forecasts],
            "at_risk_developers": self.at_risk_developers,
            "stable_modules": self.stable_modules,
        }
        if self.message:
            result["message"] = self.message
        return result


class DriftAnalyzer:
    """
    Computes per-developer drift and per-module forecasts for a project.

    Usage:
        analyzer = DriftAnalyzer(store, recent_days=7)
        report = analyzer.analyze(project_id)
    """

    def __init__(self, store: DocumentStore, recent_days: int = 7):
        self._store = store
        self._recent_days = recent_days
        self._consensus = ConsensusAnalyzer(store)

    def analyze(self, project_id: str, now: Optional[datetime] = None) -> DriftReport:
        """
        Analyze drift across a project.

        Fewer than MIN_UNDERSTANDINGS understandings yields an empty report
        with a message, not an error.

        Raises:
            RecordNotFoundError: Unknown project
        """
        now = now or datetime.now(timezone.utc)
        self._store.get_project(project_id)
        understandings = self._store.list_understandings(project_id)

        if len(understandings) < MIN_UNDERSTANDINGS:
            logger.info("Project %s has %d understandings, too few for predictions", project_id, len(understandings))
            return DriftReport(
                project_id=project_id,
                total_understandings=len(understandings),
                message=f"Not enough data for predictions (need at least {MIN_UNDERSTANDINGS} understandings)",
            )

        cutoff = now - timedelta(days=self._recent_days)
        recent_count = sum(1 for u in understandings if as_utc(u.created_at) >= cutoff)
        drifts = self._developer_drifts(understandings, cutoff)

        drifting: Dict[str, List[str]] = {}
        for drift in drifts:
            if drift.at_risk:
                drifting.setdefault(drift.module, []).append(drift.developer)

        forecasts = [
            ModuleForecast(
                module=m.module_name,
                current_consensus=m.consensus_percentage,
                insufficient_data=m.insufficient_data,
                drifting_developers=drifting.get(m.module_name, []),
            )
            for m in self._consensus.analyze_project(project_id)
        ]

        logger.info(
            "Project %s: %d drift measurements, %d at risk",
            project_id, len(drifts), sum(1 for d in drifts if d.at_risk),
        )
        return DriftReport(
            project_id=project_id,
            total_understandings=len(understandings),
            recent_count=recent_count,
            drifts=drifts,
            forecasts=forecasts,
        )

    @staticmethod
    def _developer_drifts(understandings: List[Understanding], cutoff: datetime) -> List[DeveloperDrift]:
        usable = filter_embedded(understandings)

        groups: Dict[Tuple[str, str], List[Tuple[Understanding, np.ndarray]]] = {}
        writers: Dict[str, set] = {}
        for u, vector in usable:
            groups.setdefault((u.developer_name, u.module_name), []).append((u, vector))
            writers.setdefault(u.module_name, set()).add(u.developer_name)

        drifts = []
        for (developer, module), entries in groups.items():
            if len(entries) < 2:
                continue
            recent = [(u, v) for u, v in entries if as_utc(u.created_at) >= cutoff]
            if not recent:
                continue
            if not writers[module] - {developer}:
                continue

            latest, latest_vector = recent[-1]
            _, first_vector = entries[0]
            drifts.append(DeveloperDrift(
                developer=developer,
                module=module,
                recent_count=len(recent),
                total_count=len(entries),
                similarity_trend=cosine_similarity(latest_vector, first_vector),
                recent_understanding=truncate(latest.understanding_text, EXCERPT_CHARS),
            ))
        return drifts
