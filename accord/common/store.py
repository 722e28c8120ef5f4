"""
Document Store

Keyed records for projects, understandings, ADRs, conflict analyses and
reports, persisted as one JSON file (default: ~/.accord/store.json).

With path=None the store lives in memory only, which is what tests use.
Writes go through a lock; every mutation is flushed to disk immediately.

Nothing read from disk is dropped on the next write: items that fail
validation and unknown top-level keys are carried through unchanged, and a
file that cannot be parsed at all is never overwritten.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .schemas import (
    ADRRecord,
    ConflictAnalysisRecord,
    Project,
    ReportRecord,
    Understanding,
    as_utc,
)

logger = logging.getLogger("accord.common.store")

ModelT = TypeVar("ModelT", bound=BaseModel)

COLLECTIONS: Dict[str, Type[BaseModel]] = {
    "projects": Project,
    "understandings": Understanding,
    "adrs": ADRRecord,
    "conflict_analyses": ConflictAnalysisRecord,
    "reports": ReportRecord,
}


class RecordNotFoundError(KeyError):
    """Raised when a record ID does not exist in its collection."""


class StoreLoadError(Exception):
    """Raised when the store file exists but cannot be read or parsed."""


class DocumentStore:
    """
    JSON-backed document store.

    Records are kept per collection in insertion order, keyed by their `id`.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            path: JSON file to persist to (None = in-memory only)

        Raises:
            StoreLoadError: The file exists but is not a readable JSON object
        """
        self._path = Path(path).expanduser() if path else None
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, BaseModel]] = {name: {} for name in COLLECTIONS}
        self._unreadable: Dict[str, List[Any]] = {name: [] for name in COLLECTIONS}
        self._extra: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load all collections from disk"""
        if self._path is None or not self._path.exists():
            return

        try:
            with open(self._path) as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.error("Failed to load store %s: %s", self._path, e)
            raise StoreLoadError(f"Cannot read store {self._path}: {e}") from e

        if not isinstance(raw, dict):
            raise StoreLoadError(f"Store {self._path} does not contain a JSON object")

        self._extra = {key: value for key, value in raw.items() if key not in COLLECTIONS}

        for name, model in COLLECTIONS.items():
            for item in raw.get(name) or []:
                try:
                    record = model.model_validate(item)
                except ValidationError as e:
                    item_id = item.get("id") if isinstance(item, dict) else None
                    logger.warning("Keeping unreadable %s record %s as-is: %s", name, item_id, e)
                    self._unreadable[name].append(item)
                    continue
                self._data[name][record.id] = record

    def _save(self) -> None:
        """Write all collections to disk (caller holds the lock)"""
        if self._path is None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = dict(self._extra)
        for name, records in self._data.items():
            data[name] = [record.model_dump(mode="json") for record in records.values()]
            data[name].extend(self._unreadable[name])
        tmp_path = self._path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self._path)

    @property
    def unreadable_count(self) -> int:
        """Number of stored items that failed validation on load"""
        return sum(len(items) for items in self._unreadable.values())

    def _put(self, collection: str, record: BaseModel) -> None:
        with self._lock:
            self._data[collection][record.id] = record
            self._save()

    def _get(self, collection: str, record_id: str, model: Type[ModelT]) -> ModelT:
        record = self._data[collection].get(record_id)
        if record is None:
            raise RecordNotFoundError(f"{collection} record not found: {record_id}")
        return record

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self,
        name: str,
        hld_text: Optional[str] = None,
        lld_text: Optional[str] = None,
    ) -> Project:
        if not name or not name.strip():
            raise ValueError("Project name is required")
        project = Project(name=name.strip(), hld_text=hld_text, lld_text=lld_text)
        self._put("projects", project)
        logger.info("Created project %s (%s)", project.name, project.id)
        return project

    def get_project(self, project_id: str) -> Project:
        return self._get("projects", project_id, Project)

    def list_projects(self) -> List[Project]:
        return sorted(self._data["projects"].values(), key=lambda p: p.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Understandings
    # ------------------------------------------------------------------

    def add_understanding(self, understanding: Understanding) -> Understanding:
        """Store an understanding. Existing IDs are never overwritten."""
        if understanding.id in self._data["understandings"]:
            raise ValueError(f"Understanding already exists: {understanding.id}")
        self._put("understandings", understanding)
        return understanding

    def get_understanding(self, understanding_id: str) -> Understanding:
        return self._get("understandings", understanding_id, Understanding)

    def list_understandings(
        self,
        project_id: str,
        module_name: Optional[str] = None,
    ) -> List[Understanding]:
        """Understandings of a project (optionally one module), oldest first"""
        matches = [
            u for u in self._data["understandings"].values()
            if u.project_id == project_id
            and (module_name is None or u.module_name == module_name)
        ]
        return sorted(matches, key=lambda u: as_utc(u.created_at))

    def list_modules(self, project_id: str) -> List[str]:
        """Module names of a project in order of first appearance"""
        modules: Dict[str, None] = {}
        for u in self.list_understandings(project_id):
            modules.setdefault(u.module_name, None)
        return list(modules)

    # ------------------------------------------------------------------
    # ADRs
    # ------------------------------------------------------------------

    def next_adr_number(self, project_id: str) -> int:
        numbers = [a.adr_number for a in self._data["adrs"].values() if a.project_id == project_id]
        return max(numbers, default=0) + 1

    def save_adr(self, adr: ADRRecord) -> ADRRecord:
        self._put("adrs", adr)
        return adr

    def list_adrs(self, project_id: str) -> List[ADRRecord]:
        adrs = [a for a in self._data["adrs"].values() if a.project_id == project_id]
        return sorted(adrs, key=lambda a: a.adr_number)

    # ------------------------------------------------------------------
    # Conflict analyses
    # ------------------------------------------------------------------

    def save_conflict_analysis(self, record: ConflictAnalysisRecord) -> ConflictAnalysisRecord:
        self._put("conflict_analyses", record)
        return record

    def get_conflict_analysis(self, analysis_id: str) -> ConflictAnalysisRecord:
        return self._get("conflict_analyses", analysis_id, ConflictAnalysisRecord)

    def resolve_conflict(self, analysis_id: str) -> ConflictAnalysisRecord:
        """Mark a conflict analysis resolved"""
        record = self.get_conflict_analysis(analysis_id)
        resolved = record.model_copy(update={
            "resolved": True,
            "resolved_at": datetime.now(timezone.utc),
        })
        self._put("conflict_analyses", resolved)
        return resolved

    def list_conflict_analyses(
        self,
        project_id: str,
        include_resolved: bool = True,
    ) -> List[ConflictAnalysisRecord]:
        records = [
            r for r in self._data["conflict_analyses"].values()
            if r.project_id == project_id and (include_resolved or not r.resolved)
        ]
        return sorted(records, key=lambda r: r.created_at)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def next_report_number(self, project_id: str) -> int:
        numbers = [r.report_number for r in self._data["reports"].values() if r.project_id == project_id]
        return max(numbers, default=0) + 1

    def save_report(self, report: ReportRecord) -> ReportRecord:
        self._put("reports", report)
        return report

    def list_reports(self, project_id: str) -> List[ReportRecord]:
        reports = [r for r in self._data["reports"].values() if r.project_id == project_id]
        return sorted(reports, key=lambda r: r.created_at, reverse=True)
