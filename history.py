import csv
import io
import json
import math
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from models import AnalysisReport, AnalysisStats, HistoryEntry, Page

SORT_FIELDS = {"createdAt", "updatedAt", "title", "overallRiskLevel", "totalThreats", "totalIssues"}
_RISK_ORDER = {"Low": 0, "Medium": 1, "High": 2, "Critical": 3}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # naive query datetimes are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def paginate(entries: Sequence[HistoryEntry], page: int, limit: int) -> Page[HistoryEntry]:
    page = max(page, 1)
    limit = max(limit, 1)
    skip = (page - 1) * limit
    return Page[HistoryEntry](
        items=list(entries[skip:skip + limit]),
        page=page,
        limit=limit,
        total=len(entries),
        pages=math.ceil(len(entries) / limit),
    )


class HistoryStore:
    """In-memory store of analysis history (swap with a database later)."""

    def __init__(self):
        self._entries: dict[str, HistoryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, owner_id: str, log_content: str, report: AnalysisReport, title: Optional[str] = None,
            tags: Optional[list[str]] = None, is_public: bool = False) -> HistoryEntry:
        now = _now()
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title or f"Log Analysis - {now:%Y-%m-%d}",
            log_content=log_content,
            analysis=report.result,
            metadata=report.metadata,
            tags=list(tags or []),
            is_public=is_public,
            created_at=now,
            updated_at=now,
        )
        self._entries[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        return self._entries.get(entry_id)

    def _newest_first(self, entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
        # ties keep insertion order, so reversing puts the latest addition first
        ordered = sorted(entries, key=lambda e: e.created_at)
        ordered.reverse()
        return ordered

    def list_for_owner(self, owner_id: str, page: int = 1, limit: int = 10) -> Page[HistoryEntry]:
        owned = self._newest_first(e for e in self._entries.values() if e.owner_id == owner_id)
        return paginate(owned, page, limit)

    def list_public(self, page: int = 1, limit: int = 10) -> Page[HistoryEntry]:
        public = self._newest_first(e for e in self._entries.values() if e.is_public)
        return paginate(public, page, limit)

    def update(self, entry_id: str, title: Optional[str] = None, tags: Optional[list[str]] = None,
               is_public: Optional[bool] = None) -> Optional[HistoryEntry]:
        entry = self._entries.get(entry_id)
        if entry is None:
            return None
        changes = {"updated_at": _now()}
        if title is not None:
            changes["title"] = title
        if tags is not None:
            changes["tags"] = list(tags)
        if is_public is not None:
            changes["is_public"] = is_public
        updated = entry.model_copy(update=changes)
        self._entries[entry_id] = updated
        return updated

    def delete(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def bulk_delete(self, owner_id: str, ids: Iterable[str]) -> int:
        deleted = 0
        for entry_id in set(ids):
            entry = self._entries.get(entry_id)
            if entry is not None and entry.owner_id == owner_id:
                del self._entries[entry_id]
                deleted += 1
        return deleted

    def clear(self, owner_id: str) -> int:
        return self.bulk_delete(owner_id, [e.id for e in self._entries.values() if e.owner_id == owner_id])

    def search(self, owner_id: Optional[str] = None, q: Optional[str] = None,
               tags: Optional[Sequence[str]] = None, risk_levels: Optional[Sequence[str]] = None,
               date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
               sort_by: str = "createdAt", sort_order: str = "desc",
               page: int = 1, limit: int = 10) -> Page[HistoryEntry]:
        """Filter entries; a None filter matches everything."""
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_by}")
        needle = q.lower() if q else None
        wanted_tags = set(tags or [])
        wanted_risk = set(risk_levels or [])
        date_from, date_to = _aware(date_from), _aware(date_to)

        def matches(entry: HistoryEntry) -> bool:
            if owner_id is not None and entry.owner_id != owner_id:
                return False
            if needle and not any(needle in text.lower() for text in
                                  (entry.title, entry.analysis.summary, entry.log_content)):
                return False
            if wanted_tags and not wanted_tags.intersection(entry.tags):
                return False
            if wanted_risk and entry.analysis.overall_risk_level.value not in wanted_risk:
                return False
            if date_from and entry.created_at < date_from:
                return False
            if date_to and entry.created_at > date_to:
                return False
            return True

        found = sorted((e for e in self._entries.values() if matches(e)), key=lambda e: _sort_key(e, sort_by))
        if sort_order == "desc":
            found.reverse()
        return paginate(found, page, limit)

    def stats(self, owner_id: Optional[str] = None, date_from: Optional[datetime] = None,
              date_to: Optional[datetime] = None) -> AnalysisStats:
        entries = self.search(owner_id=owner_id, date_from=date_from, date_to=date_to,
                              limit=max(len(self._entries), 1)).items
        if not entries:
            return AnalysisStats()
        distribution: dict[str, int] = {}
        for entry in entries:
            level = entry.analysis.overall_risk_level.value
            distribution[level] = distribution.get(level, 0) + 1
        return AnalysisStats(
            total_analyses=len(entries),
            total_threats=sum(e.analysis.total_threats for e in entries),
            total_issues=sum(e.analysis.total_issues for e in entries),
            avg_processing_time=round(sum(e.metadata.processing_time for e in entries) / len(entries), 2),
            risk_level_distribution=distribution,
        )


def _sort_key(entry: HistoryEntry, field: str):
    if field == "createdAt":
        return entry.created_at
    if field == "updatedAt":
        return entry.updated_at
    if field == "title":
        return entry.title.lower()
    if field == "overallRiskLevel":
        return _RISK_ORDER[entry.analysis.overall_risk_level.value]
    if field == "totalThreats":
        return entry.analysis.total_threats
    return entry.analysis.total_issues


def export_entry(entry: HistoryEntry, fmt: str = "json") -> str:
    """Render an entry as a downloadable ``json`` or ``csv`` document."""
    fmt = fmt.lower()
    if fmt == "json":
        document = {
            "id": entry.id,
            "title": entry.title,
            "createdAt": entry.created_at.isoformat(),
            "analysis": entry.analysis.model_dump(mode="json", by_alias=True),
            "tags": entry.tags,
            "logContent": entry.log_content,
        }
        return json.dumps(document, indent=2)
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["ID", "Title", "Created At", "Risk Level", "Total Threats", "Total Issues", "Summary"])
        writer.writerow([
            entry.id,
            entry.title,
            entry.created_at.isoformat(),
            entry.analysis.overall_risk_level.value,
            entry.analysis.total_threats,
            entry.analysis.total_issues,
            entry.analysis.summary,
        ])
        return buf.getvalue()
    raise ValueError(f"Unsupported export format: {fmt}")
