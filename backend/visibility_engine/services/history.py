"""
History Aggregator
Re-fetches a project's check history and derives metadata and content gaps
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from visibility_engine.models import Project, VisibilityCheck
from visibility_engine.services.confidence import VisibilityMeta, summarize_visibility_history
from visibility_engine.services.store import VisibilityStore


@dataclass
class QueryGap:
    """A query where competitors appear in answers and the brand never does"""
    query: str
    providers: List[str] = field(default_factory=list)
    user_mentioned: bool = False
    user_cited: bool = False
    competitors_cited: List[Dict[str, Any]] = field(default_factory=list)


def _normalize_domain(domain: str) -> str:
    domain = (domain or "").strip().lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def find_gaps(
    checks: Iterable[Any],
    tracked_domains: Optional[Iterable[str]] = None,
) -> List[QueryGap]:
    """
    Group checks by query and keep the queries the brand is absent from
    while at least one competitor is mentioned.

    Args:
        checks: Check rows (llm_provider, query, brand_mentioned, url_cited,
            competitor_mentions)
        tracked_domains: Only count these competitor domains when given

    Returns:
        Gaps in first-seen query order; competitors carry their best position
    """
    tracked = None
    if tracked_domains is not None:
        tracked = {_normalize_domain(d) for d in tracked_domains}

    by_query: Dict[str, QueryGap] = {}
    best_positions: Dict[str, Dict[str, Optional[int]]] = {}

    for check in checks:
        gap = by_query.get(check.query)
        if gap is None:
            gap = by_query[check.query] = QueryGap(query=check.query)
            best_positions[check.query] = {}

        if check.llm_provider not in gap.providers:
            gap.providers.append(check.llm_provider)
        if check.brand_mentioned:
            gap.user_mentioned = True
        if check.url_cited:
            gap.user_cited = True

        positions = best_positions[check.query]
        for mention in check.competitor_mentions or []:
            if not mention.get("mentioned"):
                continue
            domain = mention.get("domain")
            if tracked is not None and _normalize_domain(domain) not in tracked:
                continue

            position = mention.get("position")
            current = positions.get(domain)
            if domain not in positions or (
                position is not None and (current is None or position < current)
            ):
                positions[domain] = position

    gaps = []
    for query, gap in by_query.items():
        positions = best_positions[query]
        if gap.user_mentioned or not positions:
            continue
        gap.competitors_cited = [
            {"domain": domain, "position": position}
            for domain, position in positions.items()
        ]
        gaps.append(gap)

    return gaps


class HistoryAggregator:
    """Read side of the engine; callers re-fetch here after every run"""

    def __init__(self, store: VisibilityStore):
        self.store = store

    async def list_history(self, project: Project, region: Optional[str] = None) -> List[VisibilityCheck]:
        return await self.store.list_history(project.id, region=region.lower() if region else None)

    async def meta(
        self,
        project: Project,
        region: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[VisibilityMeta]:
        checks = await self.list_history(project, region)
        return summarize_visibility_history(checks, now)

    async def gaps(self, project: Project, tracked_only: bool = False) -> List[QueryGap]:
        """Content gaps over the full history, optionally limited to tracked competitors"""
        checks = await self.list_history(project)
        tracked = None
        if tracked_only:
            tracked = [c.domain for c in await self.store.list_competitors(project.id)]
        return find_gaps(checks, tracked)
