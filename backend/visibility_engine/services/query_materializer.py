"""
Query Materializer
Turns a mixed selection of keyword ids and persona queries into keyword ids
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from visibility_engine.models import Project, SubscriptionTier
from visibility_engine.services.errors import ValidationError
from visibility_engine.services.plan_limits import get_plan_limits
from visibility_engine.services.store import VisibilityStore

logger = logging.getLogger(__name__)

PERSONA_PREFIX = "persona:"


@dataclass
class ParsedSelection:
    """A selection split into persisted ids and persona query texts"""
    keyword_ids: List[str] = field(default_factory=list)
    persona_queries: List[str] = field(default_factory=list)


def parse_persona_token(token: str) -> str:
    """
    Query text of a `persona:<personaId>:<queryText>` token.

    Everything after the second colon is the query, colons included.

    Raises:
        ValidationError: The token carries no query text
    """
    text = ":".join(token.split(":")[2:]).strip()
    if not text:
        raise ValidationError(
            "Persona query has no query text",
            details={"token": token},
        )
    return text


def parse_tokens(tokens: Iterable[str]) -> ParsedSelection:
    """Partition selection tokens; persona tokens are validated here"""
    selection = ParsedSelection()
    for token in tokens:
        token = (token or "").strip()
        if not token:
            continue
        if token.startswith(PERSONA_PREFIX):
            selection.persona_queries.append(parse_persona_token(token))
        else:
            selection.keyword_ids.append(token)
    return selection


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class QueryMaterializer:
    """
    Resolves persona queries to persisted keywords.

    Persona queries are written in one batch before any check runs, so a
    storage failure aborts the run with nothing sent to a provider.
    """

    def __init__(self, store: VisibilityStore):
        self.store = store

    async def materialize(
        self,
        project: Project,
        tokens: Iterable[str],
        tier: Optional[SubscriptionTier] = None,
    ) -> List[str]:
        """
        Resolve a selection to keyword ids.

        Args:
            project: Project the keywords belong to
            tokens: Keyword ids and/or persona tokens
            tier: Plan tier of the owner; bounds newly saved keywords

        Returns:
            De-duplicated keyword ids, real ids first then minted ones
        """
        selection = parse_tokens(tokens)
        ids = list(selection.keyword_ids)

        if selection.persona_queries:
            limit = None
            if tier is not None:
                limit = get_plan_limits(tier)["saved_keywords"]

            keywords = await self.store.create_keywords_batch(
                project.id, selection.persona_queries, limit=limit
            )
            await self.store.commit()

            ids.extend(str(k.id) for k in keywords)
            logger.info(
                f"Materialized {len(selection.persona_queries)} persona queries "
                f"into {len(keywords)} keywords for project {project.id}"
            )

        return _dedupe(ids)
