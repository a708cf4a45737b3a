"""
Base Check Executor Interface
The execution capability that queries providers and classifies answers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from visibility_engine.schemas.visibility import CheckOutcome


@dataclass(frozen=True)
class CheckRequest:
    """A single (query, provider) unit of work"""
    query: str
    provider: str


@dataclass
class CheckBatch:
    """Cross product of queries and providers, submitted as one request"""
    project_id: str
    target_domain: str
    checks: List[CheckRequest]
    competitors: List[str] = field(default_factory=list)
    region: Optional[str] = None
    language: Optional[str] = None

    @property
    def keys(self) -> set:
        return {(c.query, c.provider) for c in self.checks}

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "project_id": self.project_id,
            "target_domain": self.target_domain,
            "competitors": list(self.competitors),
            "checks": [{"query": c.query, "provider": c.provider} for c in self.checks],
        }
        if self.region:
            payload["region"] = self.region
            payload["language"] = self.language
        return payload


class BaseCheckExecutor(ABC):
    """
    Abstract base class for check executors.

    An executor runs every check of a batch and classifies brand mention,
    URL citation and competitor mentions. It may batch or parallelize
    internally, but returns the whole result set or raises.
    """

    @abstractmethod
    async def run_batch(self, batch: CheckBatch) -> List[CheckOutcome]:
        """
        Execute a batch of checks.

        Args:
            batch: The (query, provider) pairs plus brand/competitor context

        Returns:
            One CheckOutcome per requested pair

        Raises:
            TransientError: Network failure, timeout or malformed response
            ExecutorConfigurationError: Executor rejected the service credentials
            ValidationError: Executor rejected the request as invalid
        """
        pass
