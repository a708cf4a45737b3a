"""
HTTP Check Executor
Submits check batches to the remote execution service
"""

import logging
from datetime import datetime
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from visibility_engine.config import get_settings
from visibility_engine.schemas.visibility import CheckBatchResponse, CheckOutcome
from visibility_engine.services.errors import (
    CheckExecutionTimeout,
    ExecutorConfigurationError,
    TransientError,
    ValidationError,
)
from .base import BaseCheckExecutor, CheckBatch

logger = logging.getLogger(__name__)


class HttpCheckExecutor(BaseCheckExecutor):
    """
    Executor backed by the remote check service.

    POST {base_url}/v1/checks/batch with the batch payload; the service
    answers with {"results": [...]}, one entry per (query, provider).
    """

    BATCH_PATH = "/v1/checks/batch"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.CHECK_EXECUTOR_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.CHECK_EXECUTOR_API_KEY
        self.timeout = timeout or settings.CHECK_EXECUTOR_TIMEOUT
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def run_batch(self, batch: CheckBatch) -> List[CheckOutcome]:
        """Submit a batch and parse the executor's answer"""
        request_time = datetime.utcnow()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.BATCH_PATH,
                    json=batch.to_payload(),
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise CheckExecutionTimeout(
                f"Check executor did not answer within {self.timeout}s",
                details={"checks": len(batch.checks)},
            ) from e
        except httpx.HTTPError as e:
            raise TransientError(f"Check executor unreachable: {e}") from e

        self._raise_for_status(response)

        try:
            parsed = CheckBatchResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise TransientError(f"Malformed check executor response: {e}") from e

        latency_ms = int((datetime.utcnow() - request_time).total_seconds() * 1000)
        logger.info(
            f"Executed {len(parsed.results)} checks for project {batch.project_id} "
            f"in {latency_ms}ms"
        )
        return parsed.results

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        try:
            body = response.json()
        except ValueError:
            body = None
        detail = (body.get("detail") if isinstance(body, dict) else None) or response.text

        if status in (401, 403):
            logger.error(f"Check executor rejected the service credentials ({status}): {detail}")
            raise ExecutorConfigurationError(
                "Check executor is not available, try again later",
                details={"status_code": status},
            )
        if status in (400, 422):
            raise ValidationError(f"Check executor rejected the batch: {detail}")
        raise TransientError(
            f"Check executor error {status}: {detail}",
            details={"status_code": status},
        )
