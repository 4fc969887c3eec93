from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marketwatch.errors import UploadFailure
from marketwatch.extraction.normalizer import CanonicalRecord

logger = logging.getLogger(__name__)


class UploadResult(BaseModel):
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    error_details: list[str] = Field(default_factory=list, alias="errorDetails")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class UploadClient:
    """Posts one file's canonical records to the upload boundary in a single call.

    There is no retry here: the boundary appends price observations, so a
    replayed POST would double-count. Failed files are retried as a whole by
    the batch driver's retry flow.
    """

    def __init__(
        self,
        api_url: str,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": "marketwatch-worker/1.0"},
        )

    async def __aenter__(self) -> UploadClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def upload(self, records: Sequence[CanonicalRecord]) -> UploadResult:
        payload = [record.to_payload() for record in records]
        try:
            response = await self.client.post(self.api_url, json=payload)
        except httpx.ConnectError as exc:
            raise UploadFailure(f"Connection refused by {self.api_url}: {exc}", connection_refused=True) from exc
        except httpx.HTTPError as exc:
            raise UploadFailure(f"Upload to {self.api_url} failed: {exc}") from exc

        if not response.is_success:
            raise UploadFailure(f"HTTP {response.status_code}: {response.text}", status_code=response.status_code)

        try:
            result = UploadResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UploadFailure(
                f"Invalid response from {self.api_url}: {exc}",
                status_code=response.status_code,
            ) from exc

        logger.debug(
            "Uploaded %s records: processed=%s errors=%s skipped=%s",
            len(payload),
            result.processed,
            result.errors,
            result.skipped,
        )
        return result
