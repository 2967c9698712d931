"""HTTP client for the text-generation service behind root-cause narratives."""

import json
import logging
from typing import Any

import httpx

from supply_sentinel.enrichment.prompts import SYSTEM_PROMPT, USER_PROMPT_TEMPLATE

logger = logging.getLogger(__name__)


class RootCauseClient:
    """Calls an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            )
        return self._http_client

    @staticmethod
    def build_prompt(summary: dict[str, Any]) -> str:
        measurements = "\n".join(
            f"- {key}: {value}"
            for key, value in sorted((summary.get("metadata") or {}).items())
        ) or "- none"
        return USER_PROMPT_TEMPLATE.format(
            anomaly_type=summary.get("anomaly_type", ""),
            severity=summary.get("severity", ""),
            title=summary.get("title", ""),
            description=summary.get("description", ""),
            affected_resource_type=summary.get("affected_resource_type", ""),
            affected_resource_id=summary.get("affected_resource_id", ""),
            measurements=measurements,
        )

    async def generate_root_cause(self, summary: dict[str, Any]) -> str:
        """Send a structured anomaly summary and return the narrative text.

        Raises httpx errors on transport failure or a non-2xx response, and
        ValueError when the response carries no text.
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(summary)},
            ],
        }
        client = self._get_http_client()
        resp = await client.post(
            f"{self.base_url}/chat/completions",
            content=json.dumps(payload, default=str),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        resp.raise_for_status()
        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError("Text-generation response has no message content") from exc
        if not content or not content.strip():
            raise ValueError("Text-generation response is empty")
        return content.strip()

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
