# vibe_assistant/backend_client.py
"""Async client for the legacy idea -> plan routes, used by the Telegram bot."""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger("vibe_assistant")

# AI calls behind these routes can take a while
DEFAULT_TIMEOUT = 60.0


class BackendApiError(Exception):
    """The backend answered with an error envelope or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class BackendClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        """
        Sends the request and unwraps ``{"success": true, "data": ...}``.
        Raises BackendApiError on transport failures and on error envelopes.
        """
        logger.info("API request: %s %s", method, path)
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise BackendApiError(f"Сервер не ответил вовремя: {e}") from e
        except httpx.HTTPError as e:
            raise BackendApiError(f"Нет связи с сервером: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error or not body.get("success"):
            message = body.get("error") or f"HTTP {response.status_code}"
            logger.error("API error on %s %s: %s", method, path, message)
            raise BackendApiError(message, response.status_code)
        return body.get("data")

    async def analyze_idea(self, idea: str) -> dict:
        return await self._request("POST", "/api/analyze-idea", {"idea": idea})

    async def update_product_vision(self, project_id: str, corrections: str) -> dict:
        return await self._request("PUT", f"/api/analyze-idea/{project_id}", {"corrections": corrections})

    async def generate_plan(self, project_id: str) -> dict:
        return await self._request("POST", "/api/generate-plan", {"projectId": project_id})

    async def get_plan(self, project_id: str) -> dict:
        return await self._request("GET", f"/api/generate-plan/{project_id}")

    async def get_steps(self, project_id: str) -> dict:
        return await self._request("GET", f"/api/steps/{project_id}")

    async def get_step(self, step_id: str) -> dict:
        return await self._request("GET", f"/api/steps/step/{step_id}")

    async def complete_step(self, step_id: str) -> dict:
        return await self._request("POST", f"/api/steps/{step_id}/complete")

    async def uncomplete_step(self, step_id: str) -> dict:
        return await self._request("POST", f"/api/steps/{step_id}/uncomplete")
