"""Text translation client (Translator v3 REST API)."""

from __future__ import annotations

from docflow.capabilities.base import CapabilityClient
from docflow.core.tracing import traceable_step
from docflow.pipeline.errors import CapabilityError


class TranslatorClient(CapabilityClient):
    service_name = "translator"
    endpoint_setting = "TRANSLATOR_ENDPOINT"

    def __init__(self, endpoint: str, api_key: str = "", region: str = "", **kwargs) -> None:
        super().__init__(endpoint, api_key, **kwargs)
        self.region = region

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.region:
            headers["Ocp-Apim-Subscription-Region"] = self.region
        return headers

    @traceable_step(name="translate_text", run_type="tool", tags=["translation"])
    async def translate(self, text: str, source: str, target: str) -> str:
        response = await self._request(
            "POST",
            "/translate",
            "translate",
            params={"api-version": "3.0", "from": source, "to": target},
            json=[{"Text": text}],
        )
        payload = response.json()
        try:
            return payload[0]["translations"][0]["text"]
        except (IndexError, KeyError, TypeError) as exc:
            raise CapabilityError(
                "translator returned an unexpected payload",
                response_body=response.text[:2000],
            ) from exc
