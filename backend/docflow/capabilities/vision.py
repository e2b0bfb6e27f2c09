"""Image analysis client (tags, caption, objects and read/OCR)."""

from __future__ import annotations

from typing import Any

from docflow.capabilities.base import CapabilityClient
from docflow.core.tracing import traceable_step

FEATURES = "tags,read,objects,caption"


class VisionClient(CapabilityClient):
    service_name = "image analysis"
    endpoint_setting = "VISION_ENDPOINT"

    def __init__(self, endpoint: str, api_key: str = "", api_version: str = "2024-02-01", **kwargs) -> None:
        super().__init__(endpoint, api_key, **kwargs)
        self.api_version = api_version

    @traceable_step(name="analyze_image", run_type="tool", tags=["vision"])
    async def analyze(self, image: bytes) -> dict[str, Any]:
        """Raw analysis result (``captionResult``, ``tagsResult``, ``readResult``...)."""
        response = await self._request(
            "POST",
            "/computervision/imageanalysis:analyze",
            "analyze",
            params={
                "api-version": self.api_version,
                "features": FEATURES,
                "gender-neutral-caption": "true",
            },
            content=image,
            headers={"Content-Type": "application/octet-stream"},
        )
        return response.json()


def summarize_tags(result: dict[str, Any]) -> str:
    """``"car:0.98,road:0.91"`` — tag name and confidence pairs in service order."""
    tags = (result.get("tagsResult") or {}).get("values") or []
    return ",".join(f"{tag.get('name')}:{tag.get('confidence', 0):.2f}" for tag in tags)
