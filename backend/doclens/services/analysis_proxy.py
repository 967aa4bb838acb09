"""
Analysis service proxy
Relays document requests (multipart uploads, JSON questions) to the external
analysis service and hands its response back unchanged.
"""
import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from doclens.config import get_analysis_service_url
from doclens.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

PROXY_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_PROXY_TIMEOUT_SECONDS", "120"))

# endpoint name -> label used in the 502 message
PROXY_ENDPOINTS = {
    "analyze": "Analyze",
    "compare": "Compare",
    "compare_llm": "LLM compare",
    "compare_llm_diff": "LLM diff",
    "hash": "Hash",
    "qa": "QA",
}

# Not relayed: connection-level headers, and headers httpx has already acted on
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "content-length",
    "content-encoding",
}


@dataclass
class UpstreamResponse:
    status_code: int
    headers: Dict[str, str]
    content: bytes


def parse_qa_payload(body: bytes) -> Any:
    """JSON body of a QA request; ``{}`` when empty or not valid JSON."""
    raw = body.decode("utf-8", errors="replace") if body else ""
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}


class AnalysisProxy:
    def __init__(self, base_url: Optional[str] = None, timeout: float = PROXY_TIMEOUT_SECONDS):
        self.base_url = (base_url or get_analysis_service_url()).rstrip("/")
        self.timeout = timeout

    async def forward(self, endpoint: str, body: bytes, content_type: Optional[str]) -> UpstreamResponse:
        """POST body to ``{base_url}/{endpoint}`` and return the upstream response.

        Raises UpstreamUnavailable when the analysis service cannot be reached.
        """
        if endpoint not in PROXY_ENDPOINTS:
            raise ValueError(f"Unknown analysis endpoint: {endpoint}")

        if endpoint == "qa":
            body = json.dumps(parse_qa_payload(body)).encode("utf-8")
            content_type = content_type or "application/json"
        else:
            content_type = content_type or "application/octet-stream"

        url = f"{self.base_url}/{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, content=body, headers={"content-type": content_type})
        except httpx.HTTPError as e:
            logger.error(f"{endpoint} upstream error: {e}")
            raise UpstreamUnavailable(f"{PROXY_ENDPOINTS[endpoint]} service unreachable")

        headers = {
            k: v for k, v in response.headers.items()
            if k.lower() not in HOP_BY_HOP_HEADERS
        }
        return UpstreamResponse(
            status_code=response.status_code,
            headers=headers,
            content=response.content,
        )
