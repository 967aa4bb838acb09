"""Analysis service proxy routes

POST /analyze, /compare, /compare_llm, /compare_llm_diff, /hash, /qa are
relayed to ANALYSIS_SERVICE_URL with their body and content-type.
"""

from fastapi import APIRouter, Depends, Request, Response
import logging

from doclens.dependencies import get_analysis_proxy
from doclens.services.analysis_proxy import PROXY_ENDPOINTS, AnalysisProxy

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis Proxy"])


def _make_proxy_route(endpoint: str):
    async def proxy_route(request: Request, proxy: AnalysisProxy = Depends(get_analysis_proxy)):
        body = await request.body()
        upstream = await proxy.forward(endpoint, body, request.headers.get("content-type"))
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=upstream.headers,
        )

    proxy_route.__name__ = f"proxy_{endpoint}"
    return proxy_route


for _endpoint in PROXY_ENDPOINTS:
    router.add_api_route(f"/{_endpoint}", _make_proxy_route(_endpoint), methods=["POST"])
