import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from recipe_gateway.core import config
from recipe_gateway.services.relay import (
    CORS_PREFLIGHT_HEADERS,
    RelayRejected,
    check_target,
    error_payload,
    is_streaming,
)

router = APIRouter(tags=["relay"])
logger = logging.getLogger(__name__)


async def _close(upstream: httpx.Response, client: httpx.AsyncClient) -> None:
    await upstream.aclose()
    await client.aclose()


def _buffered(upstream: httpx.Response) -> Response:
    try:
        data = upstream.json()
    except ValueError:
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.headers.get("content-type"),
        )
    return JSONResponse(data, status_code=upstream.status_code)


async def _forward(request: Request, method: str) -> Response:
    try:
        target = check_target(
            request.headers.get("X-Target-URL"),
            request.headers.get("X-Provider"),
            request.headers.get("X-API-Key"),
            require_key=method == "POST",
        )
    except RelayRejected as e:
        logger.warning("relay rejected %s: %s", method, e.message)
        return JSONResponse(error_payload(e.message, e.code), status_code=e.status_code)

    body: Optional[bytes] = await request.body() if method == "POST" else None
    logger.info("relay %s provider=%s host=%s", method, target.provider, target.url.host)

    client = httpx.AsyncClient(timeout=httpx.Timeout(config.READ_TIMEOUT, connect=config.CONNECT_TIMEOUT))
    handed_off = False
    try:
        upstream = await client.send(
            client.build_request(method, target.url, headers=target.upstream_headers(body is not None), content=body),
            stream=True,
        )
        if is_streaming(upstream):
            # piped chunk by chunk; the background task closes upstream once the caller has it all
            handed_off = True
            return StreamingResponse(
                upstream.aiter_bytes(),
                status_code=upstream.status_code,
                media_type=upstream.headers.get("content-type", "text/event-stream"),
                headers={"Cache-Control": "no-cache"},
                background=BackgroundTask(_close, upstream, client),
            )
        await upstream.aread()
        return _buffered(upstream)
    except httpx.TimeoutException:
        logger.warning("relay upstream timed out host=%s", target.url.host)
        return JSONResponse(error_payload("Upstream provider timed out", "TIMEOUT"), status_code=504)
    except httpx.TransportError as e:
        logger.warning("relay could not reach host=%s: %s", target.url.host, e)
        return JSONResponse(
            error_payload("Network error - could not reach provider", "NETWORK_ERROR"), status_code=502
        )
    except Exception:
        logger.exception("relay failed host=%s", target.url.host)
        return JSONResponse(error_payload("Internal proxy error", "PROXY_ERROR"), status_code=500)
    finally:
        if not handed_off:
            await client.aclose()


@router.post("/relay")
async def relay_post(request: Request):
    return await _forward(request, "POST")


@router.get("/relay")
async def relay_get(request: Request):
    return await _forward(request, "GET")


@router.options("/relay")
async def relay_preflight():
    return Response(status_code=204, headers=CORS_PREFLIGHT_HEADERS)
