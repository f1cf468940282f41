# the single adapter implementation: one instance per vendor, composed from three small strategies
# (request shaping, frame parsing, model catalog) plus a key probe; holds no mutable state

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

import httpx

from recipe_gateway.core import config
from recipe_gateway.providers.base import (
    GenerateOptions,
    GenerateRequest,
    KeyValidation,
    ModelInfo,
    ProviderDescriptor,
    ProviderHTTPError,
    StreamChunk,
)
from recipe_gateway.providers.catalog import ModelCatalog
from recipe_gateway.providers.decoders import StreamDecoder
from recipe_gateway.providers.headers import auth_headers_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestShaper:
    endpoint: Callable[[ProviderDescriptor, str], str]
    build_body: Callable[[GenerateRequest], Dict[str, Any]]
    # Google authenticates with ?key= on the URL instead of a header
    key_in_url: bool = False


@dataclass(frozen=True)
class FrameParser:
    decoder: Callable[[], StreamDecoder]
    # returns the text carried by one frame, None for frames without text;
    # raises ProviderHTTPError for in-band error frames
    parse: Callable[[str], Optional[str]]


@dataclass(frozen=True)
class KeyProbe:
    url: str
    method: str = "GET"
    body: Optional[Dict[str, Any]] = field(default=None, compare=False)
    # a 400 to a deliberately tiny request still proves the key was accepted
    accept_bad_request: bool = False


def error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def vendor_message(body: Any) -> Optional[str]:
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str) and err:
            return err
        if isinstance(body.get("message"), str):
            return body["message"]
    return None


class GatewayAdapter:
    def __init__(
        self,
        descriptor: ProviderDescriptor,
        default_model: str,
        shaper: RequestShaper,
        frames: FrameParser,
        catalog: ModelCatalog,
        key_probe: KeyProbe,
    ) -> None:
        self.descriptor = descriptor
        self.default_model = default_model
        self.shaper = shaper
        self.frames = frames
        self.catalog = catalog
        self.key_probe = key_probe

    def __repr__(self) -> str:
        return f"<GatewayAdapter {self.descriptor.id}>"

    def needs_relay(self) -> bool:
        return self.descriptor.requires_relay

    def get_endpoint_url(self, model: Optional[str] = None) -> str:
        return self.shaper.endpoint(self.descriptor, model or self.default_model)

    def build_request(
        self, system_prompt: str, user_prompt: str, options: Optional[GenerateOptions] = None
    ) -> GenerateRequest:
        options = options or GenerateOptions()
        return GenerateRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=options.model or self.default_model,
            max_tokens=options.max_tokens,
            temperature=config.DEFAULT_TEMPERATURE if options.temperature is None else options.temperature,
        )

    def route(self, target_url: str, api_key: str) -> Tuple[str, Dict[str, str]]:
        """Resolve (url, headers) for a vendor call, via the relay when the descriptor says so."""
        if self.shaper.key_in_url:
            target_url = str(httpx.URL(target_url).copy_set_param("key", api_key))
        if self.needs_relay():
            headers = {"X-Target-URL": target_url, "X-Provider": self.descriptor.id}
            if not self.shaper.key_in_url:
                headers["X-API-Key"] = api_key
            return config.RELAY_URL, headers
        if self.shaper.key_in_url:
            return target_url, {}
        return target_url, auth_headers_for(self.descriptor.id, api_key).as_dict()

    def _parse(self, frame: str) -> Optional[str]:
        try:
            return self.frames.parse(frame)
        except ProviderHTTPError as e:
            raise ProviderHTTPError(e.status, e.body, self.descriptor.id) from None

    async def generate_recipe(
        self,
        system_prompt: str,
        user_prompt: str,
        api_key: str,
        options: Optional[GenerateOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        request = self.build_request(system_prompt, user_prompt, options)
        url, headers = self.route(self.get_endpoint_url(request.model), api_key)
        payload = self.shaper.build_body(request)
        decoder = self.frames.decoder()

        started = time.monotonic()
        logger.info("generation started provider=%s model=%s relay=%s", self.descriptor.id, request.model, self.needs_relay())
        timeout = httpx.Timeout(config.READ_TIMEOUT, connect=config.CONNECT_TIMEOUT)
        async with httpx.AsyncClient(timeout=timeout) as client:
            async with client.stream("POST", url, json=payload, headers=headers) as r:
                if r.is_error:
                    await r.aread()
                    raise ProviderHTTPError(r.status_code, error_body(r), self.descriptor.id)
                async for data in r.aiter_bytes():
                    for frame in decoder.feed(data):
                        text = self._parse(frame)
                        if text:
                            yield StreamChunk(text)
                for frame in decoder.flush():
                    text = self._parse(frame)
                    if text:
                        yield StreamChunk(text)
        logger.info("generation finished provider=%s in %.2fs", self.descriptor.id, time.monotonic() - started)
        yield StreamChunk("", done=True)

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        api_key: str,
        options: Optional[GenerateOptions] = None,
    ) -> str:
        acc: List[str] = []
        async for chunk in self.generate_recipe(system_prompt, user_prompt, api_key, options):
            acc.append(chunk.content)
        return "".join(acc)

    async def validate_api_key(self, api_key: str) -> KeyValidation:
        probe = self.key_probe
        url, headers = self.route(probe.url, api_key)
        timeout = httpx.Timeout(config.REQUEST_TIMEOUT, connect=config.CONNECT_TIMEOUT)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                r = await client.request(probe.method, url, headers=headers, json=probe.body)
        except httpx.HTTPError as e:
            return KeyValidation(False, str(e) or type(e).__name__)

        if r.is_success or (probe.accept_bad_request and r.status_code == 400):
            return KeyValidation(True)
        return KeyValidation(False, vendor_message(error_body(r)) or f"HTTP {r.status_code}")

    async def list_models(self, api_key: Optional[str] = None) -> List[ModelInfo]:
        if not api_key or not self.catalog.live:
            return self.catalog.models()

        url, headers = self.route(f"{self.descriptor.base_url}/models", api_key)
        timeout = httpx.Timeout(config.REQUEST_TIMEOUT, connect=config.CONNECT_TIMEOUT)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                r = await client.get(url, headers=headers)
            if r.is_error:
                logger.warning("model listing failed provider=%s status=%s, using static table", self.descriptor.id, r.status_code)
                return self.catalog.models()
            return self.catalog.from_listing(r.json())
        except Exception as e:
            logger.warning("model listing failed provider=%s: %s, using static table", self.descriptor.id, e)
            return self.catalog.models()


def load_frame(frame: str) -> Any:
    """json.loads that yields None for malformed frames, which are skipped."""
    try:
        return json.loads(frame)
    except ValueError:
        return None
