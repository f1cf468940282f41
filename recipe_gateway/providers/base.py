# declares the provider contract every vendor adapter satisfies, plus the value objects that cross it
# lets the service layer treat "streamed generation" the same way for every vendor

from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Protocol, Tuple


class ProviderHTTPError(Exception):
    """Raw vendor failure: a non-2xx response or an error frame inside a stream.

    Adapters never translate it; the error mapper turns it into a canonical error.
    """

    def __init__(self, status: int, body: Any = None, provider: Optional[str] = None) -> None:
        self.status = status
        self.body = body
        self.provider = provider
        super().__init__(f"{provider or 'provider'} returned HTTP {status}")


@dataclass(frozen=True)
class ProviderDescriptor:
    id: str
    name: str
    base_url: str
    is_free: bool
    requires_relay: bool
    free_models: Tuple[str, ...] = ()
    documentation: str = ""
    dashboard_url: str = ""


@dataclass(frozen=True)
class GenerateOptions:
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


@dataclass(frozen=True)
class GenerateRequest:
    system_prompt: str
    user_prompt: str
    model: str
    max_tokens: Optional[int]
    temperature: float


@dataclass(frozen=True)
class StreamChunk:
    content: str
    done: bool = False


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    context_window: int
    max_output_tokens: int
    is_free: bool


@dataclass(frozen=True)
class KeyValidation:
    valid: bool
    error: Optional[str] = None


class ProviderAdapter(Protocol):
    descriptor: ProviderDescriptor
    default_model: str

    def generate_recipe(
        self,
        system_prompt: str,
        user_prompt: str,
        api_key: str,
        options: Optional[GenerateOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream text chunks, ending with exactly one empty chunk marked done."""
        ...

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        api_key: str,
        options: Optional[GenerateOptions] = None,
    ) -> str:
        ...

    async def validate_api_key(self, api_key: str) -> KeyValidation:
        ...

    async def list_models(self, api_key: Optional[str] = None) -> List[ModelInfo]:
        ...

    def get_endpoint_url(self, model: Optional[str] = None) -> str:
        ...

    def needs_relay(self) -> bool:
        ...
