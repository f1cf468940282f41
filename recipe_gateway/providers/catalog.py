# model catalogs: a static fallback table plus an optional parser for the vendor's live /models listing
# the HTTP side lives in the adapter; everything here is pure and never raises on odd payloads

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple

from recipe_gateway.providers.base import ModelInfo

DEFAULT_CONTEXT_WINDOW = 32768

_VENDOR_PREFIX = re.compile(r"^(meta-llama/|mistralai/|qwen/|deepseek/|accounts/fireworks/models/)", re.I)
_WORD_START = re.compile(r"\b\w", re.ASCII)


def title_words(text: str) -> str:
    return _WORD_START.sub(lambda m: m.group(0).upper(), text)


def format_model_name(model_id: str) -> str:
    """'meta-llama/llama-3.3-70b-versatile' -> 'Llama 3.3 70b Versatile'."""
    return title_words(_VENDOR_PREFIX.sub("", model_id).replace("-", " "))


def max_output_rule(*rules: Tuple[str, int], default: int = 4096) -> Callable[[str], int]:
    """Ordered (substring, tokens) rules; the first substring found in the lowercased id wins."""

    def lookup(model_id: str) -> int:
        lowered = model_id.lower()
        for needle, tokens in rules:
            if needle in lowered:
                return tokens
        return default

    return lookup


Listing = Callable[["ModelCatalog", Any], List[ModelInfo]]


@dataclass(frozen=True)
class ModelCatalog:
    fallback: Tuple[ModelInfo, ...]
    is_free: bool = False
    max_output: Callable[[str], int] = max_output_rule()
    format_name: Callable[[str], str] = format_model_name
    listing: Optional[Listing] = None

    @property
    def live(self) -> bool:
        return self.listing is not None

    def models(self) -> List[ModelInfo]:
        return list(self.fallback)

    def from_listing(self, payload: Any) -> List[ModelInfo]:
        models = self.listing(self, payload) if self.listing else []
        return models or self.models()


def static_models(
    ids: Iterable[str],
    *,
    is_free: bool,
    max_output: Callable[[str], int],
    format_name: Callable[[str], str] = format_model_name,
) -> Tuple[ModelInfo, ...]:
    return tuple(
        ModelInfo(model_id, format_name(model_id), DEFAULT_CONTEXT_WINDOW, max_output(model_id), is_free)
        for model_id in ids
    )


def _entries(payload: Any, key: str) -> List[dict]:
    if not isinstance(payload, dict):
        return []
    items = payload.get(key) or []
    return [item for item in items if isinstance(item, dict) and isinstance(item.get("id"), str)]


def openai_listing(catalog: ModelCatalog, payload: Any) -> List[ModelInfo]:
    models = []
    for model in _entries(payload, "data"):
        model_id = model["id"]
        models.append(
            ModelInfo(
                id=model_id,
                name=catalog.format_name(model_id),
                context_window=model.get("context_window") or model.get("context_length") or DEFAULT_CONTEXT_WINDOW,
                max_output_tokens=model.get("max_output_tokens") or catalog.max_output(model_id),
                is_free=catalog.is_free,
            )
        )
    return sorted(models, key=lambda m: m.name.casefold())
