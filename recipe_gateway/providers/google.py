# Google Gemini streamGenerateContent: the response is one JSON array emitted element by element
# the API key travels as ?key= on the URL, so no auth header is sent

from typing import Any, Dict, List, Optional

from recipe_gateway.providers.adapter import FrameParser, GatewayAdapter, KeyProbe, RequestShaper, load_frame
from recipe_gateway.providers.base import GenerateRequest, ModelInfo, ProviderDescriptor, ProviderHTTPError
from recipe_gateway.providers.catalog import ModelCatalog, max_output_rule
from recipe_gateway.providers.decoders import JSONArrayDecoder
from recipe_gateway.providers.registry import get_descriptor

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_MAX_TOKENS = 2048
DEFAULT_CONTEXT_WINDOW = 1000000

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"


def stream_endpoint(descriptor: ProviderDescriptor, model: str) -> str:
    return f"{descriptor.base_url}/models/{model}:streamGenerateContent"


def build_contents_body(request: GenerateRequest) -> Dict[str, Any]:
    # Gemini has no system role here; the system prompt is folded into the user turn
    text = f"{request.system_prompt}\n\n---\n\nUser request: {request.user_prompt}"
    return {
        "contents": [{"role": "user", "parts": [{"text": text}]}],
        "generationConfig": {
            "maxOutputTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": request.temperature,
        },
        "safetySettings": [{"category": c, "threshold": SAFETY_THRESHOLD} for c in SAFETY_CATEGORIES],
    }


def parse_candidate(frame: str) -> Optional[str]:
    data = load_frame(frame)
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("error"), dict):
        code = data["error"].get("code")
        raise ProviderHTTPError(code if isinstance(code, int) else 500, data)
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def models_listing(catalog: ModelCatalog, payload: Any) -> List[ModelInfo]:
    """generateContent-capable Gemini models only; embeddings and the rest are dropped."""
    models = []
    for model in (payload.get("models") or []) if isinstance(payload, dict) else []:
        if not isinstance(model, dict) or not isinstance(model.get("name"), str):
            continue
        if "generateContent" not in (model.get("supportedGenerationMethods") or []):
            continue
        model_id = model["name"].replace("models/", "", 1)
        if "gemini" not in model_id:
            continue
        models.append(
            ModelInfo(
                id=model_id,
                name=model.get("displayName") or model_id,
                context_window=model.get("inputTokenLimit") or DEFAULT_CONTEXT_WINDOW,
                max_output_tokens=model.get("outputTokenLimit") or catalog.max_output(model_id),
                is_free=True,
            )
        )
    return models


CATALOG = ModelCatalog(
    fallback=(
        ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash", 1000000, 8192, True),
        ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash", 1000000, 65536, True),
        ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro", 2000000, 65536, True),
    ),
    is_free=True,
    max_output=max_output_rule(("2.5", 65536), ("2-5", 65536), default=8192),
    listing=models_listing,
)


def build_adapter() -> GatewayAdapter:
    descriptor = get_descriptor("google")
    return GatewayAdapter(
        descriptor=descriptor,
        default_model=DEFAULT_MODEL,
        shaper=RequestShaper(endpoint=stream_endpoint, build_body=build_contents_body, key_in_url=True),
        frames=FrameParser(decoder=JSONArrayDecoder, parse=parse_candidate),
        catalog=CATALOG,
        key_probe=KeyProbe(url=f"{descriptor.base_url}/models"),
    )
