# Hugging Face Inference API (text-generation-inference)
# responses are either SSE token events or a single JSON body with generated_text; detected per line

from typing import Any, Dict, Optional

from recipe_gateway.providers.adapter import FrameParser, GatewayAdapter, KeyProbe, RequestShaper, load_frame
from recipe_gateway.providers.base import GenerateRequest, ModelInfo, ProviderDescriptor
from recipe_gateway.providers.catalog import ModelCatalog, max_output_rule
from recipe_gateway.providers.decoders import DONE_SENTINEL, LineDecoder
from recipe_gateway.providers.registry import get_descriptor

DEFAULT_MODEL = "meta-llama/Llama-3.1-70B-Instruct"
DEFAULT_MAX_TOKENS = 2048
WHOAMI_URL = "https://huggingface.co/api/whoami-v2"

PROMPT_TEMPLATE = (
    "<|begin_of_text|><|start_header_id|>system<|end_header_id|>\n"
    "{system}<|eot_id|><|start_header_id|>user<|end_header_id|>\n"
    "{user}<|eot_id|><|start_header_id|>assistant<|end_header_id|>\n"
)


def model_endpoint(descriptor: ProviderDescriptor, model: str) -> str:
    return f"{descriptor.base_url}/{model}"


def build_inputs_body(request: GenerateRequest) -> Dict[str, Any]:
    return {
        "inputs": PROMPT_TEMPLATE.format(system=request.system_prompt, user=request.user_prompt),
        "parameters": {
            "max_new_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": request.temperature,
            "return_full_text": False,
            "stream": True,
        },
    }


def _generated_text(data: Any) -> Optional[str]:
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict) and isinstance(data.get("generated_text"), str):
        return data["generated_text"]
    return None


def parse_line(line: str) -> Optional[str]:
    if line.startswith("data:"):
        payload = line[5:].strip()
        if not payload or payload == DONE_SENTINEL:
            return None
        data = load_frame(payload)
        if data is None:
            # plain-text token streams
            return payload
        if isinstance(data, dict) and isinstance(data.get("token"), dict):
            token = data["token"]
            # the final TGI event repeats the whole text in generated_text; tokens already carried it
            if token.get("special"):
                return None
            text = token.get("text")
            return text if isinstance(text, str) and text else None
        return _generated_text(data)
    return _generated_text(load_frame(line))


CATALOG = ModelCatalog(
    fallback=(
        ModelInfo("meta-llama/Llama-3.1-70B-Instruct", "Llama 3.1 70B Instruct", 128000, 4096, True),
        ModelInfo("meta-llama/Llama-3.1-8B-Instruct", "Llama 3.1 8B Instruct", 128000, 4096, True),
        ModelInfo("mistralai/Mistral-7B-Instruct-v0.3", "Mistral 7B Instruct", 32768, 2048, True),
        ModelInfo("Qwen/Qwen2.5-72B-Instruct", "Qwen 2.5 72B Instruct", 32768, 4096, True),
    ),
    is_free=True,
    max_output=max_output_rule(("mistral", 2048), default=4096),
)


def build_adapter() -> GatewayAdapter:
    return GatewayAdapter(
        descriptor=get_descriptor("huggingface"),
        default_model=DEFAULT_MODEL,
        shaper=RequestShaper(endpoint=model_endpoint, build_body=build_inputs_body),
        frames=FrameParser(decoder=LineDecoder, parse=parse_line),
        catalog=CATALOG,
        key_probe=KeyProbe(url=WHOAMI_URL),
    )
