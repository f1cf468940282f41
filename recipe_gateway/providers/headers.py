# vendor auth headers as one closed struct, assembled once per call
# shared by adapters calling a vendor directly and by the relay reissuing a request upstream

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from recipe_gateway.core import config

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class AuthHeaders:
    name: str
    value: str
    extra: Tuple[Tuple[str, str], ...] = ()

    def as_dict(self) -> Dict[str, str]:
        headers = {self.name: self.value}
        headers.update(self.extra)
        return headers


def auth_headers_for(provider_id: Optional[str], api_key: str) -> AuthHeaders:
    if provider_id == "anthropic":
        return AuthHeaders("x-api-key", api_key, (("anthropic-version", ANTHROPIC_VERSION),))
    if provider_id == "openrouter":
        return AuthHeaders(
            "Authorization",
            f"Bearer {api_key}",
            (("HTTP-Referer", config.APP_REFERER), ("X-Title", config.APP_TITLE)),
        )
    return AuthHeaders("Authorization", f"Bearer {api_key}")
