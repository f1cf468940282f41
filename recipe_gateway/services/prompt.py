from typing import Iterable, List, Optional

from recipe_gateway.core import config
from recipe_gateway.schemas.recipes import HistoryTurn

HISTORY_LABELS = {
    "es": {"user": "Usuario", "assistant": "Chef", "header": "Historial reciente", "request": "Nueva petición"},
    "en": {"user": "User", "assistant": "Chef", "header": "Recent history", "request": "New request"},
}


def _labels(locale: Optional[str]) -> dict:
    return HISTORY_LABELS.get(locale or config.DEFAULT_LOCALE, HISTORY_LABELS["es"])


def _render_history(history: Iterable[HistoryTurn], locale: Optional[str]) -> str:
    labels = _labels(locale)
    parts: List[str] = []
    for turn in history:
        content = turn.content.strip()
        if not content:
            continue
        parts.append(f"{labels[turn.role]}: {content}")
    return "\n".join(parts)


def build_user_prompt(message: str, history: Optional[List[HistoryTurn]] = None, locale: Optional[str] = None) -> str:
    # only the most recent turns make it into the prompt
    recent = (history or [])[-config.HISTORY_TURNS:] if config.HISTORY_TURNS > 0 else []
    hist = _render_history(recent, locale)
    if not hist:
        return message
    labels = _labels(locale)
    return f"{labels['header']}:\n{hist}\n\n{labels['request']}: {message}"
