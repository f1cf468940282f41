# turns "what's in my fridge" into a batch of recipe ideas
# the model answers with a JSON array; anything that is not a usable idea is dropped

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import uuid4

from recipe_gateway.core import config
from recipe_gateway.schemas.recipes import RecipeIdea
from recipe_gateway.services.guardrails import PROTEIN_TYPES

logger = logging.getLogger(__name__)

DEFAULT_MEAL_TYPE = "lunch"

MEAL_LABELS = {
    "es": {"breakfast": "desayuno", "lunch": "almuerzo", "dinner": "cena", "snack": "merienda", "dessert": "postre"},
    "en": {"breakfast": "breakfast", "lunch": "lunch", "dinner": "dinner", "snack": "snack", "dessert": "dessert"},
}

PROMPT_LABELS = {
    "es": {"ingredients": "Ingredientes disponibles", "meal": "Para", "vibes": "Preferencias", "servings": "Porciones"},
    "en": {"ingredients": "Available ingredients", "meal": "For", "vibes": "Preferences", "servings": "Servings"},
}

_FENCE = re.compile(r"```(?:json)?", re.I)
_ARRAY = re.compile(r"\[[\s\S]*\]")


def build_ideas_user_prompt(
    ingredients: str,
    meal_type: Optional[str] = None,
    vibes: Optional[List[str]] = None,
    servings: int = 2,
    locale: Optional[str] = None,
) -> str:
    locale = locale or config.DEFAULT_LOCALE
    if locale not in PROMPT_LABELS:
        locale = "es"
    labels = PROMPT_LABELS[locale]
    prompt = f"{labels['ingredients']}: {ingredients.strip()}"
    if meal_type:
        prompt += f". {labels['meal']}: {MEAL_LABELS[locale].get(meal_type, meal_type)}"
    if vibes:
        prompt += f". {labels['vibes']}: {', '.join(vibes)}"
    prompt += f". {labels['servings']}: {servings}"
    return prompt


def _split_ingredients(ingredients: str) -> List[str]:
    return [item.strip() for item in re.split(r"[,\n;]", ingredients) if item.strip()]


def _load_array(content: str) -> Optional[List[Any]]:
    m = _ARRAY.search(_FENCE.sub("", content))
    if not m:
        return None
    try:
        data = json.loads(m.group(0))
    except ValueError:
        return None
    return data if isinstance(data, list) else None


def parse_ideas_response(
    content: str,
    meal_type: Optional[str] = None,
    vibes: Optional[List[str]] = None,
    ingredients: str = "",
    servings: int = 2,
) -> List[RecipeIdea]:
    """Lenient: a broken answer yields [], a broken entry is skipped."""
    data = _load_array(content)
    if data is None:
        logger.warning("ideas response contained no JSON array (%d chars)", len(content))
        return []

    now = datetime.now(timezone.utc)
    base_ingredients = _split_ingredients(ingredients)
    ideas: List[RecipeIdea] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title, description = item.get("title"), item.get("description")
        if not isinstance(title, str) or not isinstance(description, str) or not title.strip():
            continue
        protein = item.get("proteinType")
        ideas.append(
            RecipeIdea(
                id=str(uuid4()),
                title=title.strip(),
                description=description.strip(),
                meal_type=meal_type or DEFAULT_MEAL_TYPE,
                protein_type=protein if protein in PROTEIN_TYPES else "none",
                ingredients=base_ingredients,
                vibes=list(vibes or []),
                servings=servings,
                created_at=now,
            )
        )
    logger.info("parsed %d recipe ideas out of %d entries", len(ideas), len(data))
    return ideas
