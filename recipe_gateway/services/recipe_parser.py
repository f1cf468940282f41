"""Best-effort conversion of generated recipe markdown into a ParsedRecipe.

The text comes from a model, so nothing here is a strict grammar: every
extractor is an ordered list of rules tried in turn, and a missing section
degrades to an empty field or a default instead of an exception.

Sections are found by a line scan for level 2/3 headings whose normalized text
matches a synonym (active locale first), and run until the next heading of the
same or a higher level.
"""

import math
import random
import re
import string
import time
import unicodedata
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from recipe_gateway.core import config
from recipe_gateway.schemas.recipes import Ingredient, Nutrients, ParsedRecipe

DEFAULT_PREP_MINUTES = 15
DEFAULT_COOK_MINUTES = 20
DEFAULT_SERVINGS = 2
# shares of a lone "total time"; each side is rounded on its own
PREP_SHARE = 0.3
COOK_SHARE = 0.7

DEFAULT_TITLES = {"es": "Receta Generada", "en": "Generated Recipe"}

SECTION_SYNONYMS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "ingredients": {
        "es": ("ingredientes",),
        "en": ("ingredients", "ingredient list"),
    },
    "instructions": {
        "es": ("instrucciones", "preparacion", "pasos", "elaboracion", "modo de preparacion"),
        "en": ("instructions", "preparation", "steps", "method", "directions"),
    },
    "tips": {
        "es": ("consejos", "consejo", "notas", "tips"),
        "en": ("tips", "chef's tip", "chef's tips", "notes"),
    },
    "notices": {
        "es": ("avisos", "aviso", "alergenos", "advertencias"),
        "en": ("notices", "allergens", "allergen notice", "warnings"),
    },
    "nutrition": {
        "es": ("nutricion", "valores nutricionales", "informacion nutricional"),
        "en": ("nutrition", "nutritional values", "nutrition facts"),
    },
}

_I = re.IGNORECASE
_HEADING = re.compile(r"^\s*(#{1,6})(?!#)\s*(.*?)\s*#*\s*$")
_EDGE_NOISE = re.compile(r"^[\W_]+|[\W_]+$")
_TITLE_DECORATION = {"So", "Sk", "Mn", "Me", "Cf", "Zs", "Co", "Cs"}

_BULLET_ITEM = re.compile(r"^\s*(?:[-•]|\*(?!\*))\s*(.+?)\s*$")
_NUMBERED_ITEM = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$")


# --- text helpers ---

def fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_heading(text: str) -> str:
    text = fold(text.replace("’", "'").replace("*", "")).lower()
    return _EDGE_NOISE.sub("", text).strip()


def clean_title(text: str) -> str:
    text = text.strip()
    start = 0
    while start < len(text) and (unicodedata.category(text[start]) in _TITLE_DECORATION or text[start] in "*_#"):
        start += 1
    return text[start:].strip().strip("*_").strip()


def _matches_synonym(title: str, synonym: str) -> bool:
    if title == synonym:
        return True
    return title.startswith(synonym) and not title[len(synonym)].isalpha()


def _locale(locale: Optional[str]) -> str:
    locale = locale or config.DEFAULT_LOCALE
    return locale if locale in DEFAULT_TITLES else "es"


def _synonyms(kind: str, locale: str) -> List[str]:
    by_locale = SECTION_SYNONYMS[kind]
    ordered = [locale] + [other for other in by_locale if other != locale]
    return [syn for loc in ordered for syn in by_locale[loc]]


def is_section_heading(text: str) -> bool:
    title = normalize_heading(text)
    return any(
        _matches_synonym(title, syn) for groups in SECTION_SYNONYMS.values() for syns in groups.values() for syn in syns
    )


# --- sections ---

def _headings(lines: Sequence[str]) -> List[Tuple[int, int, str]]:
    found = []
    for index, line in enumerate(lines):
        m = _HEADING.match(line)
        if m:
            found.append((index, len(m.group(1)), normalize_heading(m.group(2))))
    return found


def extract_section(markdown: str, kind: str, locale: Optional[str] = None) -> Optional[str]:
    lines = markdown.splitlines()
    headings = _headings(lines)
    for synonym in _synonyms(kind, _locale(locale)):
        for position, (index, level, title) in enumerate(headings):
            if level not in (2, 3) or not _matches_synonym(title, synonym):
                continue
            end = len(lines)
            for next_index, next_level, _ in headings[position + 1:]:
                if next_level <= level:
                    end = next_index
                    break
            return "\n".join(lines[index + 1:end]).strip()
    return None


def list_items(section: str, numbered: bool = True) -> List[str]:
    items = []
    for line in section.splitlines():
        m = _NUMBERED_ITEM.match(line) if numbered else None
        m = m or _BULLET_ITEM.match(line)
        if m and m.group(1).strip():
            items.append(m.group(1).strip())
    return items


# --- title ---

_BOLD_TITLE_RULES: Tuple[Pattern[str], ...] = (
    re.compile(r"\*\*(?:Receta|Recipe|T[ií]tulo|Title)\s*:?\s*\*\*\s*(.+)$", re.M | _I),
    re.compile(r"\*\*(?:Receta|Recipe|T[ií]tulo|Title)[:\s]+(.+?)\*\*", _I),
)


def extract_title(markdown: str, locale: Optional[str] = None) -> str:
    for line in markdown.splitlines():
        m = _HEADING.match(line)
        if m and len(m.group(1)) == 2 and not is_section_heading(m.group(2)):
            title = clean_title(m.group(2))
            if title:
                return title

    for rule in _BOLD_TITLE_RULES:
        m = rule.search(markdown)
        if m and clean_title(m.group(1)):
            return clean_title(m.group(1))

    for line in markdown.splitlines():
        if line.strip():
            title = clean_title(re.sub(r"^\s*#+\s*", "", line))
            if title:
                return title
            break
    return DEFAULT_TITLES[_locale(locale)]


# --- timings and servings ---

_SEP = r"[\s:*|]*"

PREP_RULES: Tuple[Pattern[str], ...] = (
    re.compile(rf"preparaci[oó]n{_SEP}(\d+)\s*(?:min|minutos?)", _I),
    re.compile(rf"\bprep(?:aration)?(?:\s*time)?{_SEP}(\d+)\s*(?:min|minutes?)", _I),
    re.compile(rf"⏱️?\s*preparaci[oó]n{_SEP}(\d+)", _I),
)

COOK_RULES: Tuple[Pattern[str], ...] = (
    re.compile(rf"cocci[oó]n{_SEP}(\d+)\s*(?:min|minutos?)", _I),
    re.compile(rf"\bcook(?:ing)?(?:\s*time)?{_SEP}(\d+)\s*(?:min|minutes?)", _I),
    re.compile(rf"⏱️?\s*cocci[oó]n{_SEP}(\d+)", _I),
    re.compile(rf"\btiempo{_SEP}(\d+)\s*(?:min|minutos?)", _I),
)

TOTAL_RULE = re.compile(rf"(?:tiempo\s*total|total\s*time){_SEP}(\d+)\s*(?:min|minutos?|minutes?)", _I)

SERVINGS_RULES: Tuple[Pattern[str], ...] = (
    re.compile(r"(\d+)\s*(?:porciones?|raciones?|servings?|personas?)", _I),
    re.compile(r"para\s*(\d+)\s*(?:personas?|porciones?)", _I),
    re.compile(r"serves?\s*(\d+)", _I),
    re.compile(r"👥\s*(\d+)"),
    re.compile(r"(?:servings?|porciones?|raciones?)[\s:*]*(\d+)", _I),
)


def _first_int(rules: Sequence[Pattern[str]], text: str) -> Optional[int]:
    for rule in rules:
        m = rule.search(text)
        if m:
            return int(m.group(1))
    return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _split_total(total: int) -> Tuple[int, int]:
    """Half-up rounding of each float share, so the sum can be off by one.

    Float products decide ties: 45 * 0.7 is 31.499999999999996, giving 14/31.
    """
    return _round_half_up(total * PREP_SHARE), _round_half_up(total * COOK_SHARE)


def extract_times(markdown: str) -> Tuple[int, int]:
    prep = _first_int(PREP_RULES, markdown)
    cook = _first_int(COOK_RULES, markdown)
    if prep is None and cook is None:
        m = TOTAL_RULE.search(markdown)
        if m:
            total = int(m.group(1))
            return _split_total(total)
    return (
        DEFAULT_PREP_MINUTES if prep is None else prep,
        DEFAULT_COOK_MINUTES if cook is None else cook,
    )


def extract_servings(markdown: str) -> int:
    servings = _first_int(SERVINGS_RULES, markdown)
    return DEFAULT_SERVINGS if servings is None else servings


# --- ingredients ---

_QTY = r"(?:\d+(?:[.,/]\d+)?|[½¼¾⅓⅔⅛])"
_UNITS = (
    r"kg|g|gr|grs|gramos?|grams?|mg|ml|cl|dl|l|litros?|liters?|lb|lbs|oz"
    r"|tazas?|cups?|cucharadas?|cucharaditas?|tbsp|tsp|unidad(?:es)?|piezas?|pieces?"
    r"|dientes?|cloves?|pizcas?|pinch(?:es)?|rodajas?|slices?|latas?|cans?"
)

# each rule yields named groups `amount` and `name`; the first match wins
INGREDIENT_RULES: Tuple[Pattern[str], ...] = (
    re.compile(rf"^(?P<amount>{_QTY}\s*(?:{_UNITS}))\s+(?:(?:de|of)\s+)?(?P<name>.+)$", _I),
    re.compile(rf"^(?P<amount>{_QTY})\s+(?P<name>.+)$"),
    re.compile(r"^(?P<name>.+?),?\s+(?P<amount>al\s+gusto|to\s+taste)\.?$", _I),
    re.compile(r"^(?P<name>[^()]+?)\s*\((?P<amount>[^()]+)\)$"),
)

ALLERGEN_MARKER = re.compile(r"⚠|al[eé]rgeno|allergen", _I)
_ALLERGEN_NOTE = re.compile(r"\([^)]*(?:⚠|al[eé]rgeno|allergen)[^)]*\)", _I)
_WARNING_SIGN = re.compile(r"⚠️?")


def parse_ingredient_line(line: str) -> Ingredient:
    is_allergen = ALLERGEN_MARKER.search(line) is not None
    clean = _WARNING_SIGN.sub("", _ALLERGEN_NOTE.sub("", line))
    clean = re.sub(r"\s+", " ", clean).strip()
    for rule in INGREDIENT_RULES:
        m = rule.match(clean)
        if m:
            return Ingredient(name=m.group("name").strip(), amount=m.group("amount").strip(), is_allergen=is_allergen)
    return Ingredient(name=clean, amount="", is_allergen=is_allergen)


def extract_ingredients(markdown: str, locale: Optional[str] = None) -> List[Ingredient]:
    section = extract_section(markdown, "ingredients", locale)
    if not section:
        return []
    return [parse_ingredient_line(item) for item in list_items(section)]


def extract_instructions(markdown: str, locale: Optional[str] = None) -> List[str]:
    section = extract_section(markdown, "instructions", locale)
    return list_items(section) if section else []


# --- tips, notices, nutrition ---

def _flatten(section: Optional[str]) -> Optional[str]:
    if not section:
        return None
    lines = []
    for line in section.splitlines():
        m = _BULLET_ITEM.match(line)
        text = m.group(1) if m else line.strip()
        if text:
            lines.append(text)
    return " ".join(lines) or None


def extract_tips(markdown: str, locale: Optional[str] = None) -> Optional[str]:
    return _flatten(extract_section(markdown, "tips", locale))


ALLERGEN_NOTICE_RULES: Tuple[Pattern[str], ...] = (
    re.compile(r"⚠️?\s*(?:alerta|warning|al[eé]rgenos?)[:\s]*(.+?)$", re.M | _I),
    re.compile(r"(?:contiene|contains)[:\s]*(.+?)$", re.M | _I),
)


def extract_allergen_notice(markdown: str, locale: Optional[str] = None) -> Optional[str]:
    notice = _flatten(extract_section(markdown, "notices", locale))
    if notice:
        return notice
    for rule in ALLERGEN_NOTICE_RULES:
        m = rule.search(markdown)
        if m and m.group(1).strip():
            return m.group(1).strip()
    return None


NUTRIENT_RULES: Dict[str, Tuple[Pattern[str], ...]] = {
    "calories": (re.compile(r"calor[ií]as?[\s:*]*(\d+)", _I), re.compile(r"calories?[\s:*]*(\d+)", _I)),
    "protein": (re.compile(r"prote[ií]nas?[\s:*]*(\d+)", _I), re.compile(r"proteins?[\s:*]*(\d+)", _I)),
    "carbs": (re.compile(r"carbohidratos?[\s:*]*(\d+)", _I), re.compile(r"carbs?[\s:*]*(\d+)", _I)),
    "fat": (re.compile(r"grasas?[\s:*]*(\d+)", _I), re.compile(r"fats?[\s:*]*(\d+)", _I)),
}


def extract_nutrients(markdown: str, locale: Optional[str] = None) -> Optional[Nutrients]:
    section = extract_section(markdown, "nutrition", locale)
    if not section:
        return None
    values = {name: _first_int(rules, section) for name, rules in NUTRIENT_RULES.items()}
    if not any(values.values()):
        return None
    return Nutrients(**{name: value or 0 for name, value in values.items()})


# --- misc ---

_STRUCTURE_INGREDIENTS = re.compile(r"ingredientes?|ingredients?", _I)
_STRUCTURE_STEPS = re.compile(r"instrucciones?|instructions?|pasos?|steps?|preparaci[oó]n", _I)


def has_recipe_structure(markdown: str) -> bool:
    return bool(_STRUCTURE_INGREDIENTS.search(markdown) and _STRUCTURE_STEPS.search(markdown))


_STEP_MINUTES = re.compile(r"(\d+)\s*(?:minutos?|minutes?|mins?)\b", _I)
_STEP_HOURS = re.compile(r"(\d+)\s*(?:horas?|hours?|hrs?)\b", _I)


def extract_step_minutes(instruction: str) -> Optional[int]:
    """Timer length for one step: '1 hora 30 minutos' -> 90, 'Hornea 25 min' -> 25."""
    minutes = _STEP_MINUTES.search(instruction)
    hours = _STEP_HOURS.search(instruction)
    if not minutes and not hours:
        return None
    return (int(hours.group(1)) * 60 if hours else 0) + (int(minutes.group(1)) if minutes else 0)


def generate_recipe_id(now: Callable[[], float] = time.time) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"recipe-{int(now() * 1000)}-{suffix}"


def parse_recipe(
    markdown: str,
    provider: Optional[str] = None,
    prompt_id: Optional[str] = None,
    locale: Optional[str] = None,
) -> ParsedRecipe:
    prep, cook = extract_times(markdown)
    return ParsedRecipe(
        id=generate_recipe_id(),
        title=extract_title(markdown, locale),
        prep_time_minutes=prep,
        cook_time_minutes=cook,
        servings=extract_servings(markdown),
        ingredients=extract_ingredients(markdown, locale),
        instructions=extract_instructions(markdown, locale),
        tips=extract_tips(markdown, locale),
        allergen_notice=extract_allergen_notice(markdown, locale),
        nutrients=extract_nutrients(markdown, locale),
        provider=provider,
        generated_at=datetime.now(timezone.utc),
        prompt_id=prompt_id,
    )
