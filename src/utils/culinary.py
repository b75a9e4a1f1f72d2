"""Culinary vocabulary shared by the classifier, variety tracker and prompt assembler.

Keyword tables are matched against lower-cased text on word boundaries. Rotation
lists are ordered: variety suggestions always take the first entry that is not
being avoided, so their order is part of the observable behaviour.
"""

import re
from typing import Iterable

STOP_WORDS = frozenset({"with", "and", "the", "a", "an", "in", "on", "for", "to", "of", "by", "or"})

# Words and dish names models reach for too often; tracked even when tokenizing would split them
OVERUSED_PHRASES = (
    "herb-infused",
    "bliss",
    "golden",
    "crispy",
    "rustic",
    "silky",
    "heavenly",
    "divine",
    "perfect",
    "ultimate",
    "artisan",
    "gourmet",
    "sublime",
    "osso-buco",
    "coq-au-vin",
    "wellington",
    "beef-wellington",
    "rogan-josh",
    "bourguignon",
    "cassoulet",
    "bouillabaisse",
    "tagine",
    "carbonara",
    "risotto",
    "paella",
    "ratatouille",
    "tikka-masala",
)

CUISINE_ROTATION = (
    "british",
    "italian",
    "french",
    "indian",
    "thai",
    "mexican",
    "chinese",
    "japanese",
    "greek",
    "spanish",
    "middle eastern",
)

TECHNIQUE_ROTATION = (
    "roasting",
    "braising",
    "pasta",
    "stir-frying",
    "grilling",
    "curry",
    "soup",
    "salad",
    "risotto",
    "stew",
)

# Wider list used when suggesting a batch of recipe titles
SUGGESTION_CUISINES = CUISINE_ROTATION + (
    "korean",
    "vietnamese",
    "moroccan",
    "turkish",
    "caribbean",
)

CUISINE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "british": ("british", "english", "scottish", "welsh", "sunday roast", "pie", "fish and chips"),
    "italian": ("italian", "pasta", "risotto", "carbonara", "bolognese", "lasagne", "lasagna", "pesto", "gnocchi"),
    "french": ("french", "provencal", "bourguignon", "coq au vin", "cassoulet", "ratatouille", "gratin"),
    "indian": ("indian", "curry", "tikka", "masala", "dal", "dhal", "biryani", "tandoori", "rogan josh"),
    "thai": ("thai", "pad thai", "green curry", "red curry", "tom yum", "lemongrass"),
    "mexican": ("mexican", "taco", "tacos", "burrito", "enchilada", "enchiladas", "quesadilla", "mole", "chipotle"),
    "chinese": ("chinese", "szechuan", "sichuan", "cantonese", "kung pao", "dim sum", "chow mein"),
    "japanese": ("japanese", "teriyaki", "miso", "ramen", "sushi", "katsu", "tempura"),
    "greek": ("greek", "souvlaki", "moussaka", "tzatziki", "feta"),
    "spanish": ("spanish", "paella", "tapas", "chorizo", "gazpacho"),
    "middle eastern": ("middle eastern", "lebanese", "shawarma", "falafel", "hummus", "za'atar", "tagine"),
    "korean": ("korean", "kimchi", "bulgogi", "gochujang", "bibimbap"),
    "vietnamese": ("vietnamese", "pho", "banh mi"),
    "moroccan": ("moroccan", "harissa", "ras el hanout"),
}

TECHNIQUE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "roasting": ("roast", "roasted", "roasting"),
    "braising": ("braise", "braised", "braising", "slow-cooked", "slow cooked"),
    "pasta": ("pasta", "spaghetti", "linguine", "penne", "tagliatelle", "rigatoni", "fettuccine", "lasagne"),
    "stir-frying": ("stir-fry", "stir fry", "stir-fried", "stir fried", "wok"),
    "grilling": ("grill", "grilled", "grilling", "bbq", "barbecue", "chargrilled"),
    "curry": ("curry", "curries"),
    "soup": ("soup", "broth", "chowder", "bisque"),
    "salad": ("salad",),
    "risotto": ("risotto",),
    "stew": ("stew", "casserole", "hotpot"),
    "pan-searing": ("pan-seared", "pan seared", "seared"),
    "baking": ("bake", "baked", "baking"),
    "frying": ("fried", "deep-fried", "fritters"),
    "poaching": ("poach", "poached"),
    "steaming": ("steam", "steamed"),
}

MAIN_INGREDIENTS = (
    "chicken", "beef", "pork", "lamb", "duck", "turkey", "sausage", "bacon", "chorizo",
    "salmon", "cod", "sea bass", "tuna", "haddock", "prawns", "shrimp", "mussels", "scallops", "fish",
    "tofu", "halloumi", "paneer", "eggs", "mushrooms", "aubergine", "eggplant", "courgette",
    "chickpeas", "lentils", "beans", "rice", "noodles", "potatoes", "sweet potato", "cauliflower",
    "spinach", "tomatoes", "pumpkin", "squash",
)

FLAVOR_PROFILES = (
    "spicy", "smoky", "tangy", "sweet", "savoury", "savory", "zesty", "herby",
    "garlicky", "umami", "creamy", "fresh", "rich", "fiery", "aromatic", "sour",
)

OCCASIONS = (
    "dinner party", "date night", "weeknight", "weekend", "lunch", "breakfast", "brunch",
    "picnic", "christmas", "thanksgiving", "birthday", "party", "family dinner", "sunday lunch",
)

MOODS = ("comfort", "cosy", "cozy", "light", "healthy", "indulgent", "hearty", "warming", "fancy", "impressive")

TIME_HINT_PATTERN = re.compile(
    r"\b(quick|fast|speedy|easy|slow[- ]cooked|overnight|(?:under|in)\s+\d+\s*(?:min(?:ute)?s?|hours?)|\d+\s*(?:min(?:ute)?s?|hours?))\b"
)


def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"(?<![a-z]){re.escape(keyword)}(?![a-z])", text) is not None


def find_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Return the keywords present in text, in keyword order, without duplicates."""
    lowered = text.lower()
    return [kw for kw in dict.fromkeys(keywords) if _contains(lowered, kw)]


def _find_grouped(text: str, table: dict[str, tuple[str, ...]]) -> list[str]:
    lowered = text.lower()
    return [name for name, keywords in table.items() if any(_contains(lowered, kw) for kw in keywords)]


def detect_cuisines(text: str) -> list[str]:
    return _find_grouped(text, CUISINE_KEYWORDS)


def detect_techniques(text: str) -> list[str]:
    return _find_grouped(text, TECHNIQUE_KEYWORDS)


def detect_time_hints(text: str) -> list[str]:
    return list(dict.fromkeys(m.group(0) for m in TIME_HINT_PATTERN.finditer(text.lower())))


def title_words(title: str) -> list[str]:
    """Tokenize a recipe title into trackable words.

    Splits on whitespace and hyphens, lower-cases, drops stop-words, words of two
    characters or fewer and anything non-alphabetic, then appends any overused
    culinary phrase found in the title. Duplicates within one title are dropped.

    Example:
        >>> title_words("Golden Herb-Infused Chicken with Crispy Potatoes")
        ['golden', 'herb', 'infused', 'chicken', 'crispy', 'potatoes', 'herb-infused']
    """
    lowered = title.lower().strip()
    words = [w for w in re.split(r"[\s\-]+", lowered) if len(w) > 2 and w not in STOP_WORDS and w.isalpha()]

    hyphenated = re.sub(r"\s+", "-", lowered)
    for phrase in OVERUSED_PHRASES:
        if "-" in phrase:
            if _contains(hyphenated, phrase):
                words.append(phrase)
        elif _contains(lowered, phrase):
            words.append(phrase)

    return list(dict.fromkeys(words))
