"""Human-readable task identifiers (Color + Animal + City)."""

import random
from collections.abc import Set

COLORS = [
    "Red", "Blue", "Green", "Gold", "Silver", "Amber", "Azure", "Black", "White", "Coral",
    "Crimson", "Cyan", "Emerald", "Fuchsia", "Gray", "Indigo", "Ivory", "Jade", "Lemon", "Lilac",
    "Lime", "Magenta", "Maroon", "Mint", "Navy", "Olive", "Orange", "Orchid", "Peach", "Pearl",
    "Pink", "Plum", "Purple", "Rose", "Ruby", "Rust", "Sage", "Sand", "Scarlet", "Slate",
    "Snow", "Steel", "Teal", "Topaz", "Turquoise", "Violet", "Wine", "Onyx", "Cobalt", "Honey",
    "Copper", "Bronze", "Saffron", "Cerise", "Mauve", "Tan", "Khaki", "Charcoal", "Cream", "Blush",
]  # fmt: skip

ANIMALS = [
    "Tiger", "Eagle", "Wolf", "Bear", "Falcon", "Hawk", "Lion", "Shark", "Whale", "Cobra",
    "Panda", "Fox", "Otter", "Raven", "Lynx", "Bison", "Crane", "Drake", "Gecko", "Heron",
    "Ibis", "Jaguar", "Koala", "Lemur", "Moose", "Newt", "Owl", "Puma", "Quail", "Robin",
    "Seal", "Toucan", "Viper", "Wren", "Yak", "Zebra", "Parrot", "Salmon", "Mantis", "Hornet",
    "Badger", "Camel", "Dingo", "Ferret", "Gorilla", "Hyena", "Iguana", "Jackal", "Kite", "Lark",
    "Marten", "Narwhal", "Osprey", "Pelican", "Rhino", "Stork", "Turtle", "Urchin", "Vulture",
    "Wombat",
]  # fmt: skip

CITIES = [
    "Paris", "Tokyo", "Cairo", "Milan", "Seoul", "Lima", "Oslo", "Rome", "Baku", "Doha",
    "Dublin", "Kyoto", "Lagos", "Minsk", "Nairobi", "Perth", "Quito", "Riga", "Sofia", "Tunis",
    "Vienna", "Warsaw", "Zurich", "Athens", "Berlin", "Bogota", "Denver", "Hanoi", "Jakarta",
    "Lisbon", "Madrid", "Naples", "Osaka", "Prague", "Salem", "Taipei", "Utrecht", "Venice",
    "Xiamen", "Yangon", "Accra", "Bern", "Cork", "Delhi", "Fargo", "Geneva", "Havana", "Izmir",
    "Jeddah", "Kigali", "Lyon", "Mumbai", "Nice", "Odessa", "Porto", "Rabat", "Sochi", "Tirana",
    "Ulan", "Varna",
]  # fmt: skip

MAX_ATTEMPTS = 1000


def _pick(rng: random.Random) -> str:
    return rng.choice(COLORS) + rng.choice(ANIMALS) + rng.choice(CITIES)


def generate_identifier(existing: Set[str], rng: random.Random | None = None) -> str:
    """Pick an identifier that is not in ``existing``.

    Falls back to a numeric suffix once the retry budget is exhausted.

    Args:
        existing: Identifiers already in use anywhere in the store
        rng: Random source (tests pass a seeded one)

    Returns:
        A new identifier such as ``"TealOtterLisbon"``
    """
    rng = rng or random.Random()
    for _ in range(MAX_ATTEMPTS):
        candidate = _pick(rng)
        if candidate not in existing:
            return candidate
    while True:
        candidate = f"{_pick(rng)}{rng.randrange(10000)}"
        if candidate not in existing:
            return candidate
