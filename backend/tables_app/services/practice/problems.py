"""
Themed Word Problems

Turns a fact into a one-sentence story problem. Everything is chosen from a
stable hash of the operands and requested theme, so the same request always
yields the same text.

Usage:
    from tables_app.services.practice.problems import problem

    problem(3, 4, "animals").problem
    # "Mia sees 3 rows of 4 ducks. How many ducks are there in total?"
"""

from typing import Optional

from tables_app.enums.practice import Theme
from tables_app.models.practice import WordProblem
from tables_app.services.practice.hashing import fnv1a_32

MAX_PROBLEM_LENGTH = 160

THEMES: list[Theme] = [Theme.ANIMALS, Theme.SPACE, Theme.PIRATES, Theme.SPORTS]

NAMES = ["Ava", "Liam", "Mia", "Noah", "Zoe", "Leo"]

OBJECTS: dict[Theme, list[str]] = {
    Theme.ANIMALS: ["birds", "puppies", "frogs", "bunnies", "ducks", "kittens"],
    Theme.SPACE: ["star stickers", "moon rocks", "rockets", "planets", "comets", "space badges"],
    Theme.PIRATES: ["coins", "jewels", "maps", "parrots", "cannonballs", "shells"],
    Theme.SPORTS: ["balls", "medals", "cones", "jerseys", "trophies", "whistles"],
}

TEMPLATES: dict[Theme, list[str]] = {
    Theme.ANIMALS: [
        "{name} sees {a} rows of {b} {obj}. How many {obj} are there in total?",
        "{name} visits {a} farms. Each farm has {b} {obj}. How many {obj} does {name} see?",
        "At the zoo, {name} counts {a} pens with {b} {obj} in each. How many {obj} altogether?",
        "{name} feeds {a} groups of {b} {obj}. How many {obj} get a snack?",
    ],
    Theme.SPACE: [
        "{name} stacks {a} trays with {b} {obj} each. How many {obj} are there?",
        "{name} flies past {a} galaxies and spots {b} {obj} in each one. How many {obj} in all?",
        "A space station has {a} rooms with {b} {obj} in every room. How many {obj} is that?",
        "{name} packs {a} boxes of {b} {obj} for the trip to Mars. How many {obj} are packed?",
    ],
    Theme.PIRATES: [
        "{name} packs {a} chests with {b} {obj} each. How many {obj} are there?",
        "Captain {name} finds {a} islands with {b} {obj} buried on each. How many {obj} in total?",
        "{name}'s ship has {a} decks with {b} {obj} on every deck. How many {obj} are on board?",
        "{name} shares out {a} bags holding {b} {obj} each. How many {obj} are shared?",
    ],
    Theme.SPORTS: [
        "{name} arranges {a} rows of {b} {obj}. How many {obj} are there?",
        "{name}'s team plays {a} games and wins {b} {obj} each game. How many {obj} in all?",
        "Coach {name} sets out {a} lines of {b} {obj}. How many {obj} are on the field?",
        "{name} carries {a} bags with {b} {obj} in each. How many {obj} altogether?",
    ],
}


def resolve_theme(theme: Optional[str], h: int) -> Theme:
    """Use the requested theme when it is known, otherwise pick one from the hash."""
    if theme:
        try:
            return Theme(theme.strip().lower())
        except ValueError:
            pass
    return THEMES[h % len(THEMES)]


def problem(a: int, b: int, theme: Optional[str] = None) -> WordProblem:
    """
    Deterministic word problem for a × b.

    Args:
        a: First operand (rows / groups)
        b: Second operand (items per group)
        theme: Optional theme name; unknown names are treated as absent

    Returns:
        WordProblem with text of at most 160 characters
    """
    h = fnv1a_32(f"{a}:{b}:{theme or ''}")
    chosen = resolve_theme(theme, h)

    name = NAMES[(h >> 8) % len(NAMES)]
    objects = OBJECTS[chosen]
    obj = objects[(h >> 16) % len(objects)]
    templates = TEMPLATES[chosen]
    template = templates[(h >> 24) % len(templates)]

    text = template.format(name=name, a=a, b=b, obj=obj)
    return WordProblem(
        problem=text[:MAX_PROBLEM_LENGTH],
        operands=(a, b),
        op="*",
        theme=chosen.value,
    )
