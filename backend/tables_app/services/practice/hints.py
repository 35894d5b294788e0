"""
Deterministic Multiplication Hints

Maps an operand pair to a short, kid-friendly strategy. The rules run as an
ordered cascade and the first match wins:

    1. zero          anything × 0 is 0
    2. identity      anything × 1 is itself
    3. tens          × 10 appends a zero
    4. squares       canned mnemonic per square (falls through to 6 if none)
    5. nines         digit trick from the other operand
    6. pairs         canned mnemonic for the sorted pair ("3x4", "7x8", ...)
    7. both even     halve one, double the other
    8. fives         × 10 then halve
    9. fallback      split into friendlier pieces

The pair is sorted before any rule runs, so hint(a, b) == hint(b, a).
No network call is involved; hints are always available offline.

Usage:
    from tables_app.services.practice.hints import hint

    hint(7, 8)  # "Think 7 × 8 = 56: five-six, seven-eight..."
"""

from typing import Optional

SQUARE_MNEMONICS: dict[int, str] = {
    2: "2 × 2 = 4: two pairs of socks make four socks.",
    3: "3 × 3 = 9: a tic-tac-toe board has 9 squares.",
    4: "4 × 4 = 16: four fours make sweet sixteen.",
    5: "5 × 5 = 25: five fives are a quarter of 100, so 25.",
    6: "6 × 6 = 36: six times six is thirty-six, a rhyme that sticks!",
    7: "7 × 7 = 49: seven sevens, forty-nine, feeling fine.",
    8: "8 × 8 = 64: eight times eight fell on the floor, pick it up, it's sixty-four!",
    9: "9 × 9 = 81: nine nines are eighty-one, and 8 + 1 = 9.",
    11: "11 × 11 = 121: it reads the same forwards and backwards.",
    12: "12 × 12 = 144: a dozen dozens is called a gross, 144.",
}

PAIR_MNEMONICS: dict[str, str] = {
    "3x4": "Count 1, 2, 3, 4: 12 = 3 × 4. The digits line up in order!",
    "3x8": "3 × 8 = 24: three eights are the 24 hours in a day.",
    "4x7": "4 × 7 = 28: four weeks of seven days is 28 days, like February.",
    "6x7": "6 × 7 = 42: six and seven skip to forty-two.",
    "6x8": "6 × 8 = 48: six and eight went out to skate, came back home as forty-eight.",
    "7x8": "Think 7 × 8 = 56: five-six, seven-eight. The numbers 5, 6, 7, 8 go in order!",
}

DECOMPOSITION_HINT = (
    "Split one number into friendlier pieces, multiply each piece, "
    "then add the answers back together."
)


def pair_key(a: int, b: int) -> str:
    """Order-independent lookup key for an operand pair."""
    x, y = sorted((a, b))
    return f"{x}x{y}"


def _nines_hint(other: int) -> str:
    product = 9 * other
    if other <= 10:
        tens = other - 1
        ones = 9 - tens
        return (
            f"For 9 × {other}: the tens digit is {other} − 1 = {tens} "
            f"and the ones digit is 9 − {tens} = {ones}, so 9 × {other} = {product}."
        )
    # The digit trick stops working past 10
    return (
        f"For 9 × {other}: work out 10 × {other} = {10 * other}, "
        f"then take away one {other} to get {product}."
    )


def _square_hint(value: int) -> Optional[str]:
    return SQUARE_MNEMONICS.get(value)


def hint(a: int, b: int) -> str:
    """
    Deterministic hint for a × b.

    Args:
        a: First operand, expected in [0, 12]
        b: Second operand, expected in [0, 12]

    Returns:
        Human-readable strategy text. Never raises for integer input.
    """
    x, y = sorted((a, b))
    product = x * y

    if x == 0:
        return f"Anything times 0 is 0, so {x} × {y} = 0."

    if x == 1:
        return f"Multiplying by 1 keeps a number the same: 1 × {y} = {y}."

    if x == 10 or y == 10:
        other = x if y == 10 else y
        return (
            f"To multiply by 10, put a zero on the end: "
            f"{other} becomes {other}0, so {x} × {y} = {product}."
        )

    # Squares without a canned line fall through to the pair table
    square = _square_hint(x) if x == y else None
    if square:
        return square

    if x != y and (x == 9 or y == 9):
        return _nines_hint(y if x == 9 else x)

    mnemonic = PAIR_MNEMONICS.get(pair_key(x, y))
    if mnemonic:
        return mnemonic

    if x % 2 == 0 and y % 2 == 0:
        half = y // 2
        double = x * 2
        return (
            f"Halve {y} to get {half} and double {x} to get {double}: "
            f"{double} × {half} is still {product}."
        )

    if x % 5 == 0 or y % 5 == 0:
        other = y if x % 5 == 0 else x
        return (
            f"Times 5 is half of times 10: {other} × 10 = {other * 10}, "
            f"and half of that is {product}."
        )

    return DECOMPOSITION_HINT
