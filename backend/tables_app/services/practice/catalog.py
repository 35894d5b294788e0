"""
Fact Catalog

The fixed universe of practiceable facts: a × b for a, b in 1..12.
"""

FACT_MAX = 12
CATALOG_SIZE = FACT_MAX * FACT_MAX
MULTIPLY = "*"


def catalog_rows() -> list[dict]:
    """
    Rows for seeding the catalog, in canonical (a, b) order.

    Returns:
        One {"a", "b", "op"} dict per ordered pair (144 rows).
    """
    return [
        {"a": a, "b": b, "op": MULTIPLY}
        for a in range(1, FACT_MAX + 1)
        for b in range(1, FACT_MAX + 1)
    ]
