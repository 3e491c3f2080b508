"""String normalization utilities for library search."""

import unicodedata


def fold_for_search(text: str) -> str:
    """
    Fold a string for accent- and case-insensitive comparison.

    Applies the following transformations in order:
    1. Normalize unicode (NFKD decomposition)
    2. Remove combining characters (accents/diacritics)
    3. Case-fold and strip surrounding whitespace

    Args:
        text: String to fold

    Returns:
        Folded string

    Example:
        >>> fold_for_search("Björk - Humúríús")
        'bjork - humurius'
        >>> fold_for_search("  CAFÉ ")
        'cafe'
    """
    # Normalize unicode (NFKD decomposition)
    normalized = unicodedata.normalize("NFKD", text)

    # Category 'Mn' = Nonspacing_Mark (combining diacriticals)
    normalized = "".join(char for char in normalized if unicodedata.category(char) != "Mn")

    return normalized.casefold().strip()


def matches_search(name: str, query: str) -> bool:
    """
    Check whether a display name matches a search query.

    An empty (or whitespace-only) query matches everything.

    Example:
        >>> matches_search("Crème Brûlée tutorial", "creme")
        True
        >>> matches_search("Holiday 2019", "")
        True
    """
    folded_query = fold_for_search(query)
    if not folded_query:
        return True
    return folded_query in fold_for_search(name)
