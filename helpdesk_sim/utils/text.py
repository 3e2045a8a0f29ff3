"""
Keyword utilities for solution review and knowledge-base lookup
"""
from typing import List

MIN_KEYWORD_LENGTH = 4


def normalize_words(text: str) -> List[str]:
    """
    Normalize free text into a keyword list

    Lowercases, strips every non-alphanumeric character, splits on
    whitespace and drops tokens shorter than MIN_KEYWORD_LENGTH.

    Args:
        text: Ticket, article or solution text

    Returns:
        Keywords in original order
    """
    cleaned = "".join(
        ch for ch in text.lower() if ch.isalnum() or ch.isspace()
    )
    return [word for word in cleaned.split() if len(word) >= MIN_KEYWORD_LENGTH]


def shares_keywords(left: str, right: str) -> bool:
    """True if the normalized keyword sets of both texts intersect"""
    return bool(set(normalize_words(left)) & set(normalize_words(right)))


def short_id(ticket_id: str) -> str:
    """Five-character ticket reference used in notifications"""
    return ticket_id[:5]
