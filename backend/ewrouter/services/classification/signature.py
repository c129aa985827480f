"""
Query signature engine.

A signature is the md5 digest of the normalized query text:
- Case-fold
- Trim surrounding whitespace
- Collapse internal whitespace runs to a single space

Trivial formatting differences therefore share a signature, which is the join
key between the pattern cache and the session history.
"""
import hashlib
import re

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """
    Normalize a raw query for hashing and keyword matching.

    Args:
        query: Raw query string (may be empty)

    Returns:
        Case-folded, trimmed, whitespace-collapsed text
    """
    if not query:
        return ""
    return _WHITESPACE.sub(" ", query.casefold()).strip()


def compute_signature(query: str) -> str:
    """
    Compute the signature of a query.

    Every string has a signature, including the empty string.
    """
    return hashlib.md5(normalize_query(query).encode("utf-8")).hexdigest()
