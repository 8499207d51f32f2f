"""Keyword set derivation for one logical search."""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from . import config

_QUALIFIER_RE = re.compile(r"\s*[\(\[][^\)\]]*[\)\]]\s*")


def base_menu(menu: str) -> str:
    """'김치찌개 (돼지고기)' -> '김치찌개'."""
    text = _QUALIFIER_RE.sub(" ", menu or "")
    return " ".join(text.split())


def build_keywords(
    menu: str,
    strategy: Optional[str] = None,
    fallback_keywords: Optional[Sequence[str]] = None,
    nearby_suffix: Optional[str] = None,
) -> List[str]:
    strategy = strategy or config.KEYWORD_STRATEGY
    if strategy not in config.KEYWORD_STRATEGIES:
        raise ValueError(f"Unknown keyword strategy: {strategy}")
    base = base_menu(menu)
    if not base:
        raise ValueError("Menu name must not be empty")

    keywords = [base]
    if strategy == "synonyms":
        fallbacks = config.FALLBACK_KEYWORDS if fallback_keywords is None else fallback_keywords
        keywords.extend(f"{base} {term.strip()}" for term in fallbacks if term.strip())
    elif strategy == "nearby":
        suffix = nearby_suffix or config.NEARBY_SUFFIX
        keywords.append(f"{base} {suffix}")
    return list(dict.fromkeys(keywords))
