"""Fuzzy matching of external product names to activities.

Shop product titles rarely equal activity names ("Kapadokya Balon Turu -
Sunrise" vs "Cappadocia Balloon Tour"), so both sides are reduced to
ASCII word tokens and compared by overlap.
"""

import re
import unicodedata
from typing import Iterable, Optional, Set

from ..models import Activity

MATCH_THRESHOLD = 0.5
MIN_TOKEN_LENGTH = 3

_TURKISH = str.maketrans({
    "ı": "i", "İ": "i", "I": "i",
    "ğ": "g", "Ğ": "g",
    "ü": "u", "Ü": "u",
    "ş": "s", "Ş": "s",
    "ö": "o", "Ö": "o",
    "ç": "c", "Ç": "c",
})
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(text: str) -> str:
    """Lower-case ASCII form with Turkish letters folded and punctuation removed"""
    folded = (text or "").translate(_TURKISH).lower()
    decomposed = unicodedata.normalize("NFD", folded)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return " ".join(_NON_ALNUM.sub(" ", stripped).split())


def tokens(text: str) -> Set[str]:
    return {t for t in normalize(text).split() if len(t) >= MIN_TOKEN_LENGTH}


def overlap_score(left: str, right: str) -> float:
    """Share of the smaller token set found in the other one"""
    a, b = tokens(left), tokens(right)
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def _candidate_names(activity: Activity) -> Iterable[str]:
    yield activity.name
    for alias in activity.name_aliases or []:
        if isinstance(alias, str) and alias.strip():
            yield alias


def match_activity(product_name: str, activities: Iterable[Activity]) -> Optional[Activity]:
    """Best matching activity for *product_name*, or ``None`` below the threshold.

    An exact normalised match wins outright; otherwise the highest overlap
    score wins and ties go to the lower activity id.
    """
    wanted = normalize(product_name)
    if not wanted:
        return None

    best: Optional[Activity] = None
    best_score = 0.0
    for activity in sorted(activities, key=lambda a: a.id):
        for name in _candidate_names(activity):
            if normalize(name) == wanted:
                return activity
            score = overlap_score(product_name, name)
            if score > best_score:
                best, best_score = activity, score

    return best if best_score >= MATCH_THRESHOLD else None
