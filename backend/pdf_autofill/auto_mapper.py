"""
Automatic Field Mapping Engine

Matches data-file headers to template field names:
1. Exact match after normalization
2. Substring containment
3. Edit-distance similarity

Assignment is greedy in header order; a field claimed by one header is not
offered to later headers.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from .models import FieldDescriptor

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5
SUBSTRING_SCORE = 0.8

_SEPARATORS = re.compile(r"[_\-\s]")


@dataclass
class FieldMatch:
    """A header → field assignment chosen by the mapper"""
    header: str
    field_name: str
    score: float  # 0-1
    method: str  # "exact", "substring", "edit_distance"


def normalize_string(s: str) -> str:
    """Lower-case and drop underscores, hyphens and whitespace"""
    return _SEPARATORS.sub("", (s or "").lower())


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit insert/delete/substitute costs."""
    return Levenshtein.distance(a, b)


def _score(a: str, b: str) -> Tuple[float, str]:
    a = normalize_string(a)
    b = normalize_string(b)

    if a == b:
        return 1.0, "exact"
    if a and b and (a in b or b in a):
        return SUBSTRING_SCORE, "substring"

    max_len = max(len(a), len(b))
    return 1 - edit_distance(a, b) / max_len, "edit_distance"


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1]; 1 for identical normalized strings, 0.8 for containment.

    An empty string is not treated as contained in anything, so
    similarity("", "name") is 0.0 rather than 0.8 and a blank header
    never claims a field.
    """
    return _score(a, b)[0]


class AutomaticFieldMapper:
    """Maps data headers onto the field names of a template schema"""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    def find_best_mapping(self, header: str, field_names: Iterable[str]) -> Optional[FieldMatch]:
        """Highest-scoring field at or above the threshold; ties keep the earlier field."""
        best: Optional[FieldMatch] = None
        for field_name in field_names:
            score, method = _score(header, field_name)
            if score >= self.threshold and (best is None or score > best.score):
                best = FieldMatch(header=header, field_name=field_name, score=score, method=method)
        return best

    def auto_map_detailed(
        self,
        headers: Sequence[str],
        fields: Sequence[FieldDescriptor],
    ) -> List[FieldMatch]:
        # Unnamed fields cannot be addressed by a mapping.
        field_names: List[str] = []
        for f in fields:
            if f.name and f.name not in field_names:
                field_names.append(f.name)

        used = set()
        matches: List[FieldMatch] = []

        for header in headers:
            available = [name for name in field_names if name not in used]
            match = self.find_best_mapping(header, available)
            if match is None:
                logger.debug("No field for header '%s'", header)
                continue
            used.add(match.field_name)
            matches.append(match)
            logger.debug(
                "Mapped '%s' → '%s' (score: %.2f, method: %s)",
                header, match.field_name, match.score, match.method,
            )

        logger.info("Auto-mapped %d of %d headers onto %d fields", len(matches), len(headers), len(field_names))
        return matches

    def auto_map(self, headers: Sequence[str], fields: Sequence[FieldDescriptor]) -> Dict[str, str]:
        """Return {header: field name} for every header that found a field."""
        return {m.header: m.field_name for m in self.auto_map_detailed(headers, fields)}


def auto_map_fields(
    headers: Sequence[str],
    fields: Sequence[FieldDescriptor],
    threshold: float = DEFAULT_THRESHOLD,
) -> Dict[str, str]:
    return AutomaticFieldMapper(threshold).auto_map(headers, fields)
