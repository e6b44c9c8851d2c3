"""Pure search helpers: query normalization, path dedup, filtering, scoring.

The store-facing half of search lives in :mod:`orgdir.services.search`.
Everything here works on plain models so it can be tested without a store.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from orgdir.domain.models import Area

_WS_RE = re.compile(r"\s+")
_WORD_BOUNDARY_RE = re.compile(r"\b")


def normalize_query(text: str) -> list[str]:
    """Lowercase, collapse whitespace and split into terms.

    Examples:
        >>> normalize_query("  Student   HOUSING ")
        ['student', 'housing']
        >>> normalize_query("   ")
        []
    """
    collapsed = _WS_RE.sub(" ", text.lower()).strip()
    return collapsed.split(" ") if collapsed else []


def name_pattern(terms: Sequence[str]) -> str:
    """Regex matching any term as a whole-word prefix, case-insensitively."""
    alternatives = "|".join(re.escape(term) for term in terms)
    return rf"(?i)(?:^|\b)(?:{alternatives})"


def position_pattern(terms: Sequence[str]) -> str:
    """Regex matching a position that starts with the joined term string."""
    return "(?i)^" + re.escape(" ".join(terms))


@dataclass(frozen=True)
class AncestorRow:
    """One ``(candidate, hop distance, ancestor)`` record of path assembly."""

    target_id: int
    distance: int
    ancestor: Area


def assemble_paths(
    candidates: Mapping[int, Area],
    rows: Iterable[AncestorRow],
) -> dict[int, list[Area]]:
    """Build one top-down path per candidate and drop nested duplicates.

    A candidate that appears as an ancestor inside another candidate's path
    loses its own standalone path.  If it carried a matched contact, that
    annotation is copied onto its node inside the paths that reference it.
    """
    by_distance: dict[int, dict[int, Area]] = {
        target_id: {0: area} for target_id, area in candidates.items()
    }
    nested: set[int] = set()

    for row in rows:
        if row.distance <= 0:
            continue
        node = row.ancestor
        candidate = candidates.get(node.area_id)
        if candidate is not None:
            nested.add(node.area_id)
            if candidate.matched_contact is not None:
                node = node.model_copy(update={"matched_contact": candidate.matched_contact})
        slots = by_distance.get(row.target_id)
        if slots is not None:
            slots[row.distance] = node

    return {
        target_id: [slots[d] for d in sorted(slots, reverse=True)]
        for target_id, slots in by_distance.items()
        if target_id not in nested
    }


def flatten_path(path: Sequence[Area]) -> str:
    """Lowercase haystack of a path: names in order, each followed by its matched position."""
    parts: list[str] = []
    for area in path:
        parts.append(area.name)
        if area.matched_contact is not None and area.matched_contact.position:
            parts.append(area.matched_contact.position)
    return " ".join(parts).lower()


def path_matches(path: Sequence[Area], terms: Sequence[str]) -> bool:
    """True when every term occurs as a substring of the flattened path."""
    haystack = flatten_path(path)
    return all(term in haystack for term in terms)


def score_path(path: Sequence[Area], terms: Sequence[str]) -> int:
    """One point per node whose name has a word token equal to a query term.

    Exact token equality, not substring: ``"hous"`` does not score against
    ``"Housing"`` even though it matches it.
    """
    wanted = {term.lower() for term in terms}
    score = 0
    for area in path:
        tokens = (token.lower() for token in _WORD_BOUNDARY_RE.split(area.name))
        if any(token in wanted for token in tokens):
            score += 1
    return score


def rank_paths(paths: Iterable[list[Area]], terms: Sequence[str]) -> list[list[Area]]:
    """Filter by term coverage, then sort by score desc and length asc."""
    kept = [path for path in paths if path and path_matches(path, terms)]
    return sorted(kept, key=lambda path: (-score_path(path, terms), len(path)))
