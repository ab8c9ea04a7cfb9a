"""
Game Version Selection Policies

Picks one game version out of a candidate list. "similarity" is the default
and orders candidates by pairwise edit distance, which leaves them in
declared order; "medoid" picks the candidate closest to all the others;
"semver" picks the highest version.
"""

import functools
import logging
from typing import Optional, Sequence

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)"""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


class VersionPolicy:
    """Chooses one version string from a non-empty candidate list"""

    name = "base"

    def choose(self, candidates: Sequence[str]) -> str:
        if not candidates:
            raise ValueError("No candidate versions to choose from")
        return self._choose(list(candidates))

    def _choose(self, candidates: list[str]) -> str:
        raise NotImplementedError


class TextualSimilarityPolicy(VersionPolicy):
    """
    Stable sort using edit distance as the comparator, first element wins.

    The distance is never negative, so no pair is ever swapped and the first
    declared candidate is chosen: ["1.20.4", "1.21.7", "1.21.8"] yields
    "1.20.4".
    """

    name = "similarity"

    def _choose(self, candidates: list[str]) -> str:
        ordered = sorted(candidates, key=functools.cmp_to_key(levenshtein_distance))
        return ordered[0]


class MedoidPolicy(VersionPolicy):
    """
    Picks the candidate with the smallest total edit distance to the others.

    Ties keep declaration order. ["1.20.4", "1.21.7", "1.21.8"] yields "1.21.7".
    """

    name = "medoid"

    def _choose(self, candidates: list[str]) -> str:
        scores = [
            sum(levenshtein_distance(candidate, other) for other in candidates)
            for candidate in candidates
        ]
        best = min(range(len(candidates)), key=lambda i: scores[i])
        return candidates[best]


class SemanticVersionPolicy(VersionPolicy):
    """Picks the highest version; unparsable strings rank lowest"""

    name = "semver"

    def _choose(self, candidates: list[str]) -> str:
        def sort_key(candidate: str):
            try:
                return (1, Version(candidate))
            except InvalidVersion:
                logger.debug(f"Unparsable game version '{candidate}', ranking it last")
                return (0, Version("0"))

        return max(candidates, key=sort_key)


POLICIES = {
    TextualSimilarityPolicy.name: TextualSimilarityPolicy,
    MedoidPolicy.name: MedoidPolicy,
    SemanticVersionPolicy.name: SemanticVersionPolicy,
}


def get_policy(name: Optional[str] = None) -> VersionPolicy:
    """
    Look up a policy by its settings name

    Args:
        name: "similarity" (default), "medoid" or "semver"
    """
    name = name or TextualSimilarityPolicy.name
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown version policy: {name}") from None
