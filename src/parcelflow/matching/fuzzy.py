"""
Fuzzy String Matching

Levenshtein-based similarity used to link property records that refer to the
same parcel despite textual differences ('123 Main St.' vs '123 MAIN STREET').
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from config.settings import settings
from src.parcelflow.transformers.address import STREET_TYPES, UNIT_TYPES
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)

ScoreFunction = Callable[[str, str], float]

# Abbreviation -> full word. The inverse of the pipeline's street-type and unit
# tables: the matcher expands where the pipeline abbreviates, so both spellings
# compare equal after preprocessing.
ADDRESS_EXPANSIONS: Dict[str, str] = {
    **{abbr.lower(): full.lower() for full, abbr in STREET_TYPES.items()},
    **{abbr.lower(): full.lower() for full, abbr in UNIT_TYPES.items()},
    'str': 'street',
}

_EXPANSION_PATTERN = re.compile(
    r'\b(' + '|'.join(sorted(ADDRESS_EXPANSIONS, key=len, reverse=True)) + r')\b',
    re.IGNORECASE,
)
_SPECIAL_CHARS = re.compile(r'[^\w\s]')


@dataclass(frozen=True)
class FuzzyMatchResult:
    """
    A candidate that matched a query.

    Attributes:
        value: Candidate string as given
        score: Similarity between 0 and 1
        index: Position of the candidate in the input list
    """

    value: str
    score: float
    index: int


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Minimum number of single-character insertions, deletions or
    substitutions turning s1 into s2, computed with the full
    (len(s1) + 1) x (len(s2) + 1) dynamic-programming matrix.
    """
    len1, len2 = len(s1), len(s2)
    matrix = [[0] * (len2 + 1) for _ in range(len1 + 1)]

    for i in range(len1 + 1):
        matrix[i][0] = i
    for j in range(len2 + 1):
        matrix[0][j] = j

    for i in range(1, len1 + 1):
        for j in range(1, len2 + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            matrix[i][j] = min(
                matrix[i - 1][j] + 1,         # deletion
                matrix[i][j - 1] + 1,         # insertion
                matrix[i - 1][j - 1] + cost,  # substitution
            )

    return matrix[len1][len2]


def levenshtein_similarity(s1: str, s2: str) -> float:
    """1 - distance / max(len1, len2); 1.0 for equal strings, 0.0 if one is empty."""
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


class FuzzyMatcher:
    """
    Configurable approximate string matcher.

    Two thresholds are kept on purpose: `threshold` gates is_match() (a
    yes/no linkage decision, default 0.8), while `search_threshold` is the
    default cut-off for find_best_match() and find_all_matches() (candidate
    search, default 0.7).
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        search_threshold: Optional[float] = None,
        case_sensitive: bool = False,
        ignore_special_chars: bool = True,
        normalize_addresses: bool = True,
        score_function: Optional[ScoreFunction] = None,
    ):
        """
        Initialize the matcher.

        Args:
            threshold: Minimum score for is_match() (default from settings)
            search_threshold: Default minimum score for searches (default from settings)
            case_sensitive: Compare without case folding
            ignore_special_chars: Strip characters that are neither word characters nor spaces
            normalize_addresses: Expand street and unit abbreviations
            score_function: Replaces preprocessing + Levenshtein similarity entirely
        """
        self.threshold = threshold if threshold is not None else settings.fuzzy_match_threshold
        self.search_threshold = (
            search_threshold if search_threshold is not None else settings.fuzzy_search_threshold
        )
        self.case_sensitive = case_sensitive
        self.ignore_special_chars = ignore_special_chars
        self.normalize_addresses = normalize_addresses
        self.score_function = score_function

    def preprocess(self, value: str) -> str:
        """Apply the configured normalizations to a string."""
        if not value:
            return ''

        result = value if self.case_sensitive else value.lower()

        if self.ignore_special_chars:
            result = _SPECIAL_CHARS.sub('', result)

        if self.normalize_addresses:
            result = _EXPANSION_PATTERN.sub(
                lambda match: ADDRESS_EXPANSIONS[match.group(1).lower()],
                result,
            )

        return ' '.join(result.split())

    def compare(self, s1: str, s2: str) -> float:
        """
        Similarity of two strings between 0 and 1.
        """
        if self.score_function is not None:
            return self.score_function(s1, s2)

        return levenshtein_similarity(self.preprocess(s1), self.preprocess(s2))

    def find_best_match(
        self,
        needle: str,
        haystack: Sequence[str],
        threshold: Optional[float] = None,
    ) -> Optional[FuzzyMatchResult]:
        """
        Highest-scoring candidate at or above the threshold.

        Ties go to the earliest candidate.

        Returns:
            FuzzyMatchResult, or None for empty inputs or when nothing qualifies
        """
        if not needle or not haystack:
            logger.warning("fuzzy_match_empty_input")
            return None

        minimum = threshold if threshold is not None else self.search_threshold
        best: Optional[FuzzyMatchResult] = None

        for idx, candidate in enumerate(haystack):
            score = self.compare(needle, candidate)
            if score >= minimum and (best is None or score > best.score):
                best = FuzzyMatchResult(value=candidate, score=score, index=idx)

        return best

    def find_all_matches(
        self,
        query: str,
        choices: Sequence[str],
        threshold: Optional[float] = None,
    ) -> List[FuzzyMatchResult]:
        """
        Every candidate at or above the threshold, best first.

        Candidates with equal scores keep their input order.
        """
        if not query or not choices:
            return []

        minimum = threshold if threshold is not None else self.search_threshold
        matches = []

        for idx, choice in enumerate(choices):
            score = self.compare(query, choice)
            if score >= minimum:
                matches.append(FuzzyMatchResult(value=choice, score=score, index=idx))

        return sorted(matches, key=lambda match: match.score, reverse=True)

    def is_match(self, s1: str, s2: str) -> bool:
        """Whether two strings score at or above the matcher's threshold."""
        return self.compare(s1, s2) >= self.threshold
