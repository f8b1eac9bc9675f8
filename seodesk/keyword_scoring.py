"""
Keyword priority scoring.

Scores fall in 0-100; higher means the keyword deserves attention sooner.
"""
import math
import re

DEFAULT_WEIGHTS = {
    'search_volume': 0.6,
    'difficulty': 0.4,
    'intent_multiplier': {
        'TRANSACTIONAL': 1.5,
        'INFORMATIONAL': 1.0,
        'NAVIGATIONAL': 0.8,
        'COMMERCIAL': 1.3
    },
    'current_rank_bonus': {
        'top_three': 1.3,
        'top_ten': 1.2,
        'first_page': 1.1
    }
}

PRIORITY_LEVELS = [
    (80, 'Very High Priority'),
    (60, 'High Priority'),
    (40, 'Medium Priority'),
    (20, 'Low Priority'),
]


def calculate_priority_score(keyword: dict, weights: dict = None) -> int:
    """
    Calculate a priority score for a keyword.

    Args:
        keyword: Mapping with optional search_volume, difficulty,
            current_rank and intent.
        weights: Partial override of DEFAULT_WEIGHTS (top-level keys replace).

    Returns:
        Integer score between 0 and 100
    """
    final_weights = {**DEFAULT_WEIGHTS, **(weights or {})}

    search_volume = keyword.get('search_volume')
    if search_volume is None:
        search_volume = 0
    difficulty = keyword.get('difficulty')
    if difficulty is None:
        difficulty = 100  # unknown difficulty counts as the hardest

    # Volumes span orders of magnitude, so normalize on a log scale
    normalized_volume = min(100, math.log10(search_volume) * 20) if search_volume > 0 else 0
    normalized_difficulty = 100 - difficulty

    score = (
        normalized_volume * final_weights['search_volume'] +
        normalized_difficulty * final_weights['difficulty']
    )

    intent = keyword.get('intent')
    if intent:
        score *= final_weights['intent_multiplier'].get(intent, 1.0)

    current_rank = keyword.get('current_rank')
    if current_rank:
        bonus = final_weights['current_rank_bonus']
        if current_rank <= 3:
            score *= bonus['top_three']
        elif current_rank <= 10:
            score *= bonus['top_ten']
        elif current_rank <= 20:
            score *= bonus['first_page']

    return int(min(100, max(0, math.floor(score + 0.5))))


def get_priority_description(score: int) -> str:
    for threshold, label in PRIORITY_LEVELS:
        if score >= threshold:
            return label
    return 'Very Low Priority'


def calculate_keyword_density(content: str, keyword: str) -> float:
    """Keyword occurrences per 100 words, 2 decimals."""
    if not content or not keyword:
        return 0.0

    words = len(content.split())
    if words == 0:
        return 0.0

    keyword_count = len(re.findall(re.escape(keyword.lower()), content.lower()))
    return round(keyword_count / words * 100, 2)


def _position_score(rank: int) -> int:
    if rank <= 3:
        return 100
    if rank <= 10:
        return 80
    if rank <= 20:
        return 60
    if rank <= 30:
        return 40
    if rank <= 50:
        return 20
    if rank <= 100:
        return 10
    return 0


def calculate_visibility_score(rankings: list) -> int:
    """Average position score (0-100) over a list of SERP positions."""
    if not rankings:
        return 0
    total = sum(_position_score(rank) for rank in rankings)
    return int(math.floor(total / len(rankings) + 0.5))
