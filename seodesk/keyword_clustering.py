"""
Keyword intent classification and similarity clustering.
"""
import logging
from collections import Counter

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.3

# Checked in order, first match wins
INTENT_PATTERNS = [
    ('TRANSACTIONAL', ('buy', 'price', 'cost', 'purchase')),
    ('COMMERCIAL', ('vs', 'compare', 'best', 'review')),
    ('INFORMATIONAL', ('how', 'what', 'why', 'guide')),
]


def determine_intent(keyword: str) -> str:
    """Classify search intent from substring patterns."""
    keyword_lower = keyword.lower()
    for intent, patterns in INTENT_PATTERNS:
        if any(pattern in keyword_lower for pattern in patterns):
            return intent
    return 'NAVIGATIONAL'


def calculate_similarity(keyword1: str, keyword2: str) -> float:
    """Jaccard similarity of the two keywords' word sets."""
    words1 = set(keyword1.lower().split())
    words2 = set(keyword2.lower().split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def _most_common(counter: Counter, n: int) -> list:
    # Counter.most_common keeps first-seen order among equal counts
    return [item for item, _ in counter.most_common(n)]


def cluster_keywords(keywords: list, threshold: float = SIMILARITY_THRESHOLD) -> list:
    """
    Group similar keywords.

    Greedy single pass: every keyword not yet placed seeds a new cluster and
    pulls in all other unplaced keywords at or above the threshold.

    Args:
        keywords: Keyword strings
        threshold: Minimum Jaccard similarity to join a cluster

    Returns:
        List of {'name', 'keywords', 'main_intent', 'score'} dicts
    """
    total = len(keywords)
    processed = set()
    clusters = []

    for keyword in keywords:
        if keyword in processed:
            continue

        members = [keyword]
        for other in keywords:
            if other == keyword or other in processed or other in members:
                continue
            if calculate_similarity(keyword, other) >= threshold:
                members.append(other)
                processed.add(other)

        words = Counter(word for member in members for word in member.lower().split())
        intents = Counter(determine_intent(member) for member in members)

        clusters.append({
            'name': ' '.join(_most_common(words, 2)),
            'keywords': members,
            'main_intent': _most_common(intents, 1)[0],
            'score': len(members) / total
        })
        processed.add(keyword)

    logger.info(f"Clustered {total} keywords into {len(clusters)} clusters")
    return clusters


def apply_clusters(client, project_id: str, clusters: list) -> int:
    """Write cluster intent, name and score back to the project's keyword rows."""
    updated = 0
    for cluster in clusters:
        for keyword in cluster['keywords']:
            result = client.table('keywords').update({
                'intent': cluster['main_intent'],
                'cluster_name': cluster['name'],
                'cluster_score': cluster['score']
            }).eq('project_id', project_id).eq('keyword', keyword).execute()
            updated += len(result.data or [])
    return updated
