"""
SERP position tracking through SerpAPI.
"""
import logging

import requests

from seodesk.utils import require_env, utcnow_iso

logger = logging.getLogger(__name__)

SERPAPI_URL = 'https://serpapi.com/search.json'
RESULTS_DEPTH = 100


class RankingError(RuntimeError):
    """SerpAPI answered with an error."""


def check_keyword_ranking(keyword: str, domain: str, session: requests.Session = None) -> int:
    """
    Position of the domain in Google's organic results for a keyword.

    Returns:
        1-based position, or 0 when the domain is not in the top 100
    """
    api_key = require_env('SERPAPI_API_KEY')
    session = session or requests.Session()

    response = session.get(SERPAPI_URL, params={
        'engine': 'google',
        'q': keyword,
        'api_key': api_key,
        'num': RESULTS_DEPTH
    }, timeout=30)
    data = response.json()

    if data.get('error'):
        raise RankingError(f"SerpAPI error: {data['error']}")

    for position, result in enumerate(data.get('organic_results') or [], start=1):
        link = result.get('link')
        if link and domain in link:
            return position

    return 0


def best_rank(previous_best: int, rank: int) -> int:
    """Best (lowest positive) rank seen so far. 0 means never ranked."""
    if rank <= 0:
        return previous_best or 0
    if not previous_best or rank < previous_best:
        return rank
    return previous_best


def update_keyword_ranking(client, keyword_id: str, project_domain: str, session: requests.Session = None) -> int:
    """Check a tracked keyword's rank and store it with a history entry."""
    result = client.table('keywords').select('*').eq('id', keyword_id).execute()
    if not result.data:
        raise LookupError(f"Keyword with ID {keyword_id} not found")
    keyword = result.data[0]

    rank = check_keyword_ranking(keyword['keyword'], project_domain, session=session)
    checked_at = utcnow_iso()

    client.table('keywords').update({
        'current_rank': rank,
        'best_rank': best_rank(keyword.get('best_rank') or 0, rank),
        'last_checked': checked_at
    }).eq('id', keyword_id).execute()

    client.table('keyword_history').insert({
        'keyword_id': keyword_id,
        'rank': rank,
        'checked_at': checked_at
    }).execute()

    logger.info(f"Keyword '{keyword['keyword']}' ranks {rank or 'unranked'} for {project_domain}")
    return rank


def update_project_rankings(client, project: dict, session: requests.Session = None) -> dict:
    """Recheck all keywords of a project; failures are logged and counted."""
    keywords = client.table('keywords').select('id, keyword').eq('project_id', project['id']).execute()

    ranks = {}
    failed = []
    for keyword in keywords.data or []:
        try:
            ranks[keyword['keyword']] = update_keyword_ranking(
                client, keyword['id'], project['domain'], session=session
            )
        except (RankingError, requests.RequestException, ValueError) as e:
            logger.error(f"Error updating ranking for '{keyword['keyword']}': {e}")
            failed.append(keyword['keyword'])

    return {'ranks': ranks, 'failed': failed}
