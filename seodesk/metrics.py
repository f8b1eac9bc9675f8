"""
Project and dashboard aggregates computed from Supabase rows.
"""
import logging
import math
from datetime import timedelta

from seodesk.keyword_scoring import calculate_visibility_score
from seodesk.utils import utcnow

logger = logging.getLogger(__name__)


def _average(values) -> int:
    values = [v for v in values if v is not None]
    if not values:
        return 0
    return int(sum(values) / len(values) + 0.5)


def _ranked(keywords):
    return [k['current_rank'] for k in keywords if k.get('current_rank')]


def _backlink_change(total: int, previous: int) -> int:
    """Whole-percent growth since last month; no backlinks last month counts as 100."""
    if previous == 0:
        return 100
    return int(math.floor((total - previous) / previous * 100 + 0.5))


def get_project_metrics(client, project_id: str) -> dict:
    """Keyword and backlink totals for one project."""
    keywords = client.table('keywords').select('current_rank, search_volume') \
        .eq('project_id', project_id).execute().data or []

    backlinks = client.table('backlinks').select('domain_authority, created_at') \
        .eq('project_id', project_id).execute().data or []

    one_month_ago = (utcnow() - timedelta(days=30)).isoformat()
    previous_count = sum(1 for b in backlinks if b.get('created_at') and b['created_at'] < one_month_ago)

    return {
        'keywords': {
            'total': len(keywords),
            'average_rank': _average(_ranked(keywords)),
            'average_volume': _average(k.get('search_volume') for k in keywords)
        },
        'backlinks': {
            'total': len(backlinks),
            'average_domain_authority': _average(b.get('domain_authority') for b in backlinks),
            'change': _backlink_change(len(backlinks), previous_count)
        }
    }


def get_keyword_visibility(client, project_id: str) -> int:
    keywords = client.table('keywords').select('current_rank').eq('project_id', project_id).execute().data or []
    return calculate_visibility_score(_ranked(keywords))


def _position_change(client, keyword_ids: list) -> float:
    """
    Average rank movement between each keyword's two latest ranked checks.

    Negative values mean keywords moved up the results page.
    """
    if not keyword_ids:
        return 0

    history = client.table('keyword_history').select('keyword_id, rank, checked_at') \
        .in_('keyword_id', keyword_ids).order('checked_at', desc=True).execute().data or []

    latest = {}
    for entry in history:
        if not entry.get('rank'):
            continue
        snapshots = latest.setdefault(entry['keyword_id'], [])
        if len(snapshots) < 2:
            snapshots.append(entry['rank'])

    moves = [snaps[0] - snaps[1] for snaps in latest.values() if len(snaps) == 2]
    if not moves:
        return 0
    return round(sum(moves) / len(moves), 1)


def get_dashboard_stats(client, organization_id: str = None) -> dict:
    """Totals across all projects an organization owns (all projects when None)."""
    query = client.table('projects').select('id')
    if organization_id:
        query = query.eq('organization_id', organization_id)
    projects = query.execute().data or []
    project_ids = [p['id'] for p in projects]

    keywords = []
    if project_ids:
        keywords = client.table('keywords').select('id, current_rank') \
            .in_('project_id', project_ids).execute().data or []

    return {
        'total_projects': len(projects),
        'total_keywords': len(keywords),
        'average_position': _average(_ranked(keywords)),
        'position_change': _position_change(client, [k['id'] for k in keywords])
    }
