"""
GA4 Data API wrapper: traffic totals, top pages and sources for a date
range, optionally compared with the preceding period of equal length.
"""
import logging
from datetime import date, timedelta
from typing import Dict, List

from googleapiclient.discovery import build

from seodesk.utils import percent_change

logger = logging.getLogger(__name__)

TOP_N = 5
TOTAL_METRICS = ['users', 'page_views', 'avg_session_duration', 'bounce_rate']


def empty_analytics() -> Dict:
    return {
        'users': 0,
        'page_views': 0,
        'avg_session_duration': 0,
        'bounce_rate': 0,
        'top_pages': [],
        'traffic_sources': []
    }


def previous_period(start_date: str, end_date: str):
    """The date range of equal length ending the day before start_date."""
    start = date.fromisoformat(start_date)
    end = date.fromisoformat(end_date)
    if end < start:
        raise ValueError('end_date must not be before start_date')
    prev_end = start - timedelta(days=1)
    prev_start = prev_end - (end - start)
    return prev_start.isoformat(), prev_end.isoformat()


def summarize_rows(rows: List[Dict]) -> Dict:
    """
    Aggregate runReport rows (pagePath, sessionSource x users, views,
    duration, bounce rate).
    """
    if not rows:
        return empty_analytics()

    users = 0
    page_views = 0
    session_duration = 0.0
    bounce_rate = 0.0
    pages: Dict[str, int] = {}
    sources: Dict[str, int] = {}
    counted = 0

    for row in rows:
        dimensions = row.get('dimensionValues')
        metrics = row.get('metricValues')
        if not dimensions or not metrics:
            continue

        page_path = dimensions[0].get('value')
        source = dimensions[1].get('value')
        user_count = int(float(metrics[0]['value']))
        view_count = int(float(metrics[1]['value']))

        users += user_count
        page_views += view_count
        session_duration += float(metrics[2]['value'])
        bounce_rate += float(metrics[3]['value'])
        counted += 1

        if page_path:
            pages[page_path] = pages.get(page_path, 0) + view_count
        if source:
            sources[source] = sources.get(source, 0) + user_count

    top_pages = sorted(pages.items(), key=lambda item: item[1], reverse=True)[:TOP_N]
    top_sources = sorted(sources.items(), key=lambda item: item[1], reverse=True)[:TOP_N]

    return {
        'users': users,
        'page_views': page_views,
        'avg_session_duration': session_duration / counted if counted else 0,
        'bounce_rate': bounce_rate / counted if counted else 0,
        'top_pages': [{'path': path, 'page_views': views} for path, views in top_pages],
        'traffic_sources': [{'source': source, 'users': count} for source, count in top_sources]
    }


def compare_periods(current: Dict, previous: Dict) -> Dict:
    """Attach *_change percentages to a current-period summary."""
    result = dict(current)
    for metric in TOTAL_METRICS:
        result[f"{metric}_change"] = percent_change(current[metric], previous[metric])

    previous_pages = {p['path']: p['page_views'] for p in previous['top_pages']}
    result['top_pages'] = [
        {**page, 'change': percent_change(page['page_views'], previous_pages.get(page['path'], 0))}
        for page in current['top_pages']
    ]

    previous_sources = {s['source']: s['users'] for s in previous['traffic_sources']}
    result['traffic_sources'] = [
        {**source, 'change': percent_change(source['users'], previous_sources.get(source['source'], 0))}
        for source in current['traffic_sources']
    ]
    return result


class GoogleAnalyticsService:
    def __init__(self, credentials, property_id: str, service=None):
        """
        Args:
            credentials: google-auth credentials with analytics.readonly scope
            property_id: GA4 property ID, with or without the properties/ prefix
            service: Prebuilt analyticsdata resource (tests)
        """
        self.property_id = property_id if property_id.startswith('properties/') else f"properties/{property_id}"
        self.service = service or build('analyticsdata', 'v1beta', credentials=credentials, cache_discovery=False)

    def _run_report(self, start_date: str, end_date: str) -> List[Dict]:
        response = self.service.properties().runReport(
            property=self.property_id,
            body={
                'dateRanges': [{'startDate': start_date, 'endDate': end_date}],
                'dimensions': [{'name': 'pagePath'}, {'name': 'sessionSource'}],
                'metrics': [
                    {'name': 'totalUsers'},
                    {'name': 'screenPageViews'},
                    {'name': 'averageSessionDuration'},
                    {'name': 'bounceRate'}
                ]
            }
        ).execute()
        return response.get('rows', [])

    def get_analytics(self, start_date: str, end_date: str) -> Dict:
        """Analytics summary for YYYY-MM-DD start/end dates (inclusive)."""
        rows = self._run_report(start_date, end_date)
        logger.info(f"GA4 {self.property_id} {start_date}..{end_date}: {len(rows)} rows")
        return summarize_rows(rows)

    def get_analytics_with_changes(self, start_date: str, end_date: str) -> Dict:
        prev_start, prev_end = previous_period(start_date, end_date)
        current = self.get_analytics(start_date, end_date)
        previous = self.get_analytics(prev_start, prev_end)
        result = compare_periods(current, previous)
        result['period'] = {'start_date': start_date, 'end_date': end_date}
        result['previous_period'] = {'start_date': prev_start, 'end_date': prev_end}
        return result


def list_properties(credentials, service=None) -> List[Dict]:
    """GA4 properties the user can read, across all accounts."""
    service = service or build('analyticsadmin', 'v1beta', credentials=credentials, cache_discovery=False)
    accounts = service.accountSummaries().list().execute()

    properties = []
    for account in accounts.get('accountSummaries', []):
        for prop in account.get('propertySummaries', []):
            properties.append({
                'id': prop.get('property'),
                'name': prop.get('displayName', 'Unknown'),
                'account_id': account.get('account'),
                'account_name': account.get('displayName', 'Unknown')
            })
    return properties
