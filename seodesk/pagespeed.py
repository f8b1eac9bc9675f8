"""
Technical audit through the PageSpeed Insights API (Lighthouse, mobile).
"""
import logging
from datetime import datetime, timezone
from urllib.parse import urlparse

import requests

from seodesk.utils import require_env

logger = logging.getLogger(__name__)

PAGESPEED_URL = 'https://www.googleapis.com/pagespeedonline/v5/runPagespeed'
CATEGORIES = ['performance', 'seo', 'accessibility', 'best-practices']

# (result key, category id, label)
ISSUE_CATEGORIES = [
    ('seo', 'seo', 'SEO'),
    ('accessibility', 'accessibility', 'Accessibility'),
    ('best_practices', 'best-practices', 'Best Practices'),
]


def _round2(value: float) -> float:
    return round(value, 2)


def _percent(score: float) -> int:
    return int(score * 100 + 0.5)


def _seconds(audits: dict, audit_id: str) -> float:
    return _round2(audits[audit_id]['numericValue'] / 1000)


def _to_issue(audit: dict, category: str) -> dict:
    severe = audit['score'] < 0.5
    return {
        'type': 'error' if severe else 'warning',
        'category': category,
        'message': audit.get('title'),
        'description': audit.get('description'),
        'impact': 'high' if severe else 'medium'
    }


def _failing(audit: dict) -> bool:
    return audit.get('score') is not None and audit['score'] < 1


def transform_lighthouse(lighthouse: dict) -> dict:
    """Reduce a lighthouseResult to scores, core metrics and issues."""
    categories = lighthouse['categories']
    audits = lighthouse['audits']
    config = lighthouse.get('configSettings') or {}
    throttling = config.get('throttling') or {}
    environment = lighthouse.get('environment') or {}

    technical = {
        'performance': {
            'score': _percent(categories['performance']['score']),
            'metrics': {
                'fcp': _seconds(audits, 'first-contentful-paint'),
                'lcp': _seconds(audits, 'largest-contentful-paint'),
                'cls': _round2(audits['cumulative-layout-shift']['numericValue']),
                'tbt': _round2(audits['total-blocking-time']['numericValue']),
                'si': _seconds(audits, 'speed-index'),
                'tti': _seconds(audits, 'interactive'),
            },
            'environment': {
                'emulated_device': config.get('emulatedFormFactor') or 'Mobile',
                'network_throttling': {
                    'rtt_ms': throttling.get('rttMs') or 150,
                    'throughput_kbps': throttling.get('throughputKbps') or 1638.4,
                    'cpu_slowdown': throttling.get('cpuSlowdownMultiplier') or 4,
                },
                'user_agent': environment.get('networkUserAgent') or 'Chrome',
                'timestamp': lighthouse.get('fetchTime') or datetime.now(timezone.utc).isoformat(),
            },
            'issues': [
                _to_issue(audit, 'Performance')
                for audit in audits.values()
                if _failing(audit) and (audit.get('details') or {}).get('type') == 'opportunity'
            ],
        }
    }

    for key, category_id, label in ISSUE_CATEGORIES:
        category = categories[category_id]
        refs = {ref['id'] for ref in category.get('auditRefs', [])}
        technical[key] = {
            'score': _percent(category['score']),
            'issues': [
                _to_issue(audit, label)
                for audit_id, audit in audits.items()
                if _failing(audit) and audit.get('id', audit_id) in refs
            ],
        }

    return technical


def get_page_speed_data(url: str, session: requests.Session = None) -> dict:
    """Run PageSpeed Insights for a URL and return the transformed report."""
    api_key = require_env('GOOGLE_PAGESPEED_API_KEY')

    if not url:
        raise ValueError('URL is required')
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError('Invalid URL format')

    session = session or requests.Session()
    response = session.get(PAGESPEED_URL, params=[
        ('url', url),
        ('key', api_key),
        ('strategy', 'mobile'),
    ] + [('category', category) for category in CATEGORIES], timeout=120)

    data = response.json()
    if not response.ok or data.get('error'):
        message = (data.get('error') or {}).get('message') or 'Failed to fetch PageSpeed data'
        logger.error(f"PageSpeed API error for {url}: {message}")
        raise RuntimeError(message)

    return transform_lighthouse(data['lighthouseResult'])
