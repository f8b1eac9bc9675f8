"""
On-page content audit: meta tags, headings, images, structured data,
plus sitemap discovery for auditing a whole site.
"""
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from seodesk.keyword_analyzer import page_text
from seodesk.utils import ensure_protocol

logger = logging.getLogger(__name__)

MAX_AUDIT_PAGES = 50
SITEMAP_CANDIDATES = ['sitemap.xml', 'sitemap_index.xml', 'wp-sitemap.xml', 'sitemap.php']

ERROR_PENALTY = 15
WARNING_PENALTY = 5


def _issue(issue_type: str, message: str, impact: str) -> Dict:
    return {'type': issue_type, 'message': message, 'impact': impact}


class ContentAnalyzer:
    def analyze(self, html: str, url: str = None) -> Dict:
        soup = BeautifulSoup(html or '', 'html.parser')

        meta_tags = [
            {
                'name': el.get('name'),
                'property': el.get('property'),
                'content': el.get('content')
            }
            for el in soup.find_all('meta')
        ]

        def meta_content(name):
            el = soup.find('meta', attrs={'name': name})
            return el.get('content') if el else None

        description = meta_content('description') or None
        canonical = soup.find('link', rel='canonical')

        h1_tags = [el.get_text().strip() for el in soup.find_all('h1')]
        h2_tags = [el.get_text().strip() for el in soup.find_all('h2')]

        images = soup.find_all('img')
        images_without_alt = sum(1 for img in images if not img.get('alt'))

        body_text = page_text(soup)
        title = soup.title.get_text().strip() if soup.title else ''

        has_schema = (
            soup.find('script', attrs={'type': 'application/ld+json'}) is not None or
            soup.find(attrs={'itemtype': True}) is not None
        )

        return {
            'url': url,
            'title': title or None,
            'title_length': len(title),
            'description': description,
            'description_length': len(description or ''),
            'h1_count': len(h1_tags),
            'h1_tags': h1_tags,
            'h2_count': len(h2_tags),
            'h2_tags': h2_tags,
            'image_count': len(images),
            'images_without_alt': images_without_alt,
            'word_count': len(body_text.split()),
            'has_canonical': bool(canonical and canonical.get('href')),
            'has_robots': bool(meta_content('robots')),
            'has_viewport': bool(meta_content('viewport')),
            'has_schema': has_schema,
            'meta_tags': meta_tags
        }

    def get_analysis(self, metrics: Dict) -> Dict:
        """Score a page (0-100) and list what is wrong with it."""
        issues = []

        if not metrics.get('title'):
            issues.append(_issue('error', 'Page is missing a title tag', 'high'))
        elif metrics['title_length'] < 10:
            issues.append(_issue('error', 'Title tag is too short (< 10 characters)', 'high'))
        elif metrics['title_length'] > 60:
            issues.append(_issue('warning', 'Title tag is too long (> 60 characters)', 'medium'))

        if not metrics.get('description'):
            issues.append(_issue('error', 'Page is missing a meta description', 'high'))
        elif metrics['description_length'] < 50:
            issues.append(_issue('warning', 'Meta description is too short (< 50 characters)', 'medium'))
        elif metrics['description_length'] > 160:
            issues.append(_issue('warning', 'Meta description is too long (> 160 characters)', 'medium'))

        if metrics['h1_count'] == 0:
            issues.append(_issue('error', 'Page is missing an H1 tag', 'high'))
        elif metrics['h1_count'] > 1:
            issues.append(_issue('warning', f"Page has multiple H1 tags ({metrics['h1_count']})", 'medium'))

        if metrics['images_without_alt'] > 0:
            issues.append(_issue(
                'warning', f"{metrics['images_without_alt']} images are missing alt attributes", 'medium'
            ))

        if not metrics['has_viewport']:
            issues.append(_issue('error', 'Page is missing viewport meta tag', 'high'))
        if not metrics['has_robots']:
            issues.append(_issue('warning', 'Page is missing robots meta tag', 'low'))
        if not metrics['has_canonical']:
            issues.append(_issue('warning', 'Page is missing canonical URL', 'medium'))
        if not metrics['has_schema']:
            issues.append(_issue('warning', 'Page is missing structured data markup', 'medium'))

        if metrics['word_count'] < 300:
            issues.append(_issue('warning', 'Page has thin content (< 300 words)', 'medium'))

        errors = sum(1 for i in issues if i['type'] == 'error')
        warnings = sum(1 for i in issues if i['type'] == 'warning')

        return {
            'score': max(0, 100 - errors * ERROR_PENALTY - warnings * WARNING_PENALTY),
            'issues': issues
        }


def _localname(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def parse_sitemap(xml_text: str) -> List[Dict]:
    """Entries of a <urlset> sitemap. Sitemap indexes and other roots yield []."""
    root = ET.fromstring(xml_text)
    if _localname(root.tag) != 'urlset':
        return []

    entries = []
    for node in root:
        if _localname(node.tag) != 'url':
            continue
        entry = {}
        for child in node:
            if child.text:
                entry[_localname(child.tag)] = child.text.strip()
        if entry.get('loc'):
            entries.append(entry)
    return entries


def fetch_sitemap(base_url: str, custom_sitemap_url: Optional[str] = None,
                  session: requests.Session = None) -> List[Dict]:
    """
    Find and parse the site's sitemap.

    Falls back to the base URL alone when no sitemap can be read.
    """
    session = session or requests.Session()
    base = base_url.rstrip('/')
    urls = [custom_sitemap_url] if custom_sitemap_url else [f"{base}/{name}" for name in SITEMAP_CANDIDATES]

    for url in urls:
        try:
            response = session.get(url, timeout=15)
            if not response.ok:
                continue
            entries = parse_sitemap(response.text)
        except (requests.RequestException, ET.ParseError) as e:
            logger.error(f"Error fetching sitemap from {url}: {e}")
            continue

        if entries:
            logger.info(f"Found {len(entries)} URLs in {url}")
            return entries

    return [{'loc': base_url}]


def _empty_metrics(url: str) -> Dict:
    return {
        'url': url,
        'title': '',
        'title_length': 0,
        'description': '',
        'description_length': 0,
        'h1_count': 0,
        'h1_tags': [],
        'h2_count': 0,
        'h2_tags': [],
        'image_count': 0,
        'images_without_alt': 0,
        'word_count': 0,
        'has_canonical': False,
        'has_robots': False,
        'has_viewport': False,
        'has_schema': False,
        'meta_tags': []
    }


def analyze_page(url: str, session: requests.Session = None) -> Dict:
    """Fetch and audit one page. Fetch failures become a zero-score record."""
    session = session or requests.Session()
    analyzer = ContentAnalyzer()
    try:
        response = session.get(url, timeout=15)
        if not response.ok:
            raise requests.HTTPError(f"Failed to fetch page: {response.status_code} {response.reason}")

        metrics = analyzer.analyze(response.text, url)
        analysis = analyzer.get_analysis(metrics)

        return {
            'url': url,
            'title': metrics['title'],
            'word_count': metrics['word_count'],
            'score': analysis['score'],
            'last_updated': datetime.now().isoformat(),
            'metrics': metrics,
            'issues': analysis['issues']
        }
    except requests.RequestException as e:
        logger.error(f"Error analyzing page {url}: {e}")
        return {
            'url': url,
            'title': None,
            'word_count': 0,
            'score': 0,
            'last_updated': datetime.now().isoformat(),
            'metrics': _empty_metrics(url),
            'issues': [_issue('error', f"Failed to analyze page: {e}", 'high')]
        }


def run_content_audit(domain: str, sitemap_url: Optional[str] = None,
                      limit: int = MAX_AUDIT_PAGES, session: requests.Session = None) -> Dict:
    """
    Audit every page listed in the site's sitemap.

    Args:
        domain: Project domain, with or without protocol
        sitemap_url: Explicit sitemap location
        limit: Maximum pages to analyze

    Returns:
        Dict with per-page results and summary figures
    """
    session = session or requests.Session()
    base_url = ensure_protocol(domain)

    entries = fetch_sitemap(base_url, sitemap_url, session=session)
    pages = [analyze_page(entry['loc'], session=session) for entry in entries[:limit]]

    scores = [page['score'] for page in pages]
    return {
        'pages': pages,
        'sitemap_url': sitemap_url,
        'summary': {
            'pages_found': len(entries),
            'pages_analyzed': len(pages),
            'average_score': round(sum(scores) / len(scores)) if scores else 0,
            'total_issues': sum(len(page['issues']) for page in pages)
        }
    }
