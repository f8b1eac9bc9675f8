"""
Backlink monitoring for a project.

Checks whether referring pages still link to the project, scores the
project domain with a heuristic authority (1-100), and summarizes
anchor text and status history.
"""
import logging
from collections import Counter
from datetime import timedelta
from email.utils import parsedate_to_datetime
from typing import Dict, List
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from seodesk.utils import hostname, utcnow, utcnow_iso

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
MAX_REDIRECTS = 5

# Domain authority weights
AGE_POINTS_PER_YEAR = 2
POINTS_PER_BACKLINK = 0.5
HTTPS_POINTS = 10
ROBOTS_POINTS = 5
SITEMAP_POINTS = 5

REL_TYPES = [('sponsored', 'SPONSORED'), ('ugc', 'UGC'), ('nofollow', 'NOFOLLOW')]


def validate_backlink(html: str, target_url: str) -> str:
    """ACTIVE when the target URL still appears in the page, LOST otherwise."""
    return 'ACTIVE' if target_url in html else 'LOST'


def backlink_type(rel) -> str:
    values = [v.lower() for v in (rel or [])]
    for marker, link_type in REL_TYPES:
        if marker in values:
            return link_type
    return 'DOFOLLOW'


class BacklinkAnalyzer:
    def __init__(self, project_id: str, project_domain: str, client, session: requests.Session = None):
        self.project_id = project_id
        self.project_domain = project_domain
        self.client = client
        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECTS

    # -------------------------------------------------------------------------
    # Status checks
    # -------------------------------------------------------------------------

    def check_backlink_status(self, backlink: Dict) -> str:
        """
        Re-crawl the referring page and record whether the link survives.

        Args:
            backlink: Row with id, url and target_url

        Returns:
            New status (ACTIVE, LOST or BROKEN)
        """
        try:
            response = self.session.get(backlink['url'], timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            status = validate_backlink(response.text, backlink['target_url'])
        except requests.RequestException as e:
            logger.error(f"Failed to check backlink {backlink['url']}: {e}")
            status = 'BROKEN'

        domain_authority = self.calculate_domain_authority(hostname(self.project_domain))
        self._update_backlink_status(backlink['id'], status, domain_authority)
        self._record_backlink_history(backlink['id'], status, domain_authority)
        return status

    def check_all_backlinks(self) -> Dict[str, int]:
        """Recheck every backlink of the project, one at a time."""
        backlinks = self.client.table('backlinks').select('id, url, target_url') \
            .eq('project_id', self.project_id).execute()

        counts = Counter({'ACTIVE': 0, 'LOST': 0, 'BROKEN': 0})
        for backlink in backlinks.data or []:
            counts[self.check_backlink_status(backlink)] += 1

        logger.info(f"Rechecked {sum(counts.values())} backlinks for project {self.project_id}: {dict(counts)}")
        return dict(counts)

    def _update_backlink_status(self, backlink_id: str, status: str, domain_authority: int):
        self.client.table('backlinks').update({
            'status': status,
            'domain_authority': domain_authority,
            'last_checked': utcnow_iso()
        }).eq('id', backlink_id).execute()

    def _record_backlink_history(self, backlink_id: str, status: str, domain_authority: int):
        self.client.table('backlink_history').insert({
            'backlink_id': backlink_id,
            'project_id': self.project_id,
            'status': status,
            'domain_authority': domain_authority,
            'checked_at': utcnow_iso()
        }).execute()

    # -------------------------------------------------------------------------
    # Domain authority
    # -------------------------------------------------------------------------

    def _is_reachable(self, url: str) -> bool:
        try:
            return self.session.get(url, timeout=REQUEST_TIMEOUT).ok
        except requests.RequestException:
            return False

    def calculate_domain_authority(self, domain: str) -> int:
        """
        Heuristic authority score for a domain, 1-100.

        Combines age (from the home page Last-Modified header), the
        project's active backlinks, HTTPS, and crawl signals (robots.txt
        and sitemap.xml present).
        """
        try:
            response = self.session.get(f"https://{domain}", timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"Failed to calculate domain authority for {domain}: {e}")
            return 1

        domain_age = 1
        last_modified = response.headers.get('last-modified')
        if last_modified:
            try:
                modified = parsedate_to_datetime(last_modified)
                domain_age = (utcnow() - modified).days // 365
            except (TypeError, ValueError):
                logger.debug(f"Unparseable Last-Modified for {domain}: {last_modified}")

        # Only this project's rows; other tenants never affect the score
        result = self.client.table('backlinks').select('id', count='exact') \
            .eq('project_id', self.project_id).eq('status', 'ACTIVE').execute()
        domain_backlinks = result.count or 0

        score = domain_age * AGE_POINTS_PER_YEAR + domain_backlinks * POINTS_PER_BACKLINK
        if response.url.startswith('https://'):
            score += HTTPS_POINTS
        base = f"https://{domain}"
        if self._is_reachable(f"{base}/robots.txt"):
            score += ROBOTS_POINTS
        if self._is_reachable(f"{base}/sitemap.xml"):
            score += SITEMAP_POINTS

        return max(1, min(100, int(score)))

    # -------------------------------------------------------------------------
    # Discovery and reporting
    # -------------------------------------------------------------------------

    def discover_backlinks(self, candidate_urls: List[str]) -> List[Dict]:
        """
        Crawl candidate referring pages for links to the project domain.

        Returns:
            Backlink dicts (url, target_url, anchor_text, type)
        """
        project_host = hostname(self.project_domain)
        found = []

        for page_url in candidate_urls:
            try:
                response = self.session.get(page_url, timeout=REQUEST_TIMEOUT)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.warning(f"Skipping {page_url}: {e}")
                continue

            soup = BeautifulSoup(response.text, 'html.parser')
            for anchor in soup.find_all('a', href=True):
                target = urljoin(page_url, anchor['href'])
                if not target.startswith(('http://', 'https://')):
                    continue
                target_host = hostname(target)
                if target_host != project_host and not target_host.endswith(f".{project_host}"):
                    continue
                found.append({
                    'url': page_url,
                    'target_url': target,
                    'anchor_text': anchor.get_text(strip=True),
                    'type': backlink_type(anchor.get('rel'))
                })

        logger.info(f"Discovered {len(found)} backlinks across {len(candidate_urls)} pages")
        return found

    def analyze_anchor_text_distribution(self) -> Dict[str, int]:
        backlinks = self.client.table('backlinks').select('anchor_text') \
            .eq('project_id', self.project_id).eq('status', 'ACTIVE').execute()
        return dict(Counter(row['anchor_text'] for row in backlinks.data or []))

    def get_backlink_growth(self, days: int = 30) -> Dict[str, Dict[str, int]]:
        """Daily active/lost/broken check counts over the last `days` days."""
        start_date = utcnow() - timedelta(days=days)

        history = self.client.table('backlink_history').select('status, checked_at') \
            .eq('project_id', self.project_id) \
            .gte('checked_at', start_date.isoformat()) \
            .order('checked_at').execute()

        growth = {}
        for record in history.data or []:
            day = record['checked_at'][:10]
            bucket = growth.setdefault(day, {'active': 0, 'lost': 0, 'broken': 0})
            status = record['status'].lower()
            if status in bucket:
                bucket[status] += 1
        return growth
