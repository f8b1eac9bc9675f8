"""
On-page keyword extraction.

Breaks a page into title, description, headings and body, counts every
1-4 word phrase per region and reports usage, a difficulty estimate and
Google autocomplete suggestions for each phrase.
"""
import re
import logging
from collections import Counter
from typing import Dict, List

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

logger = logging.getLogger(__name__)

SUGGEST_URL = 'https://suggestqueries.google.com/complete/search'
MAX_PHRASE_LENGTH = 4
DEFAULT_DIFFICULTY = 50
SUGGESTION_DENSITY = 0.5
COMPETITOR_DENSITY = 1.0

WORD_RE = re.compile(r"[A-Za-z0-9_]+")


def clean_text(text: str) -> str:
    text = re.sub(r"[^a-z0-9\s]", ' ', text.lower())
    return re.sub(r"\s+", ' ', text).strip()


def tokenize(text: str) -> List[str]:
    return WORD_RE.findall(text)


def extract_keywords(text: str) -> Counter:
    """Frequencies of every 1-4 word phrase in the text."""
    words = tokenize(clean_text(text))
    frequencies = Counter()
    for i in range(len(words)):
        for length in range(1, MAX_PHRASE_LENGTH + 1):
            if i + length > len(words):
                break
            frequencies[' '.join(words[i:i + length])] += 1
    return frequencies


# Elements that belong to <head> even when the markup omits the head tag
HEAD_ELEMENTS = {'head', 'title', 'meta', 'link', 'base', 'style'}


def page_text(soup: BeautifulSoup) -> str:
    """
    Text content of the page body.

    html.parser does not synthesize <body> for markup that leaves it out,
    so in that case everything outside head-only elements counts as body.
    """
    if soup.body:
        return soup.body.get_text(' ')

    root = soup.html or soup
    parts = []
    for child in root.children:
        if isinstance(child, Tag):
            if child.name not in HEAD_ELEMENTS:
                parts.append(child.get_text(' '))
        elif type(child) is NavigableString:
            parts.append(str(child))
    return ' '.join(parts)


def calculate_difficulty(competitors: List[Dict], term: str) -> int:
    """
    Estimate ranking difficulty (0-100) from competitor pages.

    Half the score comes from how many competitors there are, half from how
    well they optimize for the term (title, description, headings, density).
    """
    if not competitors:
        return DEFAULT_DIFFICULTY

    score = min(len(competitors) / 10 * 50, 50)

    optimization = 0.0
    for competitor in competitors:
        sub_score = 0
        keyword_data = next(
            (k for k in competitor.get('keywords', []) if k['keyword'].lower() == term.lower()),
            None
        )
        if keyword_data:
            positions = keyword_data['positions']
            if positions.get('title'):
                sub_score += 10
            if positions.get('description'):
                sub_score += 5
            if positions.get('headings'):
                sub_score += 5
            sub_score += min(keyword_data.get('density', 0) * 10, 10)
        optimization += sub_score / 30 * 50

    score += optimization / len(competitors)
    return min(int(score + 0.5), 100)


def _relevance(result: Dict) -> float:
    usage = result['usage']
    weight = (
        (4 if usage['positions']['title'] else 0) +
        (2 if usage['positions']['headings'] else 0) +
        (1 if usage['positions']['description'] else 0)
    )
    return usage['density'] * weight


class KeywordAnalyzer:
    def __init__(self, session: requests.Session = None, fetch_suggestions: bool = True, timeout: int = 10):
        self.session = session or requests.Session()
        self.fetch_suggestions = fetch_suggestions
        self.timeout = timeout
        self._suggestion_cache: Dict[str, List[str]] = {}

    def fetch_keyword_suggestions(self, term: str) -> List[str]:
        """Google autocomplete suggestions for a term; [] on any failure."""
        if term in self._suggestion_cache:
            return self._suggestion_cache[term]

        suggestions = []
        try:
            response = self.session.get(
                SUGGEST_URL,
                params={'client': 'firefox', 'q': term},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
            if len(data) > 1 and isinstance(data[1], list):
                suggestions = data[1]
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error fetching suggestions for \"{term}\": {e}")

        self._suggestion_cache[term] = suggestions
        return suggestions

    def get_competitor_data(self, term: str) -> List[Dict]:
        # SERP scraping is rate limited; competitor pages are not collected yet
        return []

    def analyze(self, html: str) -> List[Dict]:
        """
        Analyze keyword usage on a page.

        Returns:
            Keyword metrics sorted by relevance (density weighted by where
            the phrase appears)
        """
        soup = BeautifulSoup(html or '', 'html.parser')

        title = soup.title.get_text() if soup.title else ''
        meta = soup.find('meta', attrs={'name': 'description'})
        description = meta.get('content', '') if meta else ''
        h1s = ' '.join(el.get_text() for el in soup.find_all('h1'))
        h2s = ' '.join(el.get_text() for el in soup.find_all('h2'))
        body_text = page_text(soup)

        title_keywords = extract_keywords(title)
        description_keywords = extract_keywords(description)
        heading_keywords = extract_keywords(f"{h1s} {h2s}")
        content_keywords = extract_keywords(body_text)

        # Ordered union of phrases across regions
        keywords = list(dict.fromkeys(
            list(title_keywords) + list(description_keywords) +
            list(heading_keywords) + list(content_keywords)
        ))

        total_words = len(tokenize(body_text)) or 1

        results = []
        for keyword in keywords:
            if len(keyword) < 2:
                continue

            count = content_keywords.get(keyword, 0)
            usage = {
                'keyword': keyword,
                'count': count,
                'positions': {
                    'title': keyword in title_keywords,
                    'description': keyword in description_keywords,
                    'headings': keyword in heading_keywords,
                    'content': count > 0
                },
                'density': count / total_words * 100
            }

            competitors = []
            positions = usage['positions']
            if positions['title'] or positions['headings'] or usage['density'] > COMPETITOR_DENSITY:
                competitors = self.get_competitor_data(keyword)

            suggestions = []
            if self.fetch_suggestions and usage['density'] > SUGGESTION_DENSITY:
                suggestions = self.fetch_keyword_suggestions(keyword)

            results.append({
                'keyword': keyword,
                'usage': usage,
                'competition': {
                    'difficulty': calculate_difficulty(competitors, keyword),
                    'competitor_count': len(competitors),
                    'top_competitors': competitors[:5]
                },
                'suggestions': [{'keyword': s, 'source': 'google'} for s in suggestions]
            })

        results.sort(key=_relevance, reverse=True)
        logger.info(f"Extracted {len(results)} keyword phrases ({total_words} body words)")
        return results
