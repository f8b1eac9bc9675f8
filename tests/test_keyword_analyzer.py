from unittest.mock import MagicMock

import pytest
import requests

from seodesk.keyword_analyzer import (
    KeywordAnalyzer,
    calculate_difficulty,
    extract_keywords,
)

PAGE = """
<html>
  <head>
    <title>Running Shoes Guide</title>
    <meta name="description" content="Find running shoes">
  </head>
  <body>
    <h1>Running Shoes</h1>
    <p>running shoes are great. choose running shoes wisely.</p>
  </body>
</html>
"""


def test_extract_keywords_counts_phrases_up_to_four_words():
    frequencies = extract_keywords('The quick, brown fox! The quick fox.')

    assert frequencies['the quick'] == 2
    assert frequencies['quick brown fox'] == 1
    assert frequencies['the quick brown fox'] == 1
    assert 'the quick brown fox the' not in frequencies


class TestAnalyze:
    @pytest.fixture
    def results(self):
        return KeywordAnalyzer(fetch_suggestions=False).analyze(PAGE)

    def test_phrase_usage(self, results):
        by_keyword = {r['keyword']: r for r in results}
        usage = by_keyword['running shoes']['usage']

        assert usage['count'] == 3
        assert usage['density'] == pytest.approx(30.0)
        assert usage['positions'] == {
            'title': True, 'description': True, 'headings': True, 'content': True
        }

    def test_title_only_phrase(self, results):
        usage = {r['keyword']: r for r in results}['guide']['usage']
        assert usage['count'] == 0
        assert usage['positions']['title'] is True
        assert usage['positions']['content'] is False

    def test_sorted_by_relevance(self, results):
        top = {r['keyword'] for r in results[:3]}
        assert top == {'running', 'shoes', 'running shoes'}

    def test_default_difficulty_without_competitors(self, results):
        assert all(r['competition']['difficulty'] == 50 for r in results)
        assert all(r['suggestions'] == [] for r in results)

    def test_page_without_body_tag(self):
        html = '<title>Acme</title><h1>Acme shoes</h1><p>acme shoes fit. buy acme shoes.</p>'

        results = KeywordAnalyzer(fetch_suggestions=False).analyze(html)

        usage = {r['keyword']: r for r in results}['acme shoes']['usage']
        assert usage['count'] == 3
        assert usage['positions']['content'] is True
        # 'acme' appears in the title, which is not body text
        assert {r['keyword']: r for r in results}['acme']['usage']['count'] == 3

    def test_empty_document(self):
        assert KeywordAnalyzer(fetch_suggestions=False).analyze('') == []


class TestSuggestions:
    def test_fetches_and_caches(self, http_response):
        session = MagicMock()
        session.get.return_value = http_response(json_data=['seo', ['seo tools', 'seo tips']])
        analyzer = KeywordAnalyzer(session=session)

        assert analyzer.fetch_keyword_suggestions('seo') == ['seo tools', 'seo tips']
        assert analyzer.fetch_keyword_suggestions('seo') == ['seo tools', 'seo tips']
        assert session.get.call_count == 1
        assert session.get.call_args.kwargs['params'] == {'client': 'firefox', 'q': 'seo'}

    def test_failure_yields_empty_list(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError('down')

        assert KeywordAnalyzer(session=session).fetch_keyword_suggestions('seo') == []

    def test_dense_phrases_get_suggestions(self, http_response):
        session = MagicMock()
        session.get.return_value = http_response(json_data=['x', ['idea']])

        results = KeywordAnalyzer(session=session).analyze(PAGE)

        by_keyword = {r['keyword']: r for r in results}
        assert by_keyword['running shoes']['suggestions'] == [{'keyword': 'idea', 'source': 'google'}]
        assert by_keyword['guide']['suggestions'] == []


class TestDifficulty:
    def test_no_competitors(self):
        assert calculate_difficulty([], 'seo') == 50

    def test_competitor_optimization(self):
        competitor = {
            'keywords': [{
                'keyword': 'SEO',
                'positions': {'title': True, 'description': False, 'headings': False},
                'density': 0
            }]
        }
        # 50 for ten competitors plus 10/30 * 50 optimization each
        assert calculate_difficulty([competitor] * 10, 'seo') == 67

    def test_capped_at_100(self):
        competitor = {
            'keywords': [{
                'keyword': 'seo',
                'positions': {'title': True, 'description': True, 'headings': True},
                'density': 5
            }]
        }
        assert calculate_difficulty([competitor] * 20, 'seo') == 100
