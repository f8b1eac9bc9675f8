"""
Pytest configuration and shared fixtures.

Provides an in-memory stand-in for the Supabase query builder so services
and routes can be exercised without a database or network.
"""
import uuid
from unittest.mock import MagicMock

import pytest
import requests


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Supports the subset of the PostgREST builder the services use."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.filters = []
        self.action = 'select'
        self.payload = None
        self.want_count = False
        self.order_by = None

    # Actions
    def select(self, columns='*', count=None):
        self.action = 'select'
        self.want_count = count is not None
        return self

    def insert(self, payload):
        self.action = 'insert'
        self.payload = payload
        return self

    def update(self, payload):
        self.action = 'update'
        self.payload = payload
        return self

    # Filters
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])

        if self.action == 'insert':
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for payload in payloads:
                row = {'id': str(uuid.uuid4()), **payload}
                rows.append(row)
                inserted.append(dict(row))
            return FakeResponse(inserted)

        matched = self._matching()
        if self.action == 'update':
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column) or '', reverse=desc)
        data = [dict(row) for row in matched]
        return FakeResponse(data, count=len(data) if self.want_count else None)


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.get(name, [])


def make_response(text='', status_code=200, headers=None, url='https://example.com/', json_data=None):
    """A requests.Response-like mock."""
    response = MagicMock()
    response.text = text
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = 'OK' if status_code < 400 else 'Error'
    response.headers = headers or {}
    response.url = url
    response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def project_db():
    """Two organizations, one project each, with keywords and backlinks."""
    return FakeSupabase({
        'projects': [
            {'id': 'p1', 'name': 'Acme', 'url': 'https://acme.com', 'domain': 'acme.com',
             'organization_id': 'org1', 'sitemap_url': None, 'ga_property_id': '123',
             'gsc_verified_site': 'https://acme.com/'},
            {'id': 'p2', 'name': 'Other', 'url': 'https://other.com', 'domain': 'other.com',
             'organization_id': 'org2'},
        ],
        'keywords': [
            {'id': 'k1', 'project_id': 'p1', 'keyword': 'buy running shoes', 'search_volume': 1000,
             'difficulty': 40, 'current_rank': 5, 'best_rank': 5, 'intent': 'TRANSACTIONAL'},
            {'id': 'k2', 'project_id': 'p1', 'keyword': 'running shoes review', 'search_volume': 100,
             'difficulty': 60, 'current_rank': 0, 'best_rank': 0, 'intent': None},
            {'id': 'k3', 'project_id': 'p2', 'keyword': 'other keyword', 'search_volume': 10,
             'difficulty': 10, 'current_rank': 30, 'best_rank': 30},
        ],
        'backlinks': [
            {'id': 'b1', 'project_id': 'p1', 'url': 'https://blog.example.org/post',
             'target_url': 'https://acme.com/shoes', 'anchor_text': 'acme shoes', 'status': 'ACTIVE',
             'domain_authority': 30, 'created_at': '2020-01-01T00:00:00+00:00'},
            {'id': 'b2', 'project_id': 'p1', 'url': 'https://news.example.net/story',
             'target_url': 'https://acme.com/', 'anchor_text': 'acme', 'status': 'ACTIVE',
             'domain_authority': 50, 'created_at': '2099-01-01T00:00:00+00:00'},
        ],
        'keyword_history': [],
        'backlink_history': [],
    })


@pytest.fixture
def http_response():
    """Factory for requests.Response-like mocks."""
    return make_response
