"""
Route tests for the Flask API. The Supabase client is replaced with the
in-memory fake and outbound services are patched at the route module.
"""
from unittest.mock import MagicMock, patch

import pytest

from seodesk import db
from seodesk.index import app
from seodesk.ranking_service import RankingError
from seodesk.utils import ConfigurationError

ORG1_USER = {'id': 'u1', 'email': 'user@acme.com', 'role': 'user', 'organization_id': 'org1'}
ORG2_USER = {'id': 'u2', 'email': 'user@other.com', 'role': 'user', 'organization_id': 'org2'}
ADMIN = {'id': 'a1', 'email': 'admin@seodesk.io', 'role': 'admin', 'organization_id': None}


@pytest.fixture
def client(project_db):
    app.config['TESTING'] = True
    db.set_client(project_db)
    with app.test_client() as test_client:
        yield test_client
    db.set_client(None)


def login(client, user=ORG1_USER, google=False):
    with client.session_transaction() as sess:
        sess['user'] = user
        if google:
            sess['google_tokens'] = {'access_token': 'ya29.token'}


def test_ping(client):
    response = client.get('/ping')
    assert response.status_code == 200
    assert response.json['supabase_connected'] is True


class TestAccess:
    def test_requires_login(self, client):
        assert client.get('/api/projects/p1/metrics').status_code == 401

    def test_other_organization_is_not_found(self, client):
        login(client, ORG2_USER)
        response = client.get('/api/projects/p1/metrics')
        assert response.status_code == 404
        assert response.json['error'] == 'Project not found'

    def test_user_without_organization(self, client):
        login(client, {'id': 'u3', 'role': 'user', 'organization_id': None})
        assert client.get('/api/projects/p1/metrics').status_code == 404

    def test_admin_sees_any_project(self, client):
        login(client, ADMIN)
        assert client.get('/api/projects/p2/metrics').status_code == 200

    def test_missing_database(self, client):
        login(client)
        with patch('seodesk.index.db.get_client', return_value=None):
            assert client.get('/api/projects/p1/metrics').status_code == 500


def test_project_metrics(client):
    login(client)
    response = client.get('/api/projects/p1/metrics')

    assert response.status_code == 200
    assert response.json['keywords']['total'] == 2
    assert response.json['keywords']['visibility'] == 80
    assert response.json['backlinks']['average_domain_authority'] == 40


def test_dashboard_stats(client):
    login(client)
    response = client.get('/api/dashboard/stats')
    assert response.json['total_projects'] == 1
    assert response.json['total_keywords'] == 2


def test_keyword_research(client):
    login(client)
    assert client.get('/api/keywords/research').status_code == 400

    response = client.get('/api/keywords/research?term=seo')
    assert response.status_code == 200
    assert response.json['total'] == len(response.json['suggestions'])
    assert 'best seo' in response.json['suggestions']


class TestKeywordRoutes:
    def test_analyze_stores_priority(self, client, project_db):
        login(client)
        response = client.post('/api/projects/p1/keywords/analyze',
                               json={'keywords': ['buy running shoes', 'not tracked']})

        assert response.status_code == 200
        assert len(response.json) == 1
        analyzed = response.json[0]
        assert analyzed['keyword'] == 'buy running shoes'
        assert analyzed['priority_description']

        row = next(k for k in project_db.rows('keywords') if k['id'] == 'k1')
        assert row['priority'] == analyzed['priority']

    def test_analyze_rejects_bad_payload(self, client):
        login(client)
        assert client.post('/api/projects/p1/keywords/analyze', json={'keywords': 'x'}).status_code == 400

    def test_cluster(self, client, project_db):
        login(client)
        response = client.post('/api/projects/p1/keywords/cluster',
                               json={'keywords': ['buy running shoes', {'keyword': 'running shoes review'}]})

        assert response.status_code == 200
        clustered = [k for c in response.json['clusters'] for k in c['keywords']]
        assert sorted(clustered) == ['buy running shoes', 'running shoes review']
        assert all(k['cluster_name'] for k in project_db.rows('keywords') if k['project_id'] == 'p1')

    @pytest.mark.parametrize('payload', [{}, {'keywords': []}, {'keywords': ['ok', 3]}, {'keywords': ['  ']}])
    def test_cluster_rejects_bad_payload(self, client, payload):
        login(client)
        assert client.post('/api/projects/p1/keywords/cluster', json=payload).status_code == 400

    def test_extract(self, client, http_response):
        login(client)
        page = http_response(text='<title>Acme shoes</title><p>acme shoes</p>')
        with patch('seodesk.index.requests.get', return_value=page) as get:
            response = client.post('/api/projects/p1/keywords/extract', json={'suggestions': False})

        assert response.status_code == 200
        assert get.call_args.args[0] == 'https://acme.com'
        assert 'acme shoes' in [k['keyword'] for k in response.json['keywords']]

    def test_extract_unreachable_page(self, client, http_response):
        login(client)
        with patch('seodesk.index.requests.get', return_value=http_response(status_code=503)):
            response = client.post('/api/projects/p1/keywords/extract', json={'url': 'https://acme.com/x'})
        assert response.status_code == 400

    def test_extract_rejects_non_numeric_limit(self, client):
        login(client)
        with patch('seodesk.index.requests.get') as get:
            response = client.post('/api/projects/p1/keywords/extract', json={'limit': 'all'})

        assert response.status_code == 400
        get.assert_not_called()

    @pytest.mark.parametrize('url', ['https://evil.example/', 'http://169.254.169.254/latest', 'https://notacme.com/'])
    def test_extract_only_fetches_project_pages(self, client, url):
        login(client)
        with patch('seodesk.index.requests.get') as get:
            response = client.post('/api/projects/p1/keywords/extract', json={'url': url})

        assert response.status_code == 400
        get.assert_not_called()

    def test_extract_allows_subdomain(self, client, http_response):
        login(client)
        page = http_response(text='<body><p>shop shoes</p></body>')
        with patch('seodesk.index.requests.get', return_value=page) as get:
            response = client.post('/api/projects/p1/keywords/extract',
                                   json={'url': 'https://shop.acme.com/', 'suggestions': False, 'limit': '5'})

        assert response.status_code == 200
        get.assert_called_once()
        assert len(response.json['keywords']) <= 5


class TestCheckRanking:
    def test_updates_rank(self, client):
        login(client)
        with patch('seodesk.index.update_keyword_ranking', return_value=4) as update:
            response = client.post('/api/projects/p1/keywords/k1/check-ranking')

        assert response.status_code == 200
        assert response.json == {'keyword_id': 'k1', 'rank': 4}
        assert update.call_args.args[1:] == ('k1', 'acme.com')

    def test_keyword_of_other_project(self, client):
        login(client)
        assert client.post('/api/projects/p1/keywords/k3/check-ranking').status_code == 404

    def test_serpapi_failure(self, client):
        login(client)
        with patch('seodesk.index.update_keyword_ranking', side_effect=RankingError('quota')):
            assert client.post('/api/projects/p1/keywords/k1/check-ranking').status_code == 502

    def test_missing_api_key(self, client):
        login(client)
        error = ConfigurationError('SERPAPI_API_KEY environment variable is required')
        with patch('seodesk.index.update_keyword_ranking', side_effect=error):
            response = client.post('/api/projects/p1/keywords/k1/check-ranking')
        assert response.status_code == 500
        assert 'SERPAPI_API_KEY' in response.json['error']


class TestBacklinkRoutes:
    def test_check_unknown_backlink(self, client):
        login(client)
        assert client.post('/api/projects/p1/backlinks/missing/check').status_code == 404

    def test_recheck(self, client):
        login(client)
        with patch('seodesk.index.BacklinkAnalyzer') as analyzer_cls:
            analyzer_cls.return_value.check_all_backlinks.return_value = {'ACTIVE': 2, 'LOST': 0, 'BROKEN': 0}
            response = client.post('/api/projects/p1/backlinks/recheck')

        assert response.json == {'success': True, 'statuses': {'ACTIVE': 2, 'LOST': 0, 'BROKEN': 0}}

    def test_discover_requires_urls(self, client):
        login(client)
        assert client.post('/api/projects/p1/backlinks/discover', json={}).status_code == 400

    def test_stats(self, client):
        login(client)
        response = client.get('/api/projects/p1/backlinks/stats?days=7')

        assert response.status_code == 200
        assert response.json['anchor_text_distribution'] == {'acme shoes': 1, 'acme': 1}
        assert response.json['growth'] == {}


class TestAuditRoutes:
    def test_content_audit_saves_custom_sitemap(self, client, project_db):
        login(client)
        audit = {'pages': [], 'sitemap_url': 'https://acme.com/map.xml', 'summary': {}}
        with patch('seodesk.index.run_content_audit', return_value=audit) as run:
            response = client.get('/api/projects/p1/content?sitemapUrl=https://acme.com/map.xml')

        assert response.status_code == 200
        run.assert_called_once_with('acme.com', 'https://acme.com/map.xml')
        assert project_db.rows('projects')[0]['sitemap_url'] == 'https://acme.com/map.xml'

    def test_technical_missing_key(self, client):
        login(client)
        error = ConfigurationError('GOOGLE_PAGESPEED_API_KEY environment variable is required')
        with patch('seodesk.index.get_page_speed_data', side_effect=error):
            response = client.get('/api/projects/p1/technical')

        assert response.status_code == 500
        assert response.json['error'] == str(error)

    def test_technical(self, client):
        login(client)
        with patch('seodesk.index.get_page_speed_data', return_value={'performance': {'score': 90}}) as speed:
            response = client.get('/api/projects/p1/technical')

        assert response.json == {'performance': {'score': 90}}
        speed.assert_called_once_with('https://acme.com')


class TestGoogleRoutes:
    def test_requires_google_connection(self, client):
        login(client)
        assert client.get('/api/projects/p1/analytics').status_code == 401

    def test_analytics_for_date_range(self, client):
        login(client, google=True)
        with patch('seodesk.index.credentials_from_tokens', return_value=MagicMock()), \
                patch('seodesk.index.GoogleAnalyticsService') as service_cls:
            service_cls.return_value.get_analytics_with_changes.return_value = {'users': 10}
            response = client.get('/api/projects/p1/analytics?start_date=2024-01-01&end_date=2024-01-31')

        assert response.json == {'users': 10}
        assert service_cls.call_args.args[1] == '123'
        service_cls.return_value.get_analytics_with_changes.assert_called_once_with('2024-01-01', '2024-01-31')

    def test_analytics_without_property(self, client):
        login(client, ORG2_USER, google=True)
        assert client.get('/api/projects/p2/analytics').status_code == 400

    def test_search_console(self, client):
        login(client, google=True)
        with patch('seodesk.index.credentials_from_tokens', return_value=MagicMock()), \
                patch('seodesk.index.GoogleSearchConsoleService') as service_cls:
            gsc = service_cls.from_credentials.return_value
            gsc.get_page_analytics.return_value = {'rows': [{'keys': ['https://acme.com/'], 'clicks': 3}]}
            response = client.get('/api/projects/p1/search-console?start_date=2024-01-01&end_date=2024-01-31')

        assert response.status_code == 200
        gsc.get_page_analytics.assert_called_once_with('https://acme.com/', '2024-01-01', '2024-01-31',
                                                        row_limit=10)

    def test_no_analytics_properties(self, client):
        login(client, google=True)
        with patch('seodesk.index.credentials_from_tokens', return_value=MagicMock()), \
                patch('seodesk.index.list_properties', return_value=[]):
            assert client.get('/api/analytics/properties').status_code == 404
