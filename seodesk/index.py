#!/usr/bin/env python3
"""
SEO Management Platform - Main API
Flask application exposing project-scoped SEO analysis with multi-tenant
(organization) isolation.
"""
import os
import logging
from datetime import date, timedelta
from functools import wraps

import requests
from flask import Flask, jsonify, request, session
from flask_cors import CORS
from dotenv import load_dotenv

from seodesk import db
from seodesk.backlink_analyzer import BacklinkAnalyzer
from seodesk.content_analyzer import run_content_audit
from seodesk.google_analytics_service import GoogleAnalyticsService, list_properties
from seodesk.google_auth import credentials_from_tokens
from seodesk.google_search_console_service import GoogleSearchConsoleService
from seodesk.keyword_analyzer import KeywordAnalyzer
from seodesk.keyword_clustering import apply_clusters, cluster_keywords
from seodesk.keyword_research import generate_keyword_suggestions
from seodesk.keyword_scoring import calculate_priority_score, get_priority_description
from seodesk.metrics import get_dashboard_stats, get_keyword_visibility, get_project_metrics
from seodesk.pagespeed import get_page_speed_data
from seodesk.ranking_service import RankingError, update_keyword_ranking
from seodesk.utils import ConfigurationError, ensure_protocol, hostname

# Load environment variables
load_dotenv()

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask
app = Flask(__name__)
app.secret_key = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key')
CORS(app)

db.init_clients()

DEFAULT_ANALYTICS_DAYS = 28

# =============================================================================
# AUTH DECORATORS
# =============================================================================

def login_required(f):
    """Require user to be logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def google_required(f):
    """Require Google OAuth tokens in the session."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('google_tokens', {}).get('access_token'):
            return jsonify({'error': 'Google account not connected'}), 401
        return f(*args, **kwargs)
    return decorated_function


def project_required(f):
    """
    Resolve <project_id> to a project row the user may access.

    Non-admins only see projects of their own organization; the row is
    passed to the view as `project`.
    """
    @wraps(f)
    def decorated_function(project_id, *args, **kwargs):
        client = db.get_client()
        if client is None:
            logger.error("Supabase client not initialized")
            return jsonify({'error': 'Database connection error. Please check server logs.'}), 500

        user = session['user']
        query = client.table('projects').select('*').eq('id', project_id)
        if user.get('role') != 'admin':
            if not user.get('organization_id'):
                # No organization means no projects
                return jsonify({'error': 'Project not found'}), 404
            query = query.eq('organization_id', user['organization_id'])

        try:
            result = query.execute()
        except Exception as e:
            logger.error(f"Project lookup failed for {project_id}: {e}")
            return jsonify({'error': str(e)}), 500

        if not result.data:
            return jsonify({'error': 'Project not found'}), 404
        return f(result.data[0], *args, **kwargs)
    return decorated_function


def _google_credentials():
    tokens = session['google_tokens']
    credentials = credentials_from_tokens(tokens)
    session['google_tokens'] = tokens
    return credentials


def _date_range():
    """start_date/end_date query args, defaulting to the last 28 days."""
    end = request.args.get('end_date') or (date.today() - timedelta(days=1)).isoformat()
    start = request.args.get('start_date') or (
        date.fromisoformat(end) - timedelta(days=DEFAULT_ANALYTICS_DAYS - 1)
    ).isoformat()
    return start, end

# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.route('/ping')
def ping():
    """Health check endpoint."""
    return jsonify({
        'status': 'ok',
        'message': 'SEO Management Platform API',
        'supabase_connected': db.get_client() is not None
    })

# =============================================================================
# DASHBOARD & RESEARCH
# =============================================================================

@app.route('/api/dashboard/stats')
@login_required
def dashboard_stats():
    """Totals across the user's organization."""
    user = session['user']
    org_id = None if user.get('role') == 'admin' else user.get('organization_id')
    if user.get('role') != 'admin' and not org_id:
        return jsonify({'total_projects': 0, 'total_keywords': 0, 'average_position': 0, 'position_change': 0})

    try:
        return jsonify(get_dashboard_stats(db.get_client(), org_id))
    except Exception as e:
        logger.error(f"Error fetching dashboard stats: {e}")
        return jsonify({'error': 'Failed to fetch dashboard stats'}), 500


@app.route('/api/keywords/research')
@login_required
def keyword_research():
    """Expand a seed term into keyword ideas."""
    term = request.args.get('term', '')
    try:
        suggestions = generate_keyword_suggestions(term)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'suggestions': suggestions, 'total': len(suggestions)})

# =============================================================================
# PROJECT METRICS
# =============================================================================

@app.route('/api/projects/<project_id>/metrics')
@login_required
@project_required
def project_metrics(project):
    try:
        client = db.get_client()
        metrics = get_project_metrics(client, project['id'])
        metrics['keywords']['visibility'] = get_keyword_visibility(client, project['id'])
        return jsonify(metrics)
    except Exception as e:
        logger.error(f"Error fetching metrics: {e}")
        return jsonify({'error': 'Failed to fetch metrics'}), 500

# =============================================================================
# KEYWORD ROUTES
# =============================================================================

@app.route('/api/projects/<project_id>/keywords/analyze', methods=['POST'])
@login_required
@project_required
def analyze_keywords(project):
    """Recompute and store priority scores for the given tracked keywords."""
    data = request.json or {}
    keywords = data.get('keywords')
    if not isinstance(keywords, list):
        return jsonify({'error': 'Invalid keywords format'}), 400

    client = db.get_client()
    try:
        analyzed = []
        for keyword in keywords:
            result = client.table('keywords').select('*') \
                .eq('project_id', project['id']).eq('keyword', keyword).execute()
            if not result.data:
                continue
            row = result.data[0]

            priority = calculate_priority_score(row)
            updated = client.table('keywords').update({'priority': priority}) \
                .eq('id', row['id']).execute()

            analyzed.append({
                **(updated.data[0] if updated.data else row),
                'priority': priority,
                'priority_description': get_priority_description(priority)
            })

        return jsonify(analyzed)
    except Exception as e:
        logger.error(f"Failed to analyze keywords: {e}")
        return jsonify({'error': 'Internal server error'}), 500


@app.route('/api/projects/<project_id>/keywords/extract', methods=['POST'])
@login_required
@project_required
def extract_keywords(project):
    """On-page keyword extraction for a project URL (defaults to the home page)."""
    data = request.json or {}
    url = data.get('url') or ensure_protocol(project.get('domain') or project.get('url') or '')

    try:
        limit = int(data.get('limit', 50))
    except (TypeError, ValueError):
        return jsonify({'error': 'limit must be an integer'}), 400

    project_host = hostname(project.get('domain') or project.get('url') or '')
    url_host = hostname(url)
    if not project_host or (url_host != project_host and not url_host.endswith(f".{project_host}")):
        return jsonify({'error': 'URL must belong to the project domain'}), 400

    try:
        response = requests.get(url, timeout=15)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to fetch {url}: {e}")
        return jsonify({'error': f"Failed to fetch page: {e}"}), 400

    analyzer = KeywordAnalyzer(fetch_suggestions=bool(data.get('suggestions', True)))
    results = analyzer.analyze(response.text)
    return jsonify({'url': url, 'keywords': results[:limit], 'total': len(results)})


@app.route('/api/projects/<project_id>/keywords/cluster', methods=['POST'])
@login_required
@project_required
def cluster_project_keywords(project):
    """Cluster keywords by similarity and store cluster intent on each keyword."""
    data = request.json or {}
    keywords = data.get('keywords')

    if not isinstance(keywords, list) or not keywords:
        return jsonify({'error': 'Invalid keywords format'}), 400
    terms = []
    for item in keywords:
        term = item.get('keyword') if isinstance(item, dict) else item
        if not isinstance(term, str) or not term.strip():
            return jsonify({'error': 'Invalid keywords format'}), 400
        terms.append(term)

    try:
        clusters = cluster_keywords(terms)
        apply_clusters(db.get_client(), project['id'], clusters)
        return jsonify({'clusters': clusters})
    except Exception as e:
        logger.error(f"Failed to cluster keywords: {e}")
        return jsonify({'error': 'Internal server error'}), 500


@app.route('/api/projects/<project_id>/keywords/<keyword_id>/check-ranking', methods=['POST'])
@login_required
@project_required
def check_ranking(project, keyword_id):
    client = db.get_client()
    owned = client.table('keywords').select('id').eq('id', keyword_id).eq('project_id', project['id']).execute()
    if not owned.data:
        return jsonify({'error': 'Keyword not found'}), 404

    try:
        rank = update_keyword_ranking(client, keyword_id, project['domain'])
        return jsonify({'keyword_id': keyword_id, 'rank': rank})
    except ConfigurationError as e:
        logger.error(str(e))
        return jsonify({'error': str(e)}), 500
    except (RankingError, requests.RequestException) as e:
        logger.error(f"Error checking keyword ranking: {e}")
        return jsonify({'error': 'Failed to check ranking'}), 502

# =============================================================================
# BACKLINK ROUTES
# =============================================================================

@app.route('/api/projects/<project_id>/backlinks/<backlink_id>/check', methods=['POST'])
@login_required
@project_required
def check_backlink(project, backlink_id):
    client = db.get_client()
    try:
        backlink = client.table('backlinks').select('*') \
            .eq('id', backlink_id).eq('project_id', project['id']).execute()
        if not backlink.data:
            return jsonify({'error': 'Backlink not found'}), 404

        analyzer = BacklinkAnalyzer(project['id'], project.get('domain') or '', client)
        analyzer.check_backlink_status(backlink.data[0])

        updated = client.table('backlinks').select('*').eq('id', backlink_id).execute()
        return jsonify(updated.data[0])
    except Exception as e:
        logger.error(f"Error checking backlink status: {e}")
        return jsonify({'error': 'Failed to check backlink status'}), 500


@app.route('/api/projects/<project_id>/backlinks/recheck', methods=['POST'])
@login_required
@project_required
def recheck_backlinks(project):
    try:
        analyzer = BacklinkAnalyzer(project['id'], project.get('domain') or '', db.get_client())
        return jsonify({'success': True, 'statuses': analyzer.check_all_backlinks()})
    except Exception as e:
        logger.error(f"Error rechecking backlinks: {e}")
        return jsonify({'error': 'Failed to recheck backlinks'}), 500


@app.route('/api/projects/<project_id>/backlinks/discover', methods=['POST'])
@login_required
@project_required
def discover_backlinks(project):
    """Crawl candidate referring pages for links to the project."""
    data = request.json or {}
    urls = data.get('urls')
    if not isinstance(urls, list) or not urls:
        return jsonify({'error': 'A list of candidate urls is required'}), 400

    analyzer = BacklinkAnalyzer(project['id'], project.get('domain') or '', db.get_client())
    backlinks = analyzer.discover_backlinks(urls)
    return jsonify({'backlinks': backlinks, 'total': len(backlinks)})


@app.route('/api/projects/<project_id>/backlinks/stats')
@login_required
@project_required
def backlink_stats(project):
    days = request.args.get('days', 30, type=int)
    try:
        analyzer = BacklinkAnalyzer(project['id'], project.get('domain') or '', db.get_client())
        return jsonify({
            'anchor_text_distribution': analyzer.analyze_anchor_text_distribution(),
            'growth': analyzer.get_backlink_growth(days)
        })
    except Exception as e:
        logger.error(f"Error fetching backlink stats: {e}")
        return jsonify({'error': 'Failed to fetch backlink stats'}), 500

# =============================================================================
# CONTENT & TECHNICAL ROUTES
# =============================================================================

@app.route('/api/projects/<project_id>/content')
@login_required
@project_required
def content_audit(project):
    """Audit pages listed in the project's sitemap."""
    custom_sitemap_url = request.args.get('sitemapUrl')

    if not project.get('domain'):
        return jsonify({'error': 'Project domain is not set'}), 400

    try:
        if custom_sitemap_url:
            db.get_client().table('projects').update({'sitemap_url': custom_sitemap_url}) \
                .eq('id', project['id']).execute()

        sitemap_to_use = custom_sitemap_url or project.get('sitemap_url')
        return jsonify(run_content_audit(project['domain'], sitemap_to_use))
    except Exception as e:
        logger.error(f"Error in content analysis: {e}")
        return jsonify({'error': 'Failed to analyze content'}), 500


@app.route('/api/projects/<project_id>/technical')
@login_required
@project_required
def technical_audit(project):
    if not project.get('domain'):
        return jsonify({'error': 'Project domain is not set'}), 400

    try:
        return jsonify(get_page_speed_data(ensure_protocol(project['domain'])))
    except ConfigurationError as e:
        logger.error(str(e))
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.error(f"Error analyzing site: {e}")
        return jsonify({'error': 'Failed to analyze the site. Please verify the domain is accessible.'}), 500

# =============================================================================
# GOOGLE ANALYTICS & SEARCH CONSOLE ROUTES
# =============================================================================

@app.route('/api/projects/<project_id>/analytics')
@login_required
@google_required
@project_required
def project_analytics(project):
    """GA4 traffic for the project, compared with the previous period."""
    if not project.get('ga_property_id'):
        return jsonify({'error': 'No Google Analytics property connected'}), 400

    try:
        start, end = _date_range()
        service = GoogleAnalyticsService(_google_credentials(), project['ga_property_id'])
        return jsonify(service.get_analytics_with_changes(start, end))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching analytics: {e}")
        return jsonify({'error': 'Failed to fetch analytics'}), 500


@app.route('/api/projects/<project_id>/search-console')
@login_required
@google_required
@project_required
def project_search_console(project):
    """Search Console page performance for the project's verified site."""
    site_url = project.get('gsc_verified_site')
    if not site_url:
        return jsonify({'error': 'No Search Console site connected'}), 400

    try:
        start, end = _date_range()
        row_limit = request.args.get('limit', 10, type=int)
        service = GoogleSearchConsoleService.from_credentials(_google_credentials())
        return jsonify(service.get_page_analytics(site_url, start, end, row_limit=row_limit))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching Search Console data: {e}")
        return jsonify({'error': 'Failed to fetch Search Console data'}), 500


@app.route('/api/search-console/sites')
@login_required
@google_required
def search_console_sites():
    try:
        service = GoogleSearchConsoleService.from_credentials(_google_credentials())
        return jsonify(service.list_sites())
    except Exception as e:
        logger.error(f"Error fetching Search Console sites: {e}")
        if 'insufficient permission' in str(e).lower():
            return jsonify({'error': 'Insufficient permissions to access Search Console data'}), 403
        return jsonify({'error': 'Failed to fetch Search Console sites'}), 500


@app.route('/api/analytics/properties')
@login_required
@google_required
def analytics_properties():
    try:
        properties = list_properties(_google_credentials())
    except Exception as e:
        logger.error(f"Error fetching GA properties: {e}")
        return jsonify({'error': 'Failed to fetch Google Analytics properties'}), 500

    if not properties:
        return jsonify({'error': 'No Google Analytics accounts found'}), 404
    return jsonify(properties)

# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    port = int(os.getenv('PORT', 3000))
    app.run(host='0.0.0.0', port=port, debug=True)
