#!/usr/bin/env python3
"""
Execution Script: Recheck Project Rankings and Backlinks

Usage:
    python execution/recheck_project.py --project-id <uuid> [--skip-rankings] [--skip-backlinks]

Meant for cron. Rankings use SerpAPI (SERPAPI_API_KEY); backlinks are
re-crawled one by one.
"""
import os
import sys
import time
import argparse
import json

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from seodesk import db
from seodesk.backlink_analyzer import BacklinkAnalyzer
from seodesk.ranking_service import update_project_rankings
from seodesk.utils import ConfigurationError


def log(msg: str):
    """Print with timestamp."""
    print(f"[{time.strftime('%H:%M:%S')}] {msg}", file=sys.stderr)


def recheck_project(client, project_id: str, rankings: bool = True, backlinks: bool = True) -> dict:
    result = client.table('projects').select('*').eq('id', project_id).execute()
    if not result.data:
        log(f"❌ Project {project_id} not found")
        return {'success': False, 'error': 'Project not found'}
    project = result.data[0]
    log(f"Rechecking {project.get('name')} ({project.get('domain')})")

    report = {'success': True, 'project_id': project_id}

    if rankings:
        try:
            ranking_result = update_project_rankings(client, project)
            report['rankings'] = ranking_result
            log(f"✓ Checked {len(ranking_result['ranks'])} keywords ({len(ranking_result['failed'])} failed)")
        except ConfigurationError as e:
            log(f"❌ {e}")
            report['rankings'] = {'error': str(e)}

    if backlinks:
        analyzer = BacklinkAnalyzer(project['id'], project.get('domain') or '', client)
        report['backlinks'] = analyzer.check_all_backlinks()
        log(f"✓ Backlinks: {report['backlinks']}")

    return report


def main():
    parser = argparse.ArgumentParser(description='Recheck keyword rankings and backlinks of a project')
    parser.add_argument('--project-id', required=True, help='Supabase project ID')
    parser.add_argument('--skip-rankings', action='store_true', help='Don\'t check keyword rankings')
    parser.add_argument('--skip-backlinks', action='store_true', help='Don\'t recheck backlinks')

    args = parser.parse_args()

    client = db.get_client()
    if client is None:
        log("❌ Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
        sys.exit(1)

    result = recheck_project(
        client,
        args.project_id,
        rankings=not args.skip_rankings,
        backlinks=not args.skip_backlinks
    )
    print(json.dumps(result, indent=2))


if __name__ == '__main__':
    main()
