#!/usr/bin/env python3
"""
Execution Script: Run Content Audit

Usage:
    python execution/run_audit.py --domain example.com --pages 50 [--sitemap URL] [--technical]

This script:
1. Finds the site's sitemap
2. Audits each listed page (meta tags, headings, images, schema)
3. Optionally runs a PageSpeed technical audit of the home page
4. Prints a JSON report
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

from seodesk.content_analyzer import run_content_audit
from seodesk.pagespeed import get_page_speed_data
from seodesk.utils import ConfigurationError, ensure_protocol


def log(msg: str):
    """Print with timestamp."""
    print(f"[{time.strftime('%H:%M:%S')}] {msg}", file=sys.stderr)


def run_audit(domain: str, max_pages: int = 50, sitemap_url: str = None, technical: bool = False) -> dict:
    """
    Run full audit workflow.

    Args:
        domain: Website domain
        max_pages: Pages to analyze
        sitemap_url: Explicit sitemap location
        technical: Also run PageSpeed Insights

    Returns:
        Dict with audit results
    """
    log(f"Starting content audit for {domain} ({max_pages} pages max)")

    audit = run_content_audit(domain, sitemap_url=sitemap_url, limit=max_pages)
    summary = audit['summary']
    log(f"✓ Analyzed {summary['pages_analyzed']} of {summary['pages_found']} pages")
    log(f"  Average score: {summary['average_score']} ({summary['total_issues']} issues)")

    result = {
        'success': True,
        'domain': domain,
        'summary': summary,
        'pages': [
            {
                'url': page['url'],
                'score': page['score'],
                'issues': [issue['message'] for issue in page['issues']]
            }
            for page in audit['pages']
        ]
    }

    if technical:
        log("Running PageSpeed audit...")
        try:
            speed = get_page_speed_data(ensure_protocol(domain))
            result['technical'] = {key: section['score'] for key, section in speed.items()}
            log(f"✓ Performance score: {speed['performance']['score']}")
        except (ConfigurationError, RuntimeError, ValueError) as e:
            log(f"❌ PageSpeed audit failed: {e}")
            result['technical'] = {'error': str(e)}

    return result


def main():
    parser = argparse.ArgumentParser(description='Run on-page content SEO audit')
    parser.add_argument('--domain', required=True, help='Domain to audit')
    parser.add_argument('--pages', type=int, default=50, help='Max pages to analyze')
    parser.add_argument('--sitemap', help='Sitemap URL (discovered when omitted)')
    parser.add_argument('--technical', action='store_true', help='Also run PageSpeed Insights')

    args = parser.parse_args()

    result = run_audit(
        domain=args.domain,
        max_pages=args.pages,
        sitemap_url=args.sitemap,
        technical=args.technical
    )

    print("\n" + "=" * 50)
    print("AUDIT RESULT")
    print("=" * 50)
    print(json.dumps(result, indent=2))


if __name__ == '__main__':
    main()
