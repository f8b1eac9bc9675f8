"""
Google Search Console wrapper.
"""
import logging

from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from seodesk.google_auth import GOOGLE_SCOPES

logger = logging.getLogger(__name__)


class GoogleSearchConsoleService:
    def __init__(self, client_id: str = None, client_secret: str = None, redirect_uri: str = None,
                 credentials=None, service=None):
        """
        Args:
            client_id, client_secret, redirect_uri: OAuth client, needed only
                for the authorization code flow
            credentials: google-auth credentials obtained elsewhere
            service: Prebuilt searchconsole resource (tests)
        """
        self.flow = None
        if client_id:
            self.flow = Flow.from_client_config(
                {
                    'web': {
                        'client_id': client_id,
                        'client_secret': client_secret,
                        'auth_uri': 'https://accounts.google.com/o/oauth2/auth',
                        'token_uri': 'https://oauth2.googleapis.com/token',
                        'redirect_uris': [redirect_uri]
                    }
                },
                scopes=GOOGLE_SCOPES,
                redirect_uri=redirect_uri
            )
        self.credentials = credentials
        self._service = service

    @classmethod
    def from_credentials(cls, credentials, service=None):
        """Wrap credentials that were already obtained elsewhere."""
        return cls(credentials=credentials, service=service)

    def _require_flow(self):
        if self.flow is None:
            raise PermissionError('Google OAuth client is not configured')
        return self.flow

    def get_authorization_url(self, state: str = None) -> str:
        url, _ = self._require_flow().authorization_url(access_type='offline', prompt='consent', state=state)
        return url

    def get_access_token(self, code: str) -> str:
        """Exchange an authorization code; the credentials are kept on the service."""
        flow = self._require_flow()
        flow.fetch_token(code=code)
        self.credentials = flow.credentials
        self._service = None
        return self.credentials.token or ''

    @property
    def service(self):
        if self._service is None:
            if self.credentials is None:
                raise PermissionError('Search Console is not authorized')
            self._service = build('searchconsole', 'v1', credentials=self.credentials, cache_discovery=False)
        return self._service

    def get_page_analytics(self, site_url: str, start_date: str, end_date: str, row_limit: int = 10) -> dict:
        """Clicks, impressions, CTR and position per page."""
        response = self.service.searchanalytics().query(
            siteUrl=site_url,
            body={
                'startDate': start_date,
                'endDate': end_date,
                'dimensions': ['page'],
                'rowLimit': row_limit
            }
        ).execute()
        logger.info(f"GSC {site_url} {start_date}..{end_date}: {len(response.get('rows', []))} rows")
        return response

    def list_sites(self) -> list:
        response = self.service.sites().list().execute()
        return [
            {'url': site.get('siteUrl'), 'permission_level': site.get('permissionLevel')}
            for site in response.get('siteEntry', [])
        ]
