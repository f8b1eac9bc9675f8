"""
Google OAuth credentials for the Analytics and Search Console APIs.
"""
import os
import logging

from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials

logger = logging.getLogger(__name__)

TOKEN_URI = 'https://oauth2.googleapis.com/token'
GOOGLE_SCOPES = [
    'openid',
    'https://www.googleapis.com/auth/userinfo.email',
    'https://www.googleapis.com/auth/analytics.readonly',
    'https://www.googleapis.com/auth/webmasters.readonly'
]


def credentials_from_tokens(tokens: dict, refresh: bool = True) -> Credentials:
    """
    Build Google credentials from a stored token dict.

    Expired credentials are refreshed when a refresh token is available;
    the new access token is written back into `tokens`.
    """
    if not tokens or not tokens.get('access_token'):
        raise PermissionError('No Google access token in session')

    credentials = Credentials(
        token=tokens.get('access_token'),
        refresh_token=tokens.get('refresh_token'),
        token_uri=TOKEN_URI,
        client_id=os.getenv('GOOGLE_CLIENT_ID'),
        client_secret=os.getenv('GOOGLE_CLIENT_SECRET'),
        scopes=tokens.get('scopes') or GOOGLE_SCOPES
    )

    if refresh and credentials.expired and credentials.refresh_token:
        credentials.refresh(GoogleRequest())
        tokens['access_token'] = credentials.token
        logger.info("Refreshed Google access token")

    return credentials
