import os
from datetime import datetime, timezone
from urllib.parse import urlparse


class ConfigurationError(RuntimeError):
    """Raised when a required environment setting is missing."""


def require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"{name} environment variable is required")
    return value


def ensure_protocol(domain: str) -> str:
    """Prefix a bare domain with https://."""
    domain = (domain or '').strip()
    if domain.startswith(('http://', 'https://')):
        return domain
    return f"https://{domain}"


def hostname(url: str) -> str:
    """Hostname of a URL or bare domain, lowercased, without www."""
    parsed = urlparse(ensure_protocol(url))
    host = (parsed.hostname or '').lower()
    if host.startswith('www.'):
        host = host[4:]
    return host


def percent_change(current, previous) -> float:
    """
    Percentage change from previous to current.

    A previous value of zero counts as 100% growth when there is anything now.
    """
    current = current or 0
    previous = previous or 0
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    return utcnow().isoformat()
