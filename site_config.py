"""
Site Configuration

Host accessors for the site title, the site root URL and the per-vector
username protection switches.

Configuration:
- Settings are stored in SystemConfig (database)
- Environment variables serve as fallback: SITE_TITLE, SITE_URL,
  USERNAME_PROTECTION_DISABLED (comma-separated protection names)
"""
import os
import logging
from datetime import datetime
from flask import has_request_context, request

logger = logging.getLogger(__name__)

PROTECTION_REDIRECTS = 'redirects'
PROTECTION_AUTHOR_LINKS = 'author_links'
PROTECTION_FEEDS = 'feeds'
PROTECTION_COMMENTS = 'comments'
PROTECTION_REST = 'rest'
PROTECTION_LOGIN_ERRORS = 'login_errors'

PROTECTIONS = (
    PROTECTION_REDIRECTS,
    PROTECTION_AUTHOR_LINKS,
    PROTECTION_FEEDS,
    PROTECTION_COMMENTS,
    PROTECTION_REST,
    PROTECTION_LOGIN_ERRORS,
)

# ==================== Configuration Cache ====================
# Cache config to avoid hitting database on every request

_config_cache = {
    'site_title': None,
    'site_url': None,
    'disabled': None,
    'last_refresh': None
}

CACHE_TTL_SECONDS = 300  # 5 minutes


def _parse_disabled(value):
    names = {name.strip().lower() for name in (value or '').split(',') if name.strip()}
    unknown = names - set(PROTECTIONS)
    if unknown:
        logger.warning(f"Ignoring unknown username protections: {', '.join(sorted(unknown))}")
    return frozenset(names & set(PROTECTIONS))


def _get_site_config():
    """Get site configuration from SystemConfig with caching."""
    global _config_cache

    now = datetime.utcnow()
    if (_config_cache['last_refresh'] and
            (now - _config_cache['last_refresh']).total_seconds() < CACHE_TTL_SECONDS):
        return _config_cache

    try:
        from models import SystemConfig

        _config_cache['site_title'] = (
            SystemConfig.get(SystemConfig.KEY_SITE_TITLE) or
            os.environ.get('SITE_TITLE') or
            SystemConfig.DEFAULT_SITE_TITLE
        )
        _config_cache['site_url'] = (
            SystemConfig.get(SystemConfig.KEY_SITE_URL) or
            os.environ.get('SITE_URL')
        )
        _config_cache['disabled'] = _parse_disabled(
            SystemConfig.get(SystemConfig.KEY_USERNAME_PROTECTION_DISABLED) or
            os.environ.get('USERNAME_PROTECTION_DISABLED')
        )

        logger.debug(f"Site config refreshed: title={_config_cache['site_title']!r}, "
                     f"disabled={sorted(_config_cache['disabled'])}")

    except Exception as e:
        logger.warning(f"Failed to load site config from database: {e}")
        _config_cache['site_title'] = os.environ.get('SITE_TITLE', 'My Site')
        _config_cache['site_url'] = os.environ.get('SITE_URL')
        _config_cache['disabled'] = _parse_disabled(os.environ.get('USERNAME_PROTECTION_DISABLED'))

    _config_cache['last_refresh'] = now
    return _config_cache


def invalidate_site_cache():
    """Invalidate the config cache to force refresh on next access."""
    global _config_cache
    _config_cache['last_refresh'] = None
    logger.info("Site config cache invalidated")


def get_site_title():
    """The configured site title."""
    return _get_site_config()['site_title']


def get_site_url():
    """
    The site root URL, without a trailing slash.

    Falls back to the host URL of the current request when none is configured.
    """
    site_url = _get_site_config()['site_url']
    if not site_url and has_request_context():
        site_url = request.host_url
    return (site_url or 'http://localhost').rstrip('/')


def is_protection_enabled(name):
    """Check whether a username protection vector is switched on."""
    if name not in PROTECTIONS:
        raise ValueError(f"Unknown username protection: {name}")
    return name not in _get_site_config()['disabled']
