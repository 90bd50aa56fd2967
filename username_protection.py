"""
Username Protection

Prevents username disclosure to anonymous visitors through:
1. Author id enumeration redirects (/?author=1 -> /author/<username>/)
2. Author archive URLs built from the username slug
3. Display names in feeds
4. Display names of comment authors
5. Login error messages that tell unknown usernames from bad passwords
6. Anonymous access to the users REST endpoints

Each rule is a plain function of its input and a RequestContext. The
UsernameProtection class binds the rules to the host's extension points.

Usage:
    from username_protection import setup_username_protection
    setup_username_protection(app)
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from context import RequestContext
from hooks import ExtensionPoint, HookRegistry, LATE_PRIORITY
from i18n import translate_escaped
from models import Capability
from security import log_security_event
import site_config

logger = logging.getLogger(__name__)

# author= followed by any digits (including none) and any slashes
AUTHOR_QUERY_PATTERN = re.compile(r'author=([0-9]*)(/*)', re.IGNORECASE)

USERS_ENDPOINT = 'wp/v2/users'
POSTS_ENDPOINT = 'wp/v2/posts'
EMBED_PARAM = '_embed'

COMMENT_AUTHOR_PLACEHOLDER = 'Comment'
LOGIN_ERROR_MESSAGE = 'Login failed. Please try again.'
NO_ROUTE_MESSAGE = 'No route was found matching the URL and request method'


@dataclass(frozen=True)
class RestError:
    """A REST response that stands in for dispatching the request."""
    code: str
    message: str
    status: int

    def to_dict(self):
        return {
            'code': self.code,
            'message': self.message,
            'data': {'status': self.status},
        }


def no_route_error():
    """The error a REST client sees for a route that does not exist."""
    return RestError(code='rest_no_route', message=translate_escaped(NO_ROUTE_MESSAGE), status=404)


def _identity(value):
    return value


# ==================== Rules ====================

def suppress_author_enumeration_redirect(redirect_url: Optional[str], requested_url: str,
                                         ctx: RequestContext) -> Optional[str]:
    """
    Cancel canonical redirects for author id requests.

    With pretty permalinks, /?author=1 redirects to the archive of that
    author, and the target URL carries the username. Anonymous requests
    with an author argument get no redirect at all.

    Returns:
        The redirect target, or None to cancel the redirect
    """
    if ctx.is_authenticated:
        return redirect_url

    if AUTHOR_QUERY_PATTERN.search(requested_url or ''):
        return None

    return redirect_url


def raw_author_archive_url(archive_url: str, author_id: int, ctx: RequestContext, site_url: str) -> str:
    """
    Replace author archive links with the raw ?author=<id> form.

    Anonymous visitors never see the username slug, whatever the permalink
    structure is.
    """
    if ctx.is_authenticated:
        return archive_url

    return f"{site_url.rstrip('/')}/?author={author_id}"


def anonymize_feed_author_name(display_name: str, ctx: RequestContext, site_title: str,
                               override: Optional[Callable[[str], str]] = None) -> str:
    """
    Replace author display names in feeds with the site title.

    So <dc:creator><![CDATA[Jane Smith]]></dc:creator> becomes
    <dc:creator><![CDATA[Your Site Title]]></dc:creator> on every feed:
    /feed/, /category/<name>/feed/, /tag/<name>/feed/, /2016/11/feed/,
    /search/<term>/feed/ and /comments/feed/.
    """
    if ctx.is_authenticated:
        return display_name

    return (override or _identity)(site_title)


def anonymize_comment_author_name(comment_author: str, ctx: RequestContext,
                                  override: Optional[Callable[[str], str]] = None) -> str:
    """
    Replace comment author names with a placeholder.

    Covers the native comment views only; external commenting systems are
    not affected.
    """
    if ctx.is_authenticated:
        return comment_author

    return (override or _identity)(translate_escaped(COMMENT_AUTHOR_PLACEHOLDER))


def genericize_login_error(error_text: str, override: Optional[Callable[[str], str]] = None) -> str:
    """Replace any login error with one message that confirms nothing."""
    return (override or _identity)(translate_escaped(LOGIN_ERROR_MESSAGE))


def _references_users(ctx):
    uri = ctx.request_uri
    if USERS_ENDPOINT in uri:
        return True
    # Embedding on posts inlines the author objects from the users endpoint
    return POSTS_ENDPOINT in uri and ctx.has_query_param(EMBED_PARAM)


def block_anonymous_user_enumeration(ctx: RequestContext) -> Optional[RestError]:
    """
    Decide whether a REST request may reach user objects.

    Checks run in order and the first match allows the request. A denied
    request gets the same 404 as a route that does not exist, so anonymous
    probing cannot tell the endpoint is there.

    Returns:
        None to allow, or a RestError to answer instead of dispatching
    """
    if not _references_users(ctx):
        return None

    if POSTS_ENDPOINT in ctx.request_uri and not ctx.has_query_param(EMBED_PARAM):
        return None

    if ctx.is_authenticated:
        return None

    if ctx.can(Capability.MANAGE_OPTIONS.value):
        return None

    return no_route_error()


# ==================== Host Integration ====================

class UsernameProtection:
    """
    Binds the rules to a HookRegistry.

    Site accessors are injected so the rules never look up host state
    themselves; they default to the site_config module.
    """

    def __init__(self, registry: HookRegistry, site_title=None, site_url=None):
        self.registry = registry
        self.site_title = site_title or site_config.get_site_title
        self.site_url = site_url or site_config.get_site_url

    def register(self):
        """Hook every enabled protection into the registry."""
        registry = self.registry
        enabled = site_config.is_protection_enabled

        if enabled(site_config.PROTECTION_REDIRECTS):
            registry.add_filter(ExtensionPoint.CANONICAL_REDIRECT, self.filter_author_archive_redirects)
        if enabled(site_config.PROTECTION_AUTHOR_LINKS):
            registry.add_filter(ExtensionPoint.AUTHOR_LINK, self.filter_author_url)
        if enabled(site_config.PROTECTION_FEEDS):
            registry.add_filter(ExtensionPoint.FEED_AUTHOR, self.filter_feeds, LATE_PRIORITY)
            registry.add_filter(ExtensionPoint.FEED_COMMENT_AUTHOR, self.filter_feeds, LATE_PRIORITY)
        if enabled(site_config.PROTECTION_COMMENTS):
            registry.add_filter(ExtensionPoint.COMMENT_AUTHOR, self.filter_comments)
        if enabled(site_config.PROTECTION_REST):
            registry.add_filter(ExtensionPoint.REST_AUTHENTICATION_ERRORS,
                                self.prevent_anonymous_username_enumeration)
        if enabled(site_config.PROTECTION_LOGIN_ERRORS):
            registry.add_filter(ExtensionPoint.LOGIN_ERRORS, self.filter_login_errors)

        logger.info("Username protection filters registered")
        return self

    def filter_author_archive_redirects(self, redirect_url, requested_url, ctx):
        result = suppress_author_enumeration_redirect(redirect_url, requested_url, ctx)
        if result is None and redirect_url is not None:
            log_security_event('author_redirect', 'Author id redirect suppressed', ctx)
        return result

    def filter_author_url(self, archive_url, author_id, ctx):
        # Skips the site_url() lookup; the rule repeats this check
        if ctx.is_authenticated:
            return archive_url
        return raw_author_archive_url(archive_url, author_id, ctx, self.site_url())

    def filter_feeds(self, display_name, ctx):
        # Skips the site_title() lookup; the rule repeats this check
        if ctx.is_authenticated:
            return display_name
        return anonymize_feed_author_name(
            display_name, ctx, self.site_title(),
            override=self.registry.override(ExtensionPoint.FEED_AUTHOR_REPLACEMENT),
        )

    def filter_comments(self, comment_author, ctx):
        return anonymize_comment_author_name(
            comment_author, ctx,
            override=self.registry.override(ExtensionPoint.COMMENT_AUTHOR_REPLACEMENT),
        )

    def filter_login_errors(self, error_text):
        return genericize_login_error(
            error_text,
            override=self.registry.override(ExtensionPoint.LOGIN_ERROR_REPLACEMENT),
        )

    def prevent_anonymous_username_enumeration(self, result, ctx):
        # An earlier filter already rejected the request
        if result is not None:
            return result

        error = block_anonymous_user_enumeration(ctx)
        if error is not None:
            log_security_event('rest_enumeration', 'Anonymous user enumeration blocked', ctx,
                               severity='WARNING')
        return error


def setup_username_protection(app, registry=None):
    """
    Set up username protection for a Flask application.

    The registry is stored in app.extensions['hooks'] so routes can apply
    the extension points.

    Usage:
        from username_protection import setup_username_protection
        setup_username_protection(app)
    """
    registry = registry or app.extensions.get('hooks') or HookRegistry()
    app.extensions['hooks'] = registry

    with app.app_context():
        protection = UsernameProtection(registry).register()

    app.extensions['username_protection'] = protection
    return protection
