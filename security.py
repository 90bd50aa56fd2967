"""
Security helpers shared by the username protection layer.

This module provides:
1. HTML escaping for replacement text
2. Security event logging
"""

import bleach
import logging
import time
from flask import has_request_context, request

logger = logging.getLogger(__name__)


# ==================== Output Escaping ====================

def escape_html(value):
    """
    Escape a string for safe inclusion in HTML.

    No tags are allowed, so every tag-like sequence is escaped rather than
    rendered. Non-strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=False)


# ==================== Logging Helpers ====================

def log_security_event(event_type, message, ctx=None, severity='INFO'):
    """
    Log a security-related event for auditing.

    Event types: 'rest_enumeration', 'author_redirect', 'login_failure'

    Args:
        event_type: Short event category
        message: Human readable description
        ctx: Optional RequestContext; the user id and request URI are taken from it
        severity: 'INFO', 'WARNING' or 'ERROR'
    """
    log_data = {
        'event_type': event_type,
        'message': message,
        'user_id': ctx.user.id if ctx is not None and ctx.user is not None else None,
        'ip': request.remote_addr if has_request_context() else None,
        'path': ctx.request_uri if ctx is not None else None,
        'method': request.method if has_request_context() else None,
        'timestamp': time.time(),
    }

    log_message = f"[SECURITY:{event_type.upper()}] {message} | {log_data}"

    if severity == 'WARNING':
        logger.warning(log_message)
    elif severity == 'ERROR':
        logger.error(log_message)
    else:
        logger.info(log_message)
