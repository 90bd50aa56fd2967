from flask import session, request, g
from datetime import datetime
import logging

from context import from_request

logger = logging.getLogger(__name__)


def get_current_user():
    """Get the current logged-in user from the session."""
    from models import db, User

    user_id = session.get('user_id')
    if not user_id:
        return None

    return db.session.get(User, user_id)


def is_user_logged_in():
    """Check if the current request has a valid user session."""
    return get_current_user() is not None


def get_request_context():
    """
    Build the RequestContext for the current request.

    Built once per request and kept on g.
    """
    if 'request_context' not in g:
        g.request_context = from_request(request, get_current_user())
    return g.request_context


def authenticate_user(username, password):
    """
    Authenticate a user by username or email and password.

    Returns:
        tuple: (user, error_message). The error message names the failure
        precisely; it is meant to pass through the login error filter.
    """
    from models import db, User

    if not username or not password:
        return None, 'Error: The username and password fields are required.'

    user = User.query.filter_by(username=username).first()
    if user is None and '@' in username:
        user = User.query.filter_by(email=username.lower()).first()

    if user is None:
        return None, f'Error: The username {username} is not registered on this site.'

    if not user.check_password(password):
        return None, f'Error: The password you entered for the username {user.username} is incorrect.'

    user.last_login = datetime.utcnow()
    db.session.commit()
    return user, None


def login_user(user):
    """Start a session for the user."""
    session.clear()
    session['user_id'] = user.id
    g.pop('request_context', None)
    logger.info(f"User {user.id} logged in")


def logout_user():
    """End the current session."""
    user_id = session.get('user_id')
    session.clear()
    g.pop('request_context', None)
    if user_id:
        logger.info(f"User {user_id} logged out")
