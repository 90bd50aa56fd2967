"""
Tests for session and authentication helpers.
"""
import pytest
from flask import session as flask_session

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import db, User
from auth import (
    get_current_user, is_user_logged_in, get_request_context,
    authenticate_user, login_user, logout_user
)


class TestGetCurrentUser:
    """Test get_current_user function."""

    def test_returns_user_when_logged_in(self, app, seed):
        """Returns user object when user_id in session."""
        with app.test_request_context():
            flask_session['user_id'] = seed.author_id
            user = get_current_user()
            assert user is not None
            assert user.username == 'janesmith'

    def test_returns_none_when_not_logged_in(self, app):
        """Returns None when no user_id in session."""
        with app.test_request_context():
            assert get_current_user() is None
            assert is_user_logged_in() is False

    def test_returns_none_for_invalid_user_id(self, app):
        """Returns None when user_id doesn't exist."""
        with app.test_request_context():
            flask_session['user_id'] = 99999
            assert get_current_user() is None
            assert is_user_logged_in() is False


class TestGetRequestContext:

    def test_anonymous_context(self, app):
        with app.test_request_context('/wp-json/wp/v2/users'):
            ctx = get_request_context()
            assert ctx.is_authenticated is False
            assert ctx.path == '/wp-json/wp/v2/users'

    def test_admin_context_has_manage_options(self, app, seed):
        with app.test_request_context('/'):
            flask_session['user_id'] = seed.admin_id
            ctx = get_request_context()
            assert ctx.is_authenticated is True
            assert ctx.user.id == seed.admin_id
            assert ctx.can('manage_options') is True

    def test_author_context_lacks_manage_options(self, app, seed):
        with app.test_request_context('/'):
            flask_session['user_id'] = seed.author_id
            ctx = get_request_context()
            assert ctx.can('manage_options') is False
            assert ctx.can('edit_posts') is True

    def test_context_is_cached_per_request(self, app):
        with app.test_request_context('/'):
            assert get_request_context() is get_request_context()


class TestAuthenticateUser:
    """The host reports precise errors; the login error filter hides them."""

    def test_valid_credentials(self, app, seed):
        with app.test_request_context():
            user, error = authenticate_user('janesmith', 'correct-horse')
            assert error is None
            assert user.id == seed.author_id
            assert user.last_login is not None

    def test_login_by_email(self, app, seed):
        with app.test_request_context():
            user, error = authenticate_user('Jane@Example.com', 'correct-horse')
            assert error is None
            assert user.id == seed.author_id

    def test_unknown_username(self, app, seed):
        with app.test_request_context():
            user, error = authenticate_user('nobody', 'whatever')
            assert user is None
            assert 'not registered' in error

    def test_wrong_password(self, app, seed):
        with app.test_request_context():
            user, error = authenticate_user('janesmith', 'wrong')
            assert user is None
            assert 'incorrect' in error
            assert 'janesmith' in error

    @pytest.mark.parametrize('username,password', [('', 'pw'), ('janesmith', ''), (None, None)])
    def test_missing_fields(self, app, seed, username, password):
        with app.test_request_context():
            user, error = authenticate_user(username, password)
            assert user is None
            assert 'required' in error


class TestLoginLogout:

    def test_login_user_sets_session(self, app, seed):
        with app.test_request_context():
            user = db.session.get(User, seed.author_id)
            flask_session['stale'] = 'value'
            login_user(user)
            assert flask_session['user_id'] == seed.author_id
            assert 'stale' not in flask_session
            assert get_request_context().user.id == seed.author_id

    def test_logout_user_clears_session(self, app, seed):
        with app.test_request_context():
            flask_session['user_id'] = seed.author_id
            assert get_request_context().is_authenticated is True
            logout_user()
            assert 'user_id' not in flask_session
            assert get_request_context().is_authenticated is False
