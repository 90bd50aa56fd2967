"""
Pytest fixtures for username protection tests.
"""
import os
import sys
import pytest
from datetime import datetime
from types import SimpleNamespace

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db, User, Post, Comment, SystemConfig
from site_config import invalidate_site_cache


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep settings from the developer's environment out of the tests."""
    for name in ('SITE_TITLE', 'SITE_URL', 'USERNAME_PROTECTION_DISABLED', 'SITE_LANGUAGE'):
        monkeypatch.delenv(name, raising=False)
    invalidate_site_cache()
    yield
    invalidate_site_cache()


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret-key',
    })

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seed(app):
    """
    Populate the site with an admin, an author, two posts and a comment.

    Returns plain ids and names so tests never touch detached instances.
    """
    with app.app_context():
        SystemConfig.set(SystemConfig.KEY_SITE_TITLE, 'Example Blog')
        SystemConfig.set(SystemConfig.KEY_SITE_URL, 'https://example.com')

        admin = User(username='siteadmin', display_name='Site Admin', email='admin@example.com', is_admin=True)
        admin.set_password('admin-pass')
        author = User(username='janesmith', display_name='Jane Smith', email='jane@example.com')
        author.set_password('correct-horse')
        db.session.add_all([admin, author])
        db.session.flush()

        first = Post(title='Hello World', content='First post body', category='news', tags='intro, welcome',
                     author_id=author.id, created_at=datetime(2016, 11, 8, 12, 0))
        second = Post(title='Second Post', content='Another body', category='updates',
                      author_id=admin.id, created_at=datetime(2024, 11, 2, 9, 30))
        db.session.add_all([first, second])
        db.session.flush()

        comment = Comment(post_id=first.id, author_name='Bob Commenter', content='Nice post!',
                          created_at=datetime(2016, 11, 9, 8, 0))
        db.session.add(comment)
        db.session.commit()

        data = SimpleNamespace(
            admin_id=admin.id,
            author_id=author.id,
            first_post_id=first.id,
            second_post_id=second.id,
            comment_id=comment.id,
        )

    invalidate_site_cache()
    return data


@pytest.fixture
def client(app, seed):
    """Anonymous test client."""
    return app.test_client()


@pytest.fixture
def author_client(app, seed):
    """Test client logged in as the author."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = seed.author_id
    return client


@pytest.fixture
def admin_client(app, seed):
    """Test client logged in as the site admin."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = seed.admin_id
    return client
