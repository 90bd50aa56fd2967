import os
import sys
import secrets
import logging
import traceback
from datetime import datetime
from email.utils import format_datetime
from flask import Flask, Blueprint, current_app, render_template, request, jsonify, redirect, url_for, abort
from werkzeug.exceptions import HTTPException

from models import db, User, Post, Comment
from auth import get_request_context, authenticate_user, login_user, logout_user, is_user_logged_in
from hooks import ExtensionPoint
from security import log_security_event
from site_config import get_site_title, get_site_url
from username_protection import setup_username_protection, no_route_error
from version import get_version, get_build_info

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger(__name__)

REST_PREFIX = '/wp-json/'

# Largest id the database integer column can hold
MAX_ID = 2**63 - 1

site = Blueprint('site', __name__)
rest = Blueprint('rest', __name__, url_prefix='/wp-json/wp/v2')


def hooks():
    """The extension point registry of the running application."""
    return current_app.extensions['hooks']


def author_posts_url(user, ctx):
    """Author archive link, run through the author link extension point."""
    archive_url = url_for('site.author_archive', username=user.username, _external=True)
    return hooks().apply_filters(ExtensionPoint.AUTHOR_LINK, archive_url, user.id, ctx)


# ==================== Pages ====================

@site.route('/')
def index():
    """Front page. ?author=<id> is resolved to the author archive."""
    author_arg = request.args.get('author')
    if author_arg is not None:
        return _author_query(author_arg)

    ctx = get_request_context()
    posts = Post.query.order_by(Post.created_at.desc()).all()
    entries = [{'post': post, 'author_url': author_posts_url(post.author, ctx)} for post in posts]
    return render_template('index.html', site_title=get_site_title(), entries=entries)


def _author_query(author_arg):
    try:
        author_id = int(author_arg)
    except ValueError:
        abort(404)
    if not 0 < author_id <= MAX_ID:
        abort(404)

    user = db.session.get(User, author_id)
    if user is None:
        abort(404)

    ctx = get_request_context()
    canonical_url = url_for('site.author_archive', username=user.username, _external=True)
    redirect_to = hooks().apply_filters(ExtensionPoint.CANONICAL_REDIRECT, canonical_url, request.url, ctx)

    if redirect_to and redirect_to != request.url:
        return redirect(redirect_to, code=301)

    # Redirect cancelled: serve the archive at the requested URL
    return _render_author_archive(user, ctx)


@site.route('/author/<username>/')
def author_archive(username):
    user = User.query.filter_by(username=username).first()
    if user is None:
        abort(404)
    return _render_author_archive(user, get_request_context())


def _render_author_archive(user, ctx):
    posts = Post.query.filter_by(author_id=user.id).order_by(Post.created_at.desc()).all()
    return render_template(
        'author.html',
        site_title=get_site_title(),
        author_url=author_posts_url(user, ctx),
        posts=posts,
    )


@site.route(f'/posts/<int(max={MAX_ID}):post_id>/')
def view_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        abort(404)

    ctx = get_request_context()
    comments = [
        {
            'author': hooks().apply_filters(ExtensionPoint.COMMENT_AUTHOR, comment.author_name, ctx),
            'content': comment.content,
            'date': comment.created_at,
        }
        for comment in post.comments
    ]
    return render_template(
        'post.html',
        site_title=get_site_title(),
        post=post,
        author_url=author_posts_url(post.author, ctx),
        comments=comments,
    )


# ==================== Feeds ====================

def _posts_for_scope(scope):
    """
    Select posts for a scoped feed.

    Supported scopes: category/<name>, tag/<name>, search/<term>,
    <year>, <year>/<month>, <year>/<month>/<day>.
    """
    posts = Post.query.order_by(Post.created_at.desc()).all()
    parts = [part for part in (scope or '').split('/') if part]
    if not parts:
        return posts

    kind = parts[0].lower()
    if kind == 'category' and len(parts) > 1:
        return [p for p in posts if (p.category or '').lower() == parts[1].lower()]
    if kind == 'tag' and len(parts) > 1:
        return [p for p in posts if parts[1].lower() in p.tag_list]
    if kind == 'search' and len(parts) > 1:
        term = parts[1].lower()
        return [p for p in posts if term in p.title.lower() or term in (p.content or '').lower()]
    if kind.isdigit():
        try:
            date_parts = [int(part) for part in parts[:3]]
        except ValueError:
            abort(404)
        fields = ('year', 'month', 'day')
        return [
            p for p in posts
            if all(getattr(p.created_at, name) == value for name, value in zip(fields, date_parts))
        ]

    abort(404)


def _feed_response(template, **context):
    body = render_template(template, site_title=get_site_title(), site_url=get_site_url(), **context)
    return current_app.response_class(body, mimetype='application/rss+xml')


@site.route('/feed/')
@site.route('/<path:scope>/feed/')
def posts_feed(scope=None):
    ctx = get_request_context()
    items = [
        {
            'title': post.title,
            'link': url_for('site.view_post', post_id=post.id, _external=True),
            'creator': hooks().apply_filters(ExtensionPoint.FEED_AUTHOR, post.author.name, ctx),
            'pub_date': format_datetime(post.created_at),
            'content': post.content or '',
        }
        for post in _posts_for_scope(scope)
    ]
    return _feed_response('feed.xml', feed_title=get_site_title(), items=items)


@site.route('/comments/feed/')
def comments_feed():
    ctx = get_request_context()
    comments = Comment.query.order_by(Comment.created_at.desc()).all()
    items = []
    for comment in comments:
        creator = hooks().apply_filters(ExtensionPoint.FEED_COMMENT_AUTHOR, comment.author_name, ctx)
        items.append({
            'title': f"Comment on {comment.post.title} by {creator}",
            'link': url_for('site.view_post', post_id=comment.post_id, _external=True),
            'creator': creator,
            'pub_date': format_datetime(comment.created_at),
            'content': comment.content,
        })
    return _feed_response('feed.xml', feed_title=f"Comments for {get_site_title()}", items=items)


# ==================== Login ====================

@site.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        if is_user_logged_in():
            return redirect(url_for('site.index'))
        return render_template('login.html', site_title=get_site_title(), error=None)

    username = request.form.get('log', '').strip()
    password = request.form.get('pwd', '')

    user, error = authenticate_user(username, password)
    if user is None:
        log_security_event('login_failure', 'Failed login attempt', get_request_context(), severity='WARNING')
        message = hooks().apply_filters(ExtensionPoint.LOGIN_ERRORS, error)
        return render_template('login.html', site_title=get_site_title(), error=message)

    login_user(user)
    return redirect(url_for('site.index'))


@site.route('/logout')
def logout():
    logout_user()
    return redirect(url_for('site.index'))


@site.route('/health')
def health_check():
    return jsonify({
        'status': 'healthy',
        'build': get_build_info(),
        'timestamp': datetime.utcnow().isoformat()
    }), 200


# ==================== REST API ====================

def check_rest_authentication():
    """Run the REST authentication filters before any REST route is dispatched."""
    if not request.path.startswith(REST_PREFIX):
        return None

    result = hooks().apply_filters(ExtensionPoint.REST_AUTHENTICATION_ERRORS, None, get_request_context())
    if result is not None:
        return jsonify(result.to_dict()), result.status
    return None


@rest.route('/users')
def rest_users():
    ctx = get_request_context()
    users = User.query.order_by(User.id).all()
    return jsonify([user.to_rest(link=author_posts_url(user, ctx)) for user in users])


@rest.route(f'/users/<int(max={MAX_ID}):user_id>')
def rest_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'code': 'rest_user_invalid_id', 'message': 'Invalid user ID.',
                        'data': {'status': 404}}), 404
    return jsonify(user.to_rest(link=author_posts_url(user, get_request_context())))


@rest.route('/posts')
def rest_posts():
    ctx = get_request_context()
    embed = '_embed' in request.args
    posts = Post.query.order_by(Post.created_at.desc()).all()

    payload = []
    for post in posts:
        data = post.to_rest()
        if embed:
            data['_embedded'] = {'author': [post.author.to_rest(link=author_posts_url(post.author, ctx))]}
        payload.append(data)
    return jsonify(payload)


@rest.route('/comments')
def rest_comments():
    comments = Comment.query.order_by(Comment.created_at.desc()).all()
    return jsonify([comment.to_rest() for comment in comments])


# ==================== Application Factory ====================

def register_error_handlers(app):
    # SECURITY: denied REST requests and missing REST routes answer the same body

    @app.errorhandler(404)
    def handle_404(e):
        """Handle 404 Not Found."""
        if request.path.startswith(REST_PREFIX):
            error = no_route_error()
            return jsonify(error.to_dict()), error.status
        return "Not found", 404

    @app.errorhandler(405)
    def handle_405(e):
        """Wrong-method REST calls must not reveal that the route exists."""
        if request.path.startswith(REST_PREFIX):
            error = no_route_error()
            return jsonify(error.to_dict()), error.status
        return e

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Global exception handler to prevent stack trace leakage."""
        if isinstance(e, HTTPException):
            return e

        logger.error(f"Unhandled exception: {str(e)}")
        logger.error(traceback.format_exc())

        if request.path.startswith(REST_PREFIX):
            return jsonify({'code': 'internal_server_error', 'message': 'An internal server error occurred',
                            'data': {'status': 500}}), 500
        return "An error occurred", 500


def create_app(test_config=None):
    """Create the site application with username protection enabled."""
    app = Flask(__name__)

    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///username_protection.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # SECRET_KEY for session signing
    secret_key = os.environ.get('SECRET_KEY')
    if secret_key:
        app.config['SECRET_KEY'] = secret_key
    else:
        logger.warning("SECRET_KEY not found in environment. Using random key - sessions will not persist across restarts!")
        app.config['SECRET_KEY'] = secrets.token_hex(32)

    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    with app.app_context():
        db.create_all()

    setup_username_protection(app)

    app.before_request(check_rest_authentication)
    app.register_blueprint(site)
    app.register_blueprint(rest)
    register_error_handlers(app)

    logger.info(f"Site application v{get_version()} created")
    return app
