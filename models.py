import enum
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


class Capability(enum.Enum):
    """Capabilities a user may hold."""
    READ = 'read'
    EDIT_POSTS = 'edit_posts'
    MANAGE_OPTIONS = 'manage_options'


class SystemConfig(db.Model):
    """Site-wide key/value settings."""

    __tablename__ = 'system_config'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False, unique=True)
    value = db.Column(db.String(500), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Site identity
    KEY_SITE_TITLE = 'site_title'
    KEY_SITE_URL = 'site_url'

    # Comma-separated list of username protections to switch off
    KEY_USERNAME_PROTECTION_DISABLED = 'username_protection_disabled'

    DEFAULT_SITE_TITLE = 'My Site'

    @staticmethod
    def get(key, default=None):
        """Get a configuration value."""
        config = SystemConfig.query.filter_by(key=key).first()
        if config:
            return config.value
        return default

    @staticmethod
    def set(key, value, description=None):
        """Set a configuration value."""
        config = SystemConfig.query.filter_by(key=key).first()
        if config:
            config.value = str(value)
            if description:
                config.description = description
        else:
            config = SystemConfig(key=key, value=str(value), description=description)
            db.session.add(config)
        db.session.commit()
        return config


class User(db.Model):
    """Site user. The username doubles as the author archive slug."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(60), nullable=False, unique=True)
    display_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=True)
    is_admin = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    posts = db.relationship('Post', backref='author', lazy=True)

    def set_password(self, password):
        """Hash and set the password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if the provided password matches."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def name(self):
        """Display name, falling back to the username."""
        return self.display_name or self.username

    @property
    def capabilities(self):
        caps = {Capability.READ.value, Capability.EDIT_POSTS.value}
        if self.is_admin:
            caps.add(Capability.MANAGE_OPTIONS.value)
        return caps

    def to_rest(self, link=None):
        """Representation served by the users REST endpoint."""
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.username,
            'link': link,
        }


class Post(db.Model):
    __tablename__ = 'posts'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    tags = db.Column(db.String(500), nullable=True)  # Comma-separated
    author_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    comments = db.relationship('Comment', backref='post', lazy=True, cascade='all, delete-orphan',
                               order_by='Comment.created_at')

    @property
    def tag_list(self):
        return [tag.strip().lower() for tag in (self.tags or '').split(',') if tag.strip()]

    def to_rest(self):
        return {
            'id': self.id,
            'date': self.created_at.isoformat(),
            'title': {'rendered': self.title},
            'content': {'rendered': self.content or ''},
            'author': self.author_id,
        }


class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id'), nullable=False)
    author_name = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_rest(self):
        return {
            'id': self.id,
            'post': self.post_id,
            'author_name': self.author_name,
            'date': self.created_at.isoformat(),
            'content': {'rendered': self.content},
        }
