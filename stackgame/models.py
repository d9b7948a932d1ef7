from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ANON_PROVIDER = 'anon'
DEFAULT_NAME = 'Player'
RESERVED_NAMES = ('Guest', 'Player')
RESERVED_KEYS = frozenset(name.lower() for name in RESERVED_NAMES)


def name_key_for(display_name):
    """Case-folded uniqueness key; reserved default names may be shared."""
    if not display_name or display_name.lower() in RESERVED_KEYS:
        return None
    return display_name.lower()


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(32), nullable=False)
    provider_id = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(64), nullable=False, default=DEFAULT_NAME)
    # Lower-cased display_name, NULL for default names
    name_key = db.Column(db.String(64), unique=True, nullable=True)
    email = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    best_score = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    total_perfects = db.Column(db.Integer, nullable=False, default=0)
    best_combo = db.Column(db.Integer, nullable=False, default=0)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    xp = db.Column(db.Integer, nullable=False, default=0)
    achievements = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('provider', 'provider_id',
                            name='user_provider_identity_constraint'),
        db.Index('idx_user_best_score', 'best_score'),
    )

    def __init__(self, provider, provider_id, display_name=DEFAULT_NAME,
                 email=None, avatar_url=None):
        self.provider = provider
        self.provider_id = provider_id
        self.set_display_name(display_name or DEFAULT_NAME)
        self.email = email
        self.avatar_url = avatar_url
        self.best_score = 0
        self.games_played = 0
        self.total_perfects = 0
        self.best_combo = 0
        self.total_score = 0
        self.xp = 0
        self.achievements = []

    @property
    def is_anonymous(self):
        return self.provider == ANON_PROVIDER

    def set_display_name(self, display_name):
        self.display_name = display_name
        self.name_key = name_key_for(display_name)

    def get_id(self):
        return str(self.id)

    def stats_dict(self):
        return {
            'bestScore': self.best_score,
            'gamesPlayed': self.games_played,
            'xp': self.xp,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'provider': self.provider,
            'anonymous': self.is_anonymous,
            'name': self.display_name,
            'email': self.email,
            'avatar': self.avatar_url,
            'bestScore': self.best_score,
            'gamesPlayed': self.games_played,
            'totalPerfects': self.total_perfects,
            'bestCombo': self.best_combo,
            'totalScore': self.total_score,
            'xp': self.xp,
            'achievements': sorted(self.achievements or []),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class Score(db.Model):
    __tablename__ = 'score'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False,
                        index=True)
    score = db.Column(db.Integer, nullable=False)
    max_combo = db.Column(db.Integer, default=0)
    perfects = db.Column(db.Integer, default=0)
    zone = db.Column(db.String(64), default='')
    # Client-generated id of the session, used to ignore replays
    session_key = db.Column(db.String(64), nullable=True)
    played_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'session_key',
                            name='score_user_session_constraint'),
        db.Index('idx_score_score', 'score'),
    )

    def to_dict(self):
        return {
            'score': self.score,
            'maxCombo': self.max_combo,
            'perfects': self.perfects,
            'zone': self.zone,
            'playedAt': self.played_at.isoformat() if self.played_at else None,
        }
