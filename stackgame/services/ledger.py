from datetime import datetime
import logging
from stackgame.models import db, Score

logger = logging.getLogger(__name__)


def has_session(user_id, session_key):
    """True if the ledger already holds this client session for the user."""
    if not session_key:
        return False
    return db.session.query(
        Score.query.filter_by(user_id=user_id,
                              session_key=session_key).exists()).scalar()


def append_score(user_id, session):
    """
    Append an immutable score record for a validated session.

    The caller owns the transaction; nothing is committed here so the
    append and the statistics merge land together or not at all.

    Args:
        user_id (int): Owning user
        session (SessionResult): Parsed session

    Returns:
        Score: The pending record
    """
    record = Score(user_id=user_id,
                   score=session.score,
                   max_combo=session.max_combo,
                   perfects=session.perfects,
                   zone=session.zone,
                   session_key=session.session_key,
                   played_at=datetime.utcnow())
    db.session.add(record)
    db.session.flush()
    logger.debug(f"Appended score {session.score} for user {user_id}")
    return record


def list_recent_scores(user_id, limit=20):
    """Yield the user's most recent score records, newest first."""
    query = Score.query.filter_by(user_id=user_id)\
        .order_by(Score.played_at.desc(), Score.id.desc())\
        .limit(max(int(limit), 0))
    for record in query:
        yield record
