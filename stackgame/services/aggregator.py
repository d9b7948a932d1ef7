from datetime import datetime
import logging
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from stackgame.errors import InvalidInput
from stackgame.models import db, User
from stackgame.services.ledger import append_score, has_session
from stackgame.services.names import try_rename
from stackgame.services.session import SessionResult

logger = logging.getLogger(__name__)


def _greatest(column, value):
    return case((column < value, value), else_=column)


def merge_session(user, session):
    """
    Merge one session into the user's running statistics.

    Counters are computed by the database from the row's current values in a
    single UPDATE, so concurrent merges for the same user cannot overwrite
    each other's increments. Achievements are unioned under a row lock held
    until the surrounding transaction ends.

    Args:
        user (User): Persistent user
        session (SessionResult): Parsed session

    Returns:
        User: The refreshed user
    """
    current = db.session.execute(
        select(User.achievements).where(User.id == user.id).with_for_update()
    ).scalar_one()
    current = list(current or [])

    values = {
        'best_score': _greatest(User.best_score, session.score),
        'games_played': User.games_played + 1,
        'total_perfects': User.total_perfects + session.perfects,
        'best_combo': _greatest(User.best_combo, session.max_combo),
        'total_score': User.total_score + session.score,
        'xp': User.xp + session.xp_earned,
        'updated_at': datetime.utcnow(),
    }
    new_achievements = [a for a in session.achievements if a not in current]
    if new_achievements:
        values['achievements'] = current + new_achievements
        logger.info(f"User {user.id} unlocked {new_achievements}")

    db.session.execute(
        update(User).where(User.id == user.id).values(**values)
        .execution_options(synchronize_session=False))
    db.session.refresh(user)
    return user


def submit_session(user, session, player_name=None):
    """
    Record one session: optional rename, ledger append and statistics merge,
    committed together.

    Returns:
        tuple: (User, bool) where the flag is False when the session key was
            already recorded and nothing changed
    """
    try:
        if has_session(user.id, session.session_key):
            logger.info(f"Ignoring replayed session {session.session_key} for user {user.id}")
            return user, False
        if player_name:
            try_rename(user, player_name)
        append_score(user.id, session)
        merge_session(user, session)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # A concurrent request recorded the same session key first
        if has_session(user.id, session.session_key):
            db.session.refresh(user)
            return user, False
        raise
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Recorded score {session.score} for user {user.id} "
        f"(best {user.best_score}, games {user.games_played})")
    return user, True


def sync_sessions(user, payloads, player_name=None):
    """
    Merge a batch of sessions collected offline, in order.

    Sessions that fail validation or were already recorded are skipped
    without aborting the batch.

    Returns:
        int: Number of sessions merged
    """
    if not isinstance(payloads, list):
        raise InvalidInput("'scores' must be a list")

    synced = 0
    try:
        if player_name:
            try_rename(user, player_name)
        for index, payload in enumerate(payloads):
            try:
                session = SessionResult.from_payload(payload)
            except InvalidInput as e:
                logger.info(f"Skipping synced session {index} for user {user.id}: {e.message}")
                continue
            if has_session(user.id, session.session_key):
                continue
            try:
                with db.session.begin_nested():
                    append_score(user.id, session)
                    merge_session(user, session)
            except IntegrityError:
                # Recorded by a concurrent request since the check above
                logger.info(f"Skipping replayed session {session.session_key} for user {user.id}")
                continue
            synced += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Synced {synced}/{len(payloads)} sessions for user {user.id}")
    return synced
