import logging
from sqlalchemy.exc import IntegrityError
from stackgame.errors import NameUnavailable
from stackgame.models import db, User, RESERVED_KEYS, name_key_for

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 32


def is_name_available(candidate, excluded_user_id=None):
    """
    Check whether a display name can be taken.

    Args:
        candidate (str): Requested display name
        excluded_user_id (int, optional): User allowed to already hold the name

    Returns:
        bool: True if no other user holds the name case-insensitively
    """
    name = (candidate or '').strip()
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        return False
    if name.lower() in RESERVED_KEYS:
        return False

    query = User.query.filter(User.name_key == name_key_for(name))
    if excluded_user_id is not None:
        query = query.filter(User.id != excluded_user_id)
    return query.first() is None


def claim_name(user, candidate):
    """
    Set the user's display name, relying on the unique name_key column.

    Raises:
        NameUnavailable: if the name is reserved, too short or taken
    """
    name = (candidate or '').strip()
    if not is_name_available(name, excluded_user_id=user.id):
        raise NameUnavailable(name)

    previous = user.display_name
    try:
        # Savepoint so a lost race only undoes the rename
        with db.session.begin_nested():
            user.set_display_name(name)
            db.session.flush()
    except IntegrityError:
        db.session.refresh(user)
        logger.info(f"Rename of user {user.id} to '{name}' lost a race")
        raise NameUnavailable(name)

    logger.info(f"User {user.id} renamed from '{previous}' to '{name}'")


def try_rename(user, candidate):
    """Rename if possible; an unavailable name silently keeps the old one."""
    name = (candidate or '').strip()
    if not name or name == user.display_name or name.lower() in RESERVED_KEYS:
        return False
    try:
        claim_name(user, name)
    except NameUnavailable:
        logger.debug(f"Keeping name '{user.display_name}' for user {user.id}")
        return False
    return True
