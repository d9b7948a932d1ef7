from datetime import datetime
import logging
from sqlalchemy.exc import IntegrityError
from stackgame.errors import InvalidInput
from stackgame.models import db, User, ANON_PROVIDER, DEFAULT_NAME
from stackgame.services.names import is_name_available, try_rename

logger = logging.getLogger(__name__)


def load_user(user_id):
    """Fetch a user by primary key, tolerating malformed ids from tokens."""
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def find_user(provider, provider_id):
    return User.query.filter_by(provider=provider,
                                provider_id=str(provider_id)).first()


def _create_user(provider, provider_id, display_name, email=None,
                 avatar_url=None):
    """
    Insert a new user, enforcing name uniqueness at creation.

    A requested name that is taken falls back to the default name. If a
    concurrent request created the same identity first, that row is returned.
    """
    name = (display_name or '').strip()
    if not is_name_available(name):
        name = DEFAULT_NAME

    for candidate in (name, DEFAULT_NAME):
        user = User(provider=provider,
                    provider_id=str(provider_id),
                    display_name=candidate,
                    email=email or None,
                    avatar_url=avatar_url or None)
        try:
            with db.session.begin_nested():
                db.session.add(user)
                db.session.flush()
            db.session.commit()
            logger.info(
                f"Created {provider} user {user.id} named '{user.display_name}'")
            return user
        except IntegrityError:
            existing = find_user(provider, provider_id)
            if existing:
                logger.info(
                    f"Identity {provider}:{provider_id} created concurrently, reusing user {existing.id}")
                return existing
            logger.info(f"Name '{candidate}' taken during creation, using default")

    # Default names carry no uniqueness key, so the loop cannot fall through
    raise RuntimeError(f"Could not create user for {provider}:{provider_id}")


def resolve_provider_identity(provider, profile):
    """
    Map a verified provider profile to a user, creating it on first login.

    Args:
        provider (str): Provider name, e.g. 'google'
        profile (dict): Normalised profile with 'id', 'name', 'email', 'avatar'

    Returns:
        User: The canonical user for (provider, profile id)
    """
    provider_id = profile.get('id')
    if not provider_id:
        raise InvalidInput("Provider profile has no id")
    if provider == ANON_PROVIDER:
        raise InvalidInput("Reserved provider name")

    user = find_user(provider, provider_id)
    if not user:
        return _create_user(provider, provider_id,
                            profile.get('name') or DEFAULT_NAME,
                            email=profile.get('email'),
                            avatar_url=profile.get('avatar'))

    # Latest provider values win, empty values keep what we have
    if profile.get('name'):
        try_rename(user, profile['name'])
    user.email = profile.get('email') or user.email
    user.avatar_url = profile.get('avatar') or user.avatar_url
    user.updated_at = datetime.utcnow()
    db.session.commit()
    logger.debug(f"Refreshed profile for {provider} user {user.id}")
    return user


def resolve_device_identity(device_id, display_name=None):
    """Find or create the anonymous user bound to a device id."""
    if not isinstance(device_id, str) or not device_id.strip():
        raise InvalidInput("Invalid deviceId")
    device_id = device_id.strip()

    user = find_user(ANON_PROVIDER, device_id)
    if user:
        return user
    return _create_user(ANON_PROVIDER, device_id, display_name or DEFAULT_NAME)
