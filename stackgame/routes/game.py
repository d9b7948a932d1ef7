from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging
from stackgame.errors import StackError, IdentityRequired
from stackgame.models import db, ANON_PROVIDER
from stackgame.services.aggregator import submit_session, sync_sessions
from stackgame.services.identity import load_user, find_user, resolve_device_identity
from stackgame.services.ledger import list_recent_scores
from stackgame.services.names import is_name_available
from stackgame.services.session import SessionResult

logger = logging.getLogger(__name__)

bp = Blueprint('game', __name__)


def _player_name(data):
    name = data.get('playerName')
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def authenticated_user():
    """The user named by a valid access token, or None."""
    user_id = get_jwt_identity()
    if user_id is None:
        return None
    user = load_user(user_id)
    if not user:
        logger.warning(f"Token refers to unknown user {user_id}")
    return user


def resolve_request_user(data):
    """
    An access token wins over a device id; a device id on its own finds or
    creates the anonymous user for that device.
    """
    user = authenticated_user()
    if user:
        return user
    if not data.get('deviceId'):
        raise IdentityRequired()
    return resolve_device_identity(data.get('deviceId'), _player_name(data))


@bp.route('/score', methods=['POST'])
@jwt_required(optional=True)
def submit_score():
    """Record one finished game session"""
    data = request.get_json(silent=True) or {}
    try:
        # Validate before touching identity so a bad body changes nothing
        session = SessionResult.from_payload(data)
        user = resolve_request_user(data)
        user, recorded = submit_session(user, session,
                                        player_name=_player_name(data))

        return jsonify({
            "success": True,
            "duplicate": not recorded,
            "user": user.stats_dict()
        }), 200

    except StackError:
        raise
    except Exception as e:
        logger.error(f"Error recording score: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"error": "Failed to record score"}), 500


@bp.route('/sync', methods=['POST'])
@jwt_required(optional=True)
def sync_scores():
    """Merge sessions played offline"""
    data = request.get_json(silent=True) or {}
    try:
        scores = data.get('scores')
        if not isinstance(scores, list):
            return jsonify({"error": "Invalid"}), 400

        user = resolve_request_user(data)
        synced = sync_sessions(user, scores, player_name=_player_name(data))

        return jsonify({"success": True, "synced": synced}), 200

    except StackError:
        raise
    except Exception as e:
        logger.error(f"Error syncing scores: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"error": "Failed to sync scores"}), 500


@bp.route('/check-name', methods=['GET'])
@jwt_required(optional=True)
def check_name():
    """Check whether a display name is free for this player"""
    name = request.args.get('name', '')
    excluded_id = None

    user = authenticated_user()
    device_id = request.args.get('deviceId', '').strip()
    if not user and device_id:
        user = find_user(ANON_PROVIDER, device_id)
    if user:
        excluded_id = user.id

    return jsonify({"available": is_name_available(name, excluded_id)}), 200


@bp.route('/scores', methods=['GET'])
@jwt_required(optional=True)
def recent_scores():
    """Most recent sessions for the requesting player"""
    limit = request.args.get('limit',
                             default=current_app.config['RECENT_SCORES_LIMIT'],
                             type=int)
    limit = min(max(limit, 0), current_app.config['RECENT_SCORES_LIMIT'])

    user = authenticated_user()
    if not user:
        device_id = request.args.get('deviceId', '').strip()
        if not device_id:
            raise IdentityRequired()
        user = find_user(ANON_PROVIDER, device_id)
        if not user:
            return jsonify({"scores": []}), 200

    return jsonify({
        "scores": [record.to_dict() for record in list_recent_scores(user.id, limit)]
    }), 200
