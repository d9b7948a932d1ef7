from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required
import logging
from stackgame.routes.game import authenticated_user
from stackgame.services.leaderboard import top_entries, rank_of

logger = logging.getLogger(__name__)

bp = Blueprint('stats', __name__)


@bp.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    max_entries = current_app.config['LEADERBOARD_LIMIT']
    limit = request.args.get('limit', default=max_entries, type=int)

    try:
        entries = top_entries(min(limit, max_entries))
        return jsonify({"leaderboard": entries}), 200

    except Exception as e:
        logger.error(f"Error fetching leaderboard: {str(e)}", exc_info=True)
        return jsonify({"error": "Failed to retrieve leaderboard data"}), 500


@bp.route('/me', methods=['GET'])
@jwt_required(optional=True)
def get_me():
    user = authenticated_user()
    if not user:
        return jsonify({"loggedIn": False}), 200

    user_data = user.to_dict()
    user_data['rank'] = rank_of(user)
    return jsonify({"loggedIn": True, "user": user_data}), 200
