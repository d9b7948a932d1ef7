from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (create_access_token, create_refresh_token,
                                get_jwt_identity, jwt_required, get_jwt)
import logging
from stackgame import jwt_blocklist
from stackgame.errors import StackError
from stackgame.models import db
from stackgame.services.identity import load_user, resolve_provider_identity
from stackgame.services.providers import enabled_providers, fetch_profile

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)


@bp.route('/providers', methods=['GET'])
def auth_providers():
    """Which third-party logins this server accepts"""
    return jsonify(enabled_providers(current_app.config)), 200


@bp.route('/<provider>/login', methods=['POST'])
def provider_login(provider):
    """Exchange a provider access token for our own tokens"""
    data = request.get_json(silent=True) or {}
    try:
        profile = fetch_profile(provider, data.get('accessToken'),
                                current_app.config)
        user = resolve_provider_identity(provider, profile)

        access_token = create_access_token(identity=user.get_id(),
                                           fresh=True,
                                           additional_claims={
                                               "name": user.display_name,
                                               "provider": provider
                                           })
        refresh_token = create_refresh_token(identity=user.get_id())

        logger.info(f"Successful {provider} login for user {user.id}")
        return jsonify({
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": user.to_dict()
        }), 200

    except StackError:
        raise
    except Exception as e:
        logger.error(f"Error in {provider} login: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"error": "Error during login"}), 500


@bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Refresh access token using refresh token"""
    user = load_user(get_jwt_identity())
    if not user:
        return jsonify({"error": "User not found"}), 404

    new_access_token = create_access_token(identity=user.get_id(),
                                           fresh=False,
                                           additional_claims={
                                               "name": user.display_name,
                                               "provider": user.provider
                                           })
    return jsonify({"access_token": new_access_token}), 200


@bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    jwt_blocklist.add(get_jwt()["jti"])
    return jsonify({"success": True}), 200
