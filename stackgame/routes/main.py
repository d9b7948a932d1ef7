import logging
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from stackgame.models import db

logger = logging.getLogger(__name__)

bp = Blueprint('main', __name__)


@bp.route('/', strict_slashes=True)
def index():
    """Return API status"""
    return jsonify({"status": "ok", "message": "STACK Game API"})


@bp.route('/api/health')
def health_check():
    """Report whether the API can reach its database"""
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Health check failed: {str(e)}")
        return jsonify({"status": "error", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"}), 200
