from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from studyroom import db

system = Blueprint('system', __name__)


@system.route('/health', methods=['GET'])
def health():
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning(f"[health] database check failed: {exc}")
        database = 'unavailable'
    status_code = 200 if database == 'ok' else 503
    return jsonify({'status': 'ok' if status_code == 200 else 'degraded', 'database': database}), status_code
