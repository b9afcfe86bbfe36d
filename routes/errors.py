import logging

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

errors_bp = Blueprint('errors', __name__)


@errors_bp.app_errorhandler(404)
def not_found_error(error):
    if request.path.startswith('/api/'):
        return jsonify({"error": "Resource not found"}), 404
    return error


@errors_bp.app_errorhandler(405)
def method_not_allowed(error):
    if request.path.startswith('/api/'):
        return jsonify({"error": "Method not allowed"}), 405
    return error


@errors_bp.app_errorhandler(413)
def payload_too_large(error):
    if request.path.startswith('/api/'):
        return jsonify({"error": "Request body too large"}), 413
    return error


@errors_bp.app_errorhandler(Exception)
def handle_unexpected_exception(error):
    if isinstance(error, HTTPException):
        return error
    logger.error("Unhandled exception on %s %s", request.method, request.path, exc_info=error)
    return jsonify({"error": "Internal server error"}), 500
