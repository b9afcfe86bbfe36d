import hmac
import logging
import os
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_user, logout_user

from forms import AdminLoginForm, json_body
from models import AdminUser, delete_poster, get_poster

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def token_matches(token):
    expected = current_app.config["ADMIN_TOKEN"]
    if not isinstance(token, str) or not expected:
        return False
    return hmac.compare_digest(token.encode(), expected.encode())


# ---------------------------
# Admin enforcement decorator
# ---------------------------
def admin_required(fn):
    @wraps(fn)
    def decorated(*args, **kwargs):
        if current_user.is_authenticated and getattr(current_user, "role", None) == "admin":
            return fn(*args, **kwargs)
        if token_matches(json_body().get("adminToken")):
            return fn(*args, **kwargs)
        return jsonify({"error": "Unauthorized"}), 403
    return decorated


@admin_bp.route('/api/admin/login', methods=['POST'])
def login():
    form = AdminLoginForm.from_json()
    if form.validate_on_submit() and token_matches(form.token.data):
        login_user(AdminUser())
        logger.info("Admin logged in from %s", request.remote_addr)
        return jsonify({"success": True, "message": "Admin authenticated"})
    logger.warning("Rejected admin login from %s", request.remote_addr)
    return jsonify({"success": False, "error": "Invalid admin token"}), 401


@admin_bp.route('/api/admin/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({"success": True, "message": "Logged out"})


@admin_bp.route('/api/posters/<int:poster_id>', methods=['DELETE'])
@admin_required
def remove_poster(poster_id):
    poster = get_poster(poster_id)
    if not poster:
        return jsonify({"error": "Poster not found"}), 404

    image_path = poster["image_path"]
    if image_path:
        full_path = os.path.join(current_app.config["UPLOAD_DIR"], os.path.basename(image_path))
        if os.path.exists(full_path):
            os.remove(full_path)

    # likes go with it via ON DELETE CASCADE
    delete_poster(poster_id)
    logger.info("Deleted poster %s", poster_id)
    return jsonify({"message": "Poster deleted successfully"})
