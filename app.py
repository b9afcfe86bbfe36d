import logging
import os
import secrets

import click
from flask import Flask, jsonify
from flask_login import LoginManager
from flask_wtf import CSRFProtect

from models import close_db, init_db, load_user
from titles import DEFAULT_MODEL, make_openai_client

# Import Blueprints
from routes.admin import admin_bp
from routes.errors import errors_bp
from routes.naming import titles_bp
from routes.posters import posters_bp

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY") or secrets.token_hex(32)

app.config.update(
    DATABASE_URL=os.environ.get("DATABASE_URL"),
    ADMIN_TOKEN=os.environ.get("ADMIN_TOKEN", "admin123"),
    OPENAI_API_KEY=os.environ.get("OPENAI_API_KEY"),
    OPENAI_MODEL=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
    UPLOAD_DIR=os.environ.get("UPLOAD_DIR", "uploads"),
    MAX_CONTENT_LENGTH=10 * 1024 * 1024,
)

# Security-related config
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax',
    REMEMBER_COOKIE_HTTPONLY=True,
)
if os.environ.get("FLASK_ENV") == "production":
    app.config.update(SESSION_COOKIE_SECURE=True, REMEMBER_COOKIE_SECURE=True)

# AI titles are optional
app.extensions["openai"] = make_openai_client(app.config["OPENAI_API_KEY"])
if app.extensions["openai"] is None:
    logger.warning("OpenAI API key not configured. AI title generation will use color-based titles.")
else:
    logger.info("OpenAI API configured for AI title generation")

# CSRF protection; the JSON API authenticates with the admin token instead
csrf = CSRFProtect(app)
for bp in (admin_bp, posters_bp, titles_bp):
    csrf.exempt(bp)

# Login manager
login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def _load_user(user_id):
    return load_user(user_id)

# Register Blueprints
app.register_blueprint(posters_bp)
app.register_blueprint(titles_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(errors_bp)

# Close DB connections on app context teardown
app.teardown_appcontext(close_db)


@app.cli.command("init-db")
def init_db_command():
    """Create the posters and likes tables."""
    init_db(app.config["DATABASE_URL"])
    click.echo("Database initialized.")


@app.route("/")
def home():
    return jsonify({"name": "Poster Forge", "posters": "/api/posters"})

if __name__ == "__main__":
    debug_mode = os.environ.get("DEBUG", "True") == "True"
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 10000))

    init_db(app.config["DATABASE_URL"])
    logger.info("Poster Forge running on http://%s:%s", host, port)
    app.run(host=host, port=port, debug=debug_mode)
