import os
import psycopg2
import psycopg2.errors
import psycopg2.extras
from flask import current_app, g
from flask_login import UserMixin

ADMIN_ID = "admin"


# ----------------------
# Database connection
# ----------------------
def _dsn():
    try:
        return current_app.config["DATABASE_URL"]
    except RuntimeError:
        return os.environ.get("DATABASE_URL")


def get_db():
    db = getattr(g, "_database", None)
    if db is None:
        db = g._database = psycopg2.connect(_dsn(), cursor_factory=psycopg2.extras.RealDictCursor)
    return db

def close_db(e=None):
    db = g.pop("_database", None)
    if db is not None:
        db.close()


# ----------------------
# Initialize tables
# ----------------------
def init_db(dsn=None):
    with psycopg2.connect(dsn or _dsn()) as db:
        with db.cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS posters (
                    id SERIAL PRIMARY KEY,
                    title TEXT NOT NULL,
                    tags JSONB NOT NULL DEFAULT '[]',
                    image_path TEXT NOT NULL,
                    palette JSONB NOT NULL DEFAULT '[]',
                    poster_data JSONB,
                    likes INTEGER NOT NULL DEFAULT 0,
                    created_at BIGINT NOT NULL
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS likes (
                    poster_id INTEGER NOT NULL REFERENCES posters(id) ON DELETE CASCADE,
                    ip_address TEXT NOT NULL,
                    created_at BIGINT NOT NULL,
                    PRIMARY KEY (poster_id, ip_address)
                );
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS posters_created_at_idx ON posters (created_at DESC);")
        db.commit()


# ----------------------
# Admin user for Flask-Login
# ----------------------
class AdminUser(UserMixin):
    def __init__(self):
        self.id = ADMIN_ID
        self.role = "admin"


def load_user(user_id):
    if user_id == ADMIN_ID:
        return AdminUser()
    return None


# ----------------------
# Poster helpers
# ----------------------
def serialize_poster(row):
    return {
        "id": row["id"],
        "title": row["title"],
        "tags": row["tags"] or [],
        "imagePath": row["image_path"],
        "palette": row["palette"] or [],
        "posterData": row["poster_data"],
        "likes": row["likes"],
        "createdAt": row["created_at"],
    }


def create_poster(title, tags, palette, poster_data, created_at):
    """Insert a poster with an empty image path and return its id."""
    db = get_db()
    with db.cursor() as cursor:
        cursor.execute(
            "INSERT INTO posters (title, tags, image_path, palette, poster_data, likes, created_at) "
            "VALUES (%s, %s, '', %s, %s, 0, %s) RETURNING id;",
            (title, psycopg2.extras.Json(tags), psycopg2.extras.Json(palette),
             psycopg2.extras.Json(poster_data), created_at)
        )
        poster_id = cursor.fetchone()["id"]
    db.commit()
    return poster_id


def set_image_path(poster_id, image_path):
    db = get_db()
    with db.cursor() as cursor:
        cursor.execute("UPDATE posters SET image_path=%s WHERE id=%s;", (image_path, poster_id))
    db.commit()


def get_poster(poster_id):
    db = get_db()
    with db.cursor() as cursor:
        cursor.execute("SELECT * FROM posters WHERE id=%s;", (poster_id,))
        return cursor.fetchone()


def list_posters(sort="new", tag=None, limit=20, offset=0):
    query = "SELECT * FROM posters"
    params = []
    if tag:
        query += " WHERE tags @> %s"
        params.append(psycopg2.extras.Json([tag]))
    if sort == "likes":
        query += " ORDER BY likes DESC, created_at DESC"
    else:
        query += " ORDER BY created_at DESC"
    query += " LIMIT %s OFFSET %s;"
    params.extend([limit, offset])

    db = get_db()
    with db.cursor() as cursor:
        cursor.execute(query, params)
        return cursor.fetchall()


def count_posters(tag=None):
    query = "SELECT COUNT(*) AS total FROM posters"
    params = []
    if tag:
        query += " WHERE tags @> %s"
        params.append(psycopg2.extras.Json([tag]))

    db = get_db()
    with db.cursor() as cursor:
        cursor.execute(query + ";", params)
        return cursor.fetchone()["total"]


def delete_poster(poster_id):
    db = get_db()
    with db.cursor() as cursor:
        cursor.execute("DELETE FROM posters WHERE id=%s;", (poster_id,))
        deleted = cursor.rowcount
    db.commit()
    return deleted > 0


# ----------------------
# Like helpers
# ----------------------
def add_like(poster_id, ip_address, created_at):
    """Record a like and return the new count.

    Returns None when the poster does not exist. Raises
    ``psycopg2.errors.UniqueViolation`` when this address already liked it.
    """
    db = get_db()
    try:
        with db.cursor() as cursor:
            cursor.execute(
                "UPDATE posters SET likes = likes + 1 WHERE id=%s RETURNING likes;",
                (poster_id,)
            )
            row = cursor.fetchone()
            if row is None:
                db.rollback()
                return None
            cursor.execute(
                "INSERT INTO likes (poster_id, ip_address, created_at) VALUES (%s, %s, %s);",
                (poster_id, ip_address, created_at)
            )
        db.commit()
    except psycopg2.errors.UniqueViolation:
        db.rollback()
        raise
    return row["likes"]


def remove_like(poster_id, ip_address):
    """Remove a like and return the new count, or None if there was no like."""
    db = get_db()
    with db.cursor() as cursor:
        cursor.execute(
            "DELETE FROM likes WHERE poster_id=%s AND ip_address=%s;",
            (poster_id, ip_address)
        )
        if cursor.rowcount == 0:
            db.rollback()
            return None
        cursor.execute(
            "UPDATE posters SET likes = GREATEST(likes - 1, 0) WHERE id=%s RETURNING likes;",
            (poster_id,)
        )
        likes = cursor.fetchone()["likes"]
    db.commit()
    return likes
