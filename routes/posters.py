import logging
import math
import os
import time

import psycopg2.errors
from flask import Blueprint, current_app, jsonify, request, send_from_directory

from forms import json_body
from models import (add_like, count_posters, create_poster, get_poster, list_posters,
                    remove_like, serialize_poster, set_image_path)
from palette import decode_data_url, palette_from_image
from routes.naming import make_title

logger = logging.getLogger(__name__)

posters_bp = Blueprint('posters', __name__)

PNG_PREFIX = "data:image/png;base64,"
MAX_PAGE_SIZE = 100


def client_ip():
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def normalize_tags(tags):
    if not isinstance(tags, list):
        return []
    cleaned = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def now_ms():
    return int(time.time() * 1000)


# ---------------------------
# Create + browse
# ---------------------------
@posters_bp.route('/api/posters', methods=['POST'])
def add_poster():
    body = json_body()
    image_data_url = body.get("imageDataURL")
    if not image_data_url:
        return jsonify({"error": "Image is required"}), 400
    if not isinstance(image_data_url, str) or not image_data_url.startswith(PNG_PREFIX):
        return jsonify({"error": "Invalid image format"}), 400

    try:
        image_bytes = decode_data_url(image_data_url)
    except ValueError:
        return jsonify({"error": "Invalid image data"}), 400

    palette = palette_from_image(image_bytes)

    title = body.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        title = make_title(image_data_url, palette=palette)
        logger.info("No title provided, generated: %s", title)

    tags = normalize_tags(body.get("tags"))
    created_at = now_ms()

    poster_id = create_poster(title, tags, palette, body.get("posterData"), created_at)

    upload_dir = current_app.config["UPLOAD_DIR"]
    os.makedirs(upload_dir, exist_ok=True)
    filename = f"{poster_id}.png"
    with open(os.path.join(upload_dir, filename), "wb") as fh:
        fh.write(image_bytes)
    image_path = f"uploads/{filename}"
    set_image_path(poster_id, image_path)

    return jsonify({
        "id": poster_id,
        "title": title,
        "tags": tags,
        "imagePath": image_path,
        "palette": palette,
        "likes": 0,
        "createdAt": created_at,
    })


@posters_bp.route('/api/posters', methods=['GET'])
def browse_posters():
    sort = request.args.get("sort", "new")
    tag = request.args.get("tag") or None
    page = max(1, request.args.get("page", 1, type=int))
    limit = min(MAX_PAGE_SIZE, max(1, request.args.get("limit", 20, type=int)))

    rows = list_posters(sort=sort, tag=tag, limit=limit, offset=(page - 1) * limit)
    total = count_posters(tag=tag)
    return jsonify({
        "posters": [serialize_poster(row) for row in rows],
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / limit),
    })


@posters_bp.route('/api/posters/<int:poster_id>/data', methods=['GET'])
def poster_data(poster_id):
    poster = get_poster(poster_id)
    if not poster:
        return jsonify({"error": "Poster not found"}), 404
    data = serialize_poster(poster)
    return jsonify({key: data[key] for key in ("id", "title", "tags", "posterData", "palette")})


# ---------------------------
# Likes
# ---------------------------
@posters_bp.route('/api/posters/<int:poster_id>/like', methods=['POST'])
def like_poster(poster_id):
    try:
        likes = add_like(poster_id, client_ip(), now_ms())
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Already liked this poster"}), 400
    if likes is None:
        return jsonify({"error": "Poster not found"}), 404
    return jsonify({"likes": likes, "message": "Liked successfully"})


@posters_bp.route('/api/posters/<int:poster_id>/like', methods=['DELETE'])
def unlike_poster(poster_id):
    likes = remove_like(poster_id, client_ip())
    if likes is None:
        return jsonify({"error": "You have not liked this poster"}), 400
    return jsonify({"likes": likes, "message": "Unliked successfully"})


@posters_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(os.path.abspath(current_app.config["UPLOAD_DIR"]), filename)
