from flask import Blueprint, current_app, jsonify

from forms import json_body
from titles import generate_ai_title

titles_bp = Blueprint('titles', __name__)


def make_title(image_data_url, palette=None):
    return generate_ai_title(
        image_data_url,
        palette=palette,
        client=current_app.extensions.get("openai"),
        model=current_app.config["OPENAI_MODEL"],
    )


@titles_bp.route('/api/generate-title', methods=['POST'])
def generate_title():
    image_data_url = json_body().get("imageDataURL")
    if not image_data_url:
        return jsonify({"error": "Image data is required"}), 400
    return jsonify({"title": make_title(image_data_url)})
