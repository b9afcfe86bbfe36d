import base64
import io

import pytest
from PIL import Image


def png_bytes(color=(255, 0, 0), size=(20, 20)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(color=(255, 0, 0), size=(20, 20)):
    return "data:image/png;base64," + base64.b64encode(png_bytes(color, size)).decode()


class FirstChoice:
    """Deterministic stand-in for ``random`` that always picks the first option."""

    def choice(self, seq):
        return seq[0]


class LastChoice:
    def choice(self, seq):
        return seq[-1]


@pytest.fixture
def app(tmp_path, monkeypatch):
    from app import app as flask_app

    for key, value in [("TESTING", True), ("WTF_CSRF_ENABLED", False),
                       ("UPLOAD_DIR", str(tmp_path / "uploads")), ("ADMIN_TOKEN", "secret-token")]:
        monkeypatch.setitem(flask_app.config, key, value)
    monkeypatch.setitem(flask_app.extensions, "openai", None)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()
