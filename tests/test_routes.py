import os

import psycopg2.errors
import pytest

from conftest import png_bytes, png_data_url


def poster_row(poster_id=1, **overrides):
    row = {
        "id": poster_id,
        "title": "Vibrant Red",
        "tags": ["sale"],
        "image_path": f"uploads/{poster_id}.png",
        "palette": ["#ff0000"],
        "poster_data": {"layers": []},
        "likes": 3,
        "created_at": 1700000000000,
    }
    row.update(overrides)
    return row


@pytest.fixture
def store(monkeypatch):
    """In-memory replacement for the poster queries used by the views."""
    state = {"posters": {}, "likes": set(), "next_id": 1}

    def create_poster(title, tags, palette, poster_data, created_at):
        poster_id = state["next_id"]
        state["next_id"] += 1
        state["posters"][poster_id] = poster_row(
            poster_id, title=title, tags=tags, palette=palette, poster_data=poster_data,
            likes=0, created_at=created_at, image_path="")
        return poster_id

    def set_image_path(poster_id, image_path):
        state["posters"][poster_id]["image_path"] = image_path

    def get_poster(poster_id):
        return state["posters"].get(poster_id)

    def list_posters(sort="new", tag=None, limit=20, offset=0):
        rows = [p for p in state["posters"].values() if not tag or tag in p["tags"]]
        key = (lambda p: (p["likes"], p["created_at"])) if sort == "likes" else (lambda p: p["created_at"])
        return sorted(rows, key=key, reverse=True)[offset:offset + limit]

    def count_posters(tag=None):
        return len([p for p in state["posters"].values() if not tag or tag in p["tags"]])

    def add_like(poster_id, ip_address, created_at):
        if poster_id not in state["posters"]:
            return None
        if (poster_id, ip_address) in state["likes"]:
            raise psycopg2.errors.UniqueViolation("duplicate key")
        state["likes"].add((poster_id, ip_address))
        state["posters"][poster_id]["likes"] += 1
        return state["posters"][poster_id]["likes"]

    def remove_like(poster_id, ip_address):
        if (poster_id, ip_address) not in state["likes"]:
            return None
        state["likes"].discard((poster_id, ip_address))
        state["posters"][poster_id]["likes"] -= 1
        return state["posters"][poster_id]["likes"]

    def delete_poster(poster_id):
        return state["posters"].pop(poster_id, None) is not None

    for name, fn in [("create_poster", create_poster), ("set_image_path", set_image_path),
                     ("get_poster", get_poster), ("list_posters", list_posters),
                     ("count_posters", count_posters), ("add_like", add_like),
                     ("remove_like", remove_like)]:
        monkeypatch.setattr(f"routes.posters.{name}", fn)
    monkeypatch.setattr("routes.admin.get_poster", get_poster)
    monkeypatch.setattr("routes.admin.delete_poster", delete_poster)
    return state


# ---------------------------
# Titles
# ---------------------------
def test_generate_title_requires_image(client):
    resp = client.post("/api/generate-title", json={})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Image data is required"}


def test_generate_title_from_colors(client):
    resp = client.post("/api/generate-title", json={"imageDataURL": png_data_url((0, 0, 0))})
    assert resp.status_code == 200
    words = resp.get_json()["title"].split()
    assert "Charcoal" in words or words[0] in ("Dark", "Mysterious", "Deep", "Shadow")


# ---------------------------
# Create
# ---------------------------
def test_create_requires_image(client, store):
    resp = client.post("/api/posters", json={"title": "Hi"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Image is required"


def test_create_rejects_non_png(client, store):
    resp = client.post("/api/posters", json={"imageDataURL": "data:image/jpeg;base64,AAAA"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid image format"


def test_create_rejects_bad_base64(client, store):
    resp = client.post("/api/posters", json={"imageDataURL": "data:image/png;base64,***"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid image data"


def test_create_poster(client, store, app):
    assert not os.path.exists(app.config["UPLOAD_DIR"])
    resp = client.post("/api/posters", json={
        "title": "  Red Square ",
        "tags": ["sale", " sale ", "", 3, "art"],
        "imageDataURL": png_data_url((255, 0, 0)),
        "posterData": {"layers": [1, 2]},
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["id"] == 1
    assert body["title"] == "Red Square"
    assert body["tags"] == ["sale", "art"]
    assert body["palette"] == ["#ff0000"]
    assert body["imagePath"] == "uploads/1.png"
    assert body["likes"] == 0

    saved = os.path.join(app.config["UPLOAD_DIR"], "1.png")
    with open(saved, "rb") as fh:
        assert fh.read() == png_bytes((255, 0, 0))
    assert store["posters"][1]["image_path"] == "uploads/1.png"
    assert store["posters"][1]["poster_data"] == {"layers": [1, 2]}


def test_create_generates_missing_title(client, store):
    resp = client.post("/api/posters", json={"title": "   ", "imageDataURL": png_data_url((255, 0, 0))})
    title = resp.get_json()["title"]
    assert title
    assert 2 <= len(title.split()) <= 4


def test_missing_title_reuses_palette(client, store, monkeypatch):
    import routes.posters
    import titles

    calls = []
    extract = routes.posters.palette_from_image

    def counting_extract(image_bytes):
        calls.append(image_bytes)
        return extract(image_bytes)

    def unexpected_extract(image_bytes):
        raise AssertionError("image decoded a second time for the title")

    monkeypatch.setattr("routes.posters.palette_from_image", counting_extract)
    monkeypatch.setattr(titles, "palette_from_image", unexpected_extract)

    resp = client.post("/api/posters", json={"imageDataURL": png_data_url((0, 0, 0))})
    assert resp.status_code == 200
    assert len(calls) == 1
    words = resp.get_json()["title"].split()
    assert "Charcoal" in words or words[0] in ("Dark", "Mysterious", "Deep", "Shadow")


# ---------------------------
# Browse
# ---------------------------
def test_browse_paginates_and_filters(client, store):
    store["posters"].update({
        1: poster_row(1, tags=["a"], likes=5, created_at=1),
        2: poster_row(2, tags=["b"], likes=1, created_at=2),
        3: poster_row(3, tags=["a", "b"], likes=9, created_at=3),
    })

    body = client.get("/api/posters?limit=2").get_json()
    assert [p["id"] for p in body["posters"]] == [3, 2]
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert body["page"] == 1

    body = client.get("/api/posters?sort=likes&tag=a").get_json()
    assert [p["id"] for p in body["posters"]] == [3, 1]
    assert body["posters"][0]["palette"] == ["#ff0000"]
    assert body["posters"][0]["imagePath"] == "uploads/3.png"

    body = client.get("/api/posters?page=0&limit=junk").get_json()
    assert body["page"] == 1


def test_poster_data(client, store):
    store["posters"][7] = poster_row(7)
    body = client.get("/api/posters/7/data").get_json()
    assert body == {"id": 7, "title": "Vibrant Red", "tags": ["sale"],
                    "posterData": {"layers": []}, "palette": ["#ff0000"]}
    assert client.get("/api/posters/8/data").status_code == 404


# ---------------------------
# Likes
# ---------------------------
def test_like_once_per_ip(client, store):
    store["posters"][1] = poster_row(1, likes=0)
    headers = {"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}

    resp = client.post("/api/posters/1/like", headers=headers)
    assert resp.get_json() == {"likes": 1, "message": "Liked successfully"}
    assert (1, "10.0.0.1") in store["likes"]

    resp = client.post("/api/posters/1/like", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Already liked this poster"

    resp = client.delete("/api/posters/1/like", headers=headers)
    assert resp.get_json() == {"likes": 0, "message": "Unliked successfully"}

    resp = client.delete("/api/posters/1/like", headers=headers)
    assert resp.status_code == 400


def test_like_missing_poster(client, store):
    assert client.post("/api/posters/99/like").status_code == 404


# ---------------------------
# Admin
# ---------------------------
def test_admin_login(client):
    resp = client.post("/api/admin/login", json={"token": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Invalid admin token"}

    resp = client.post("/api/admin/login", json={"token": "secret-token"})
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True


def test_delete_requires_admin(client, store):
    store["posters"][1] = poster_row(1)
    assert client.delete("/api/posters/1", json={}).status_code == 403
    assert client.delete("/api/posters/1", json={"adminToken": "nope"}).status_code == 403
    assert 1 in store["posters"]


def test_delete_with_token_removes_file(client, store, app):
    store["posters"][1] = poster_row(1)
    os.makedirs(app.config["UPLOAD_DIR"])
    image = os.path.join(app.config["UPLOAD_DIR"], "1.png")
    with open(image, "wb") as fh:
        fh.write(png_bytes())

    resp = client.delete("/api/posters/1", json={"adminToken": "secret-token"})
    assert resp.get_json() == {"message": "Poster deleted successfully"}
    assert not os.path.exists(image)
    assert 1 not in store["posters"]

    assert client.delete("/api/posters/1", json={"adminToken": "secret-token"}).status_code == 404


def test_delete_with_admin_session(client, store):
    store["posters"][2] = poster_row(2)
    client.post("/api/admin/login", json={"token": "secret-token"})
    assert client.delete("/api/posters/2").status_code == 200

    client.post("/api/admin/logout")
    store["posters"][3] = poster_row(3)
    assert client.delete("/api/posters/3").status_code == 403


# ---------------------------
# Errors
# ---------------------------
def test_unknown_api_path_is_json(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Resource not found"}


def test_unhandled_error_is_json(client, monkeypatch):
    def boom(poster_id):
        raise RuntimeError("db down")

    monkeypatch.setattr("routes.posters.get_poster", boom)
    resp = client.get("/api/posters/1/data")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}


# ---------------------------
# Non-object JSON bodies
# ---------------------------
@pytest.mark.parametrize("payload", [[1, 2], ["x"], "abc", 42, None])
def test_generate_title_non_object_body(client, payload):
    resp = client.post("/api/generate-title", json=payload)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Image data is required"}


@pytest.mark.parametrize("payload", [["x"], "abc", 42])
def test_create_poster_non_object_body(client, store, payload):
    resp = client.post("/api/posters", json=payload)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Image is required"}


@pytest.mark.parametrize("payload", [["secret-token"], "abc", "secret-token", 42, {"token": ["a", "b"]}])
def test_admin_login_non_object_body(client, payload):
    resp = client.post("/api/admin/login", json=payload)
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Invalid admin token"}


def test_admin_login_malformed_json(client):
    resp = client.post("/api/admin/login", data="{not json", content_type="application/json")
    assert resp.status_code == 401


@pytest.mark.parametrize("payload", [["secret-token"], "secret-token"])
def test_delete_non_object_body(client, store, payload):
    store["posters"][1] = poster_row(1)
    assert client.delete("/api/posters/1", json=payload).status_code == 403
    assert 1 in store["posters"]


def test_oversized_body_is_json(client, app, monkeypatch):
    monkeypatch.setitem(app.config, "MAX_CONTENT_LENGTH", 64)
    resp = client.post("/api/generate-title", json={"imageDataURL": "x" * 500})
    assert resp.status_code == 413
    assert resp.get_json() == {"error": "Request body too large"}
