import functools
import io
import json
import os
from types import SimpleNamespace

import pytest
from flask import Flask, Response
from PIL import Image

from plutoimg.app import Pluto


class FakeDb:
    def __init__(self):
        self.images = {}
        self.executed = []
        self.fail_execute = False

    def query_row(self, sql, *args):
        row = self.images.get(args[0])
        if row is None:
            raise LookupError("no rows in result set")
        return row

    def execute(self, sql, *args):
        if self.fail_execute:
            raise RuntimeError("connection lost")
        self.executed.append((sql, args))


def _png_bytes(size=(40, 20)):
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 10, 10)).save(buf, "PNG")
    return buf.getvalue()


def _build(tmp_path, middlewares=(), verbose=False):
    image_dir = tmp_path / "images"
    cache_dir = tmp_path / "cache"
    image_dir.mkdir()
    cache_dir.mkdir()
    (image_dir / "abc.png").write_bytes(_png_bytes())
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"pluto_image_dir": str(image_dir), "pluto_cache_dir": str(cache_dir)})
    )
    db = FakeDb()
    db.images[1] = ("cat.png", "abc.png", "png")
    pluto = Pluto(str(config_path), db, verbose)
    app = Flask(__name__)
    pluto.register_routes(app, *middlewares)
    return SimpleNamespace(
        pluto=pluto, db=db, client=app.test_client(), image_dir=image_dir, cache_dir=cache_dir
    )


@pytest.fixture
def env(tmp_path):
    return _build(tmp_path)


def test_init_loads_config_and_logs(tmp_path, capsys):
    built = _build(tmp_path, verbose=True)
    out = capsys.readouterr().out
    assert "pluto: loading configuration" in out
    assert built.pluto.config.pluto_cache_dir == str(tmp_path / "cache")


def test_log_silent_when_not_verbose(env, capsys):
    capsys.readouterr()
    env.pluto.log("hello")
    assert capsys.readouterr().out == ""


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Pluto(str(tmp_path / "missing.json"), FakeDb(), False)


def test_get_file_serves_cached_file(env):
    (env.cache_dir / "pic.png").write_bytes(b"pixels")
    response = env.client.get("/image/file/pic.png")
    assert response.status_code == 200
    assert response.get_data() == b"pixels"
    assert response.headers["Content-Type"] == "image/png"


def test_get_file_rejects_traversal(env):
    response = env.client.get("/image/file/..secret")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid file path"}


def test_get_file_missing(env):
    response = env.client.get("/image/file/nothing.png")
    assert response.status_code == 404
    assert response.get_json() == {"error": "File not found"}


def test_get_image_invalid_id(env):
    response = env.client.get("/image/get?id=abc")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Invalid image id"


def test_get_image_invalid_ratio(env):
    response = env.client.get("/image/get?id=1&ratio=wide")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Invalid ratio format. Use format like '3by2'"


def test_get_image_unknown_id(env):
    response = env.client.get("/image/get?id=7&type=png")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Image not found"


def test_get_image_renders_and_caches(env):
    response = env.client.get("/image/get?id=1&type=png&width=10&height=10")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/png"
    rendered = Image.open(io.BytesIO(response.get_data()))
    assert rendered.size == (10, 10)

    cached = os.listdir(env.cache_dir)
    assert len(cached) == 1
    name = cached[0]
    assert name.startswith("1_") and name.endswith(".png")
    assert response.headers["Content-Disposition"] == f'inline; filename="{name}"'
    assert (env.cache_dir / name).read_bytes() == response.get_data()
    assert env.db.executed[0][1] == (name[: -len(".png")], 1, "png")


def test_get_image_served_from_cache(env):
    first = env.client.get("/image/get?id=1&type=png&width=8")
    assert first.status_code == 200
    (name,) = os.listdir(env.cache_dir)
    (env.cache_dir / name).write_bytes(b"cached")
    second = env.client.get("/image/get?id=1&type=png&width=8")
    assert second.status_code == 200
    assert second.get_data() == b"cached"
    assert len(env.db.executed) == 1


def test_get_image_default_type_from_database(env):
    response = env.client.get("/image/get?id=1")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/png"
    assert os.listdir(env.cache_dir) == ["1__."]


def test_get_image_ratio_crop(env):
    response = env.client.get("/image/get?id=1&type=png&ratio=1by1")
    assert response.status_code == 200
    assert Image.open(io.BytesIO(response.get_data())).size == (20, 20)


def test_get_image_jpeg(env):
    response = env.client.get("/image/get?id=1&type=jpg&quality=50")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/jpg"
    decoded = Image.open(io.BytesIO(response.get_data()))
    assert decoded.format == "JPEG"
    assert decoded.size == (40, 20)


def test_get_image_webp_lossless(env):
    response = env.client.get("/image/get?id=1&type=webp&lossless&width=20&height=10")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/webp"
    decoded = Image.open(io.BytesIO(response.get_data()))
    assert decoded.format == "WEBP"
    assert decoded.size == (20, 10)


def test_get_image_unsupported_type(env):
    response = env.client.get("/image/get?id=1&type=gif")
    assert response.status_code == 415
    assert response.get_data(as_text=True) == "Unsupported image format"


def test_upload_stores_file_and_metadata(env):
    data = {"file_input": (io.BytesIO(_png_bytes()), "photo.png"), "license": "CC-BY"}
    response = env.client.post("/image/upload", data=data, content_type="multipart/form-data")
    assert response.status_code == 200
    stored = [name for name in os.listdir(env.image_dir) if name != "abc.png"]
    assert len(stored) == 1
    generated = stored[0]
    assert generated.endswith(".png") and len(generated) == 36
    assert (env.image_dir / generated).read_bytes() == _png_bytes()
    assert response.get_data(as_text=True) == f"✅ Uploaded: photo.png (saved as {generated})"
    args = env.db.executed[0][1]
    assert args[:5] == ("photo.png", generated, 40, 20, "png")
    assert args[6] == "CC-BY"
    assert args[10] == 13


def test_upload_invalid_focus(env):
    data = {"file_input": (io.BytesIO(_png_bytes()), "photo.png"), "focus_x": "left"}
    response = env.client.post("/image/upload", data=data, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Invalid focus_x"


def test_upload_without_file(env):
    response = env.client.post("/image/upload", data={"license": "CC-BY"})
    assert response.status_code == 400
    assert response.get_data(as_text=True).startswith("File upload error")


def test_upload_invalid_image(env):
    data = {"file_input": (io.BytesIO(b"not an image"), "photo.png")}
    response = env.client.post("/image/upload", data=data, content_type="multipart/form-data")
    assert response.status_code == 500
    assert response.get_data(as_text=True).startswith("Invalid image:")
    assert env.db.executed == []


def test_upload_db_failure(env):
    env.db.fail_execute = True
    data = {"file_input": (io.BytesIO(_png_bytes()), "photo.png")}
    response = env.client.post("/image/upload", data=data, content_type="multipart/form-data")
    assert response.status_code == 500
    assert response.get_data(as_text=True) == "DB insert failed: connection lost"


def test_middleware_guards_upload_only(tmp_path):
    def deny(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            return Response("denied", 401)

        return wrapper

    built = _build(tmp_path, middlewares=(deny,))
    data = {"file_input": (io.BytesIO(_png_bytes()), "photo.png")}
    blocked = built.client.post("/image/upload", data=data, content_type="multipart/form-data")
    assert blocked.status_code == 401
    assert built.db.executed == []
    allowed = built.client.get("/image/get?id=1&type=png")
    assert allowed.status_code == 200