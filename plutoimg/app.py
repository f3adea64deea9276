"""HTTP handlers for uploading, rendering and serving images."""

from __future__ import annotations

import io
import json
import mimetypes
import os
from typing import Any, Callable

from flask import Response, jsonify, request, send_file
from PIL import ExifTags, Image

from .config import Config, load_config
from .imaging import crop_to_aspect_advanced, generate_image_filename, parse_aspect_ratio
from .params import (
    ImageMetadata,
    _parse_float,
    _parse_int,
    atoi_or_default_clamped,
    collect_params,
    get_or_default,
    image_receipt,
)

_DECODABLE = ("JPEG", "PNG", "GIF", "WEBP")
_EXIF_POINTERS = {0x8769: ExifTags.TAGS, 0x8825: ExifTags.GPSTAGS, 0xA005: ExifTags.TAGS}
_PNG_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}
_UPLOAD_USER_ID = 13

_SELECT_IMAGE = "SELECT file_name, gen_file_name, mime_type FROM uranus2.pluto_image WHERE id = $1"
_INSERT_CACHE = "INSERT INTO uranus2.pluto_cache (receipt, image_id, mime_type) VALUES ($1, $2, $3)"
_INSERT_IMAGE = (
    "INSERT INTO uranus2.pluto_image (file_name, gen_file_name, width, height, mime_type, exif, "
    "license, created_by, copyright, alt_text, user_id) "
    "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)"
)


def _text(status: int, message: str) -> Response:
    return Response(message, status=status, mimetype="text/plain")


def _base_name(name: str) -> str:
    if not name:
        return "."
    stripped = name.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _exif_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("ascii", "replace").rstrip("\x00")
    return str(value)


def _exif_fields(img: Image.Image) -> dict[str, str]:
    """Collect EXIF tags by name; unreadable EXIF data yields what was read."""
    fields: dict[str, str] = {}
    try:
        exif = img.getexif()
    except Exception:
        return fields
    for tag, value in exif.items():
        if tag in _EXIF_POINTERS:
            continue
        fields[ExifTags.TAGS.get(tag, f"0x{tag:04x}")] = _exif_text(value)
    for pointer, names in _EXIF_POINTERS.items():
        try:
            sub = exif.get_ifd(pointer)
        except Exception:
            continue
        for tag, value in sub.items():
            fields[names.get(tag, f"0x{tag:04x}")] = _exif_text(value)
    return fields


def _encode(img: Image.Image, type_str: str, quality: int, lossless: bool) -> tuple[str, bytes] | None:
    """Encode an image; returns the canonical type and the bytes, or None if unsupported."""
    buf = io.BytesIO()
    if type_str in ("jpeg", "jpg"):
        if img.mode not in ("RGB", "L", "CMYK"):
            img = img.convert("RGB")
        img.save(buf, "JPEG", quality=max(quality, 1))
        return "jpg", buf.getvalue()
    if type_str == "png":
        if img.mode not in _PNG_MODES:
            img = img.convert("RGBA")
        img.save(buf, "PNG")
        return "png", buf.getvalue()
    if type_str == "webp":
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        if lossless:
            img.save(buf, "WEBP", lossless=True)
        else:
            img.save(buf, "WEBP", quality=quality)
        return "webp", buf.getvalue()
    return None


class Pluto:
    """Image service: configuration, database handle and request handlers.

    ``db`` provides ``query_row(sql, *args)``, returning one row as a tuple
    (or None, or raising, when there is none), and ``execute(sql, *args)``.
    """

    def __init__(self, config_file_path: str, db: Any, verbose: bool) -> None:
        self.verbose = verbose
        self.db = db
        self.config = Config()
        self.log("loading configuration")
        self.config = load_config(config_file_path)
        self.config.print()
        self.log("prepare sql")

    def log(self, msg: str) -> None:
        """Print a message when running verbosely."""
        if self.verbose:
            print("pluto:", msg)

    def register_routes(self, app: Any, *args: Callable[[Callable], Callable]) -> None:
        """Add the image routes to a Flask app or blueprint.

        Each extra argument is a decorator guarding the upload route; the
        first one given runs first.
        """
        app.add_url_rule("/image/get", "pluto_get_image", self.get_image, methods=["GET"])
        app.add_url_rule("/image/file/<file>", "pluto_get_file", self.get_file, methods=["GET"])
        upload_view: Callable = self.upload
        for middleware in reversed(args):
            upload_view = middleware(upload_view)
        app.add_url_rule("/image/upload", "pluto_upload", upload_view, methods=["POST"])

    def get_file(self, file: str) -> Response:
        """Serve a file from the cache directory."""
        cache_file_path = os.path.join(self.config.pluto_cache_dir, os.path.normpath(file))
        print("Serving file:", file)
        print("Resolved path:", cache_file_path)

        if ".." in file or os.path.isabs(file):
            return Response(json.dumps({"error": "Invalid file path"}), 400, mimetype="application/json")
        if not os.path.isfile(cache_file_path):
            return Response(json.dumps({"error": "File not found"}), 404, mimetype="application/json")

        mime, _ = mimetypes.guess_type(file)
        response = send_file(os.path.abspath(cache_file_path), mimetype=mime)
        response.headers.pop("Content-Disposition", None)
        return response

    def get_image(self) -> Response:
        """Render an image with the requested size, crop and format, with caching."""
        query = request.args
        params = collect_params(query)
        self.log("getImageHandler 1")

        try:
            image_id = _parse_int(query.get("id", ""))
        except ValueError:
            return _text(400, "Invalid image id")

        mode = get_or_default(params["mode"], "center")
        type_str = get_or_default(params["type"], "")
        quality = atoi_or_default_clamped(params["quality"], 85, 0, 100)
        width = atoi_or_default_clamped(params["width"], 0, 0, 4096)
        height = atoi_or_default_clamped(params["height"], 0, 0, 4096)
        ratio = get_or_default(params["ratio"], "")
        focus_x = atoi_or_default_clamped(params["focusx"], 5000, 0, 10000)
        focus_y = atoi_or_default_clamped(params["focusy"], 5000, 0, 10000)
        lossless = "lossless" in query
        self.log(mode)

        aspect_ratio = 0.0
        if not (width > 0 and height > 0) and ratio:
            try:
                aspect_ratio = parse_aspect_ratio(ratio)
            except ValueError:
                return _text(400, "Invalid ratio format. Use format like '3by2'")
            if aspect_ratio <= 0:
                return _text(400, "Invalid ratio format. Use format like '3by2'")

        receipt = image_receipt(
            image_id, params, mode, type_str, quality, width, height, ratio, focus_x, focus_y
        )
        cache_file_name = f"{receipt}.{type_str}"
        cache_file_path = os.path.join(self.config.pluto_cache_dir, cache_file_name)
        disposition = f'inline; filename="{cache_file_name}"'
        self.log(receipt)

        if os.path.exists(cache_file_path):
            response = send_file(os.path.abspath(cache_file_path))
            response.headers["Content-Disposition"] = disposition
            return response

        self.log("Render")
        try:
            row = self.db.query_row(_SELECT_IMAGE, image_id)
        except Exception:
            row = None
        if row is None:
            return _text(400, "Image not found")
        _file_name, gen_file_name, mime_type = row

        if not type_str:
            type_str = mime_type

        img_path = os.path.join(self.config.pluto_image_dir, gen_file_name)
        self.log("imgPath")
        try:
            with open(img_path, "rb") as handle:
                data = handle.read()
        except OSError:
            return _text(500, "Failed to read image")

        try:
            img = Image.open(io.BytesIO(data), formats=_DECODABLE)
            img.load()
        except Exception:
            return _text(500, "Invalid image format")

        try:
            if width > 0 or height > 0 or aspect_ratio > 0:
                img = crop_to_aspect_advanced(
                    img, mode, aspect_ratio, focus_x / 10000, focus_y / 10000, width, height
                )
            encoded = _encode(img, type_str, quality, lossless)
        except (OSError, ValueError):
            return _text(500, "Failed to encode image")
        if encoded is None:
            return _text(415, "Unsupported image format")
        type_str, payload = encoded

        try:
            with open(cache_file_path, "wb") as handle:
                handle.write(payload)
        except OSError:
            pass
        else:
            try:
                self.db.execute(_INSERT_CACHE, receipt, image_id, type_str)
            except Exception:
                pass

        response = Response(payload, status=200, content_type="image/" + type_str)
        response.headers["Content-Disposition"] = disposition
        return response

    def upload(self) -> Response:
        """Store an uploaded image and record its metadata."""
        form = request.form
        meta = ImageMetadata(
            user_id=form.get("user_id", ""),
            license=form.get("license", ""),
            created_by=form.get("created_by", ""),
            copyright=form.get("copyright", ""),
            alt_text=form.get("alt_text", ""),
        )
        focus_x = form.get("focus_x", "")
        if focus_x:
            try:
                meta.focus_x = _parse_float(focus_x)
            except ValueError:
                return _text(400, "Invalid focus_x")
        focus_y = form.get("focus_y", "")
        if focus_y:
            try:
                meta.focus_y = _parse_float(focus_y)
            except ValueError:
                return _text(400, "Invalid focus_y")
        print(f"Metadata received: {meta}")

        upload = request.files.get("file_input")
        if upload is None:
            return _text(400, "File upload error: no such file")
        try:
            data = upload.read()
        except OSError as exc:
            return _text(500, f"Failed to read file: {exc}")

        try:
            with Image.open(io.BytesIO(data), formats=_DECODABLE) as img:
                width, height = img.size
                image_format = (img.format or "").lower()
                exif_data = _exif_fields(img)
        except Exception as exc:
            return _text(500, f"Invalid image: {exc}")
        print("exifData:", exif_data)

        original_file_name = _base_name(upload.filename or "")
        generated_file_name = generate_image_filename(original_file_name)
        print("originalFileName:", original_file_name)
        print("generatedFileName:", generated_file_name)

        dst_path = f"{self.config.pluto_image_dir}/{generated_file_name}"
        try:
            with open(dst_path, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            return _text(500, f"Failed to save file: {exc}")

        print("width:", width, "height:", height, "format:", image_format)

        try:
            self.db.execute(
                _INSERT_IMAGE,
                original_file_name,
                generated_file_name,
                width,
                height,
                image_format,
                json.dumps(exif_data),
                meta.license,
                meta.created_by,
                meta.copyright,
                meta.alt_text,
                _UPLOAD_USER_ID,
            )
        except Exception as exc:
            return _text(500, f"DB insert failed: {exc}")

        print("INSERT INTO uranus.pluto_image done")
        return _text(200, f"✅ Uploaded: {original_file_name} (saved as {generated_file_name})")