# plutoimg

plutoimg is an image service for Flask applications. It stores uploaded images
and serves them again cropped, resized and re-encoded on request. Each rendered
variant is written to a cache directory. A later request for the same variant
is answered from that file.

## Installation

```
pip install plutoimg
```

## Configuration

`Pluto` reads a JSON configuration file:

```json
{
  "base_api_url": "http://localhost:8080/api",
  "db_host": "localhost",
  "db_port": 5432,
  "db_user": "user",
  "db_password": "password",
  "db_name": "images",
  "db_schema": "public",
  "ssl_mode": "disable",
  "pluto_verbose": true,
  "pluto_image_dir": "/var/lib/pluto/images",
  "pluto_cache_dir": "/var/lib/pluto/cache"
}
```

`plutoimg.config.load_config(path)` returns a `Config` dataclass.

- Unknown keys are ignored. Key names are matched without regard to case.
- A missing key keeps its default.
- A value of the wrong type raises `ValueError`.
- Invalid JSON raises `ValueError`. A file that cannot be read raises `OSError`.

`Config.print()` writes the settings to standard output. It leaves out the password.

## Mounting the routes

```python
from flask import Flask
from plutoimg.app import Pluto

app = Flask(__name__)
pluto = Pluto("config.json", db, verbose=True)
pluto.register_routes(app)
```

Building a `Pluto` loads the configuration and prints it. With `verbose=True`,
`Pluto.log(msg)` prints progress messages prefixed with `pluto:`.

`register_routes(app, *decorators)` adds the routes to a Flask app or
blueprint. Each extra argument is a decorator that wraps the upload route,
for example to require authentication. The first decorator given runs first.

### The database object

`db` is any object that provides these two methods:

- `query_row(sql, *args)` returns one row as a tuple. When there is no row it returns `None` or raises.
- `execute(sql, *args)` runs a statement.

The SQL uses `$1`-style placeholders. It reads and writes the tables
`uranus2.pluto_image` and `uranus2.pluto_cache`.

### Routes

| Method | Path                 | Purpose                                 |
|--------|----------------------|-----------------------------------------|
| GET    | `/image/get`         | Render or return a cached image variant |
| GET    | `/image/file/<file>` | Serve a file from the cache directory   |
| POST   | `/image/upload`      | Upload an image with its metadata       |

### Query parameters of `/image/get`

- `id`: the image id, a decimal integer. It is required.
- `mode`: `contain` fits the whole image into the target box. Any other value crops to the target aspect around the focus point. The default is `center`.
- `type`: `jpg` or `jpeg`, `png`, or `webp`. Without it, the format stored for the image is used. A format that cannot be encoded gives status 415.
- `quality`: 0 to 100. The default is 85.
- `width`, `height`: the target size in pixels, each 0 to 4096.
- `ratio`: an aspect ratio such as `3by2`. It is used when `width` and `height` are not both given. An invalid ratio gives status 400.
- `focusx`, `focusy`: the focus point, 0 to 10000. The default is 5000, the centre.
- `lossless`: if present, WebP output is lossless.

Numeric values outside their range are clamped to it.

The cache file name is the receipt built by `plutoimg.params.image_receipt`.
That receipt is the hex id, the short codes of the parameters that were given,
and their encoded values, followed by the requested type as the extension.

The `brightness`, `contrast` and `saturation` parameters only change the cache
key. No colour adjustment is applied.

### The file route

`/image/file/<file>` serves a file from `pluto_cache_dir`. It answers with a
JSON error in two cases:

- status 400 for names that contain `..` or are absolute paths;
- status 404 for files that do not exist.

### Upload form fields

The `file_input` field holds the image, which may be JPEG, PNG, GIF or WebP.

The optional fields are `license`, `created_by`, `copyright`, `alt_text`,
`user_id`, `focus_x` and `focus_y`. A `focus_x` or `focus_y` that is not a
number gives status 400.

The file is saved under a random name in `pluto_image_dir`, and that directory
must already exist. Its size, format and EXIF tags are recorded in
`pluto_image`, with the EXIF tags stored as JSON. The user id recorded is
always 13. The submitted `user_id` and focus values are parsed but not stored.

## Helpers

`plutoimg.imaging` works on Pillow images:

```python
from PIL import Image
from plutoimg.imaging import crop_to_aspect_advanced, parse_aspect_ratio, generate_image_filename

img = Image.open("photo.jpg")
thumb = crop_to_aspect_advanced(img, "center", parse_aspect_ratio("16by9"), 0.5, 0.5, 640, 0)
name = generate_image_filename("photo.jpg")  # 32 random hex digits + ".jpg"
```

`resize_to_width(img, width, ratio)` scales an image to a width. The height
follows `ratio` when it is valid. Otherwise the height keeps the image's own
proportions.

`plutoimg.params` provides the request parsing:

- `collect_params` picks the known parameters out of a query.
- `get_or_default`, `atoi_or_default`, `atoi_or_default_clamped` and `atof_or_default` read values with fallbacks.
- `image_receipt` builds the cache key.
- The module also defines the `Param` and `ImageMetadata` dataclasses.

## What it does not do

- plutoimg has no command and no server of its own. You mount its routes in your Flask application.
- It does not open a database connection. The `db_*` settings in the configuration are read but not used to connect.
- It does not create the database tables.
- It does not create the image or cache directories.