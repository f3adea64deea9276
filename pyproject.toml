[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "plutoimg"
version = "0.1.0"
description = "Image upload, on-the-fly cropping, resizing and cached delivery for Flask applications"
requires-python = ">=3.10"
keywords = ["image", "thumbnail", "crop", "resize", "flask", "cache", "webp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Multimedia :: Graphics",
]
dependencies = [
    "flask",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["plutoimg"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
