"""Support package for the thumbnail store service.

This package contains the pieces the HTTP layer in ``main.py`` is built
from: the structured error model, request schemas, image source
resolution, request body decoding, the Pillow thumbnail transform, the
worker pool it runs on, and the local blob storage. See individual
modules for details.
"""
