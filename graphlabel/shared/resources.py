"""
Read model and label resources from a location string.

Supported locations:
- plain filesystem paths (absolute or relative)
- file:// URIs
- http:// and https:// URLs
- package://<package>/<path> for data files shipped inside an importable package
"""

import os
from importlib import resources as importlib_resources
from urllib.parse import unquote, urlparse

import httpx

from graphlabel.errors import ResourceError


HTTP_TIMEOUT_SECONDS = 60.0


def _read_http(location: str) -> bytes:
    try:
        with httpx.Client(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True) as client:
            response = client.get(location)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as e:
        raise ResourceError(f"Failed to fetch {location}: {e}") from e


def _read_package(location: str) -> bytes:
    rest = location[len('package://'):]
    package, _, path = rest.partition('/')
    if not package or not path:
        raise ResourceError(f"Package location must look like package://<package>/<path>, got: {location}")
    try:
        return importlib_resources.files(package).joinpath(path).read_bytes()
    except (ModuleNotFoundError, OSError) as e:
        raise ResourceError(f"Failed to read {location}: {e}") from e


def read_bytes(location) -> bytes:
    """Return the full contents of `location` as bytes.

    Raises:
        ResourceError: if the location is unsupported, missing or unreachable
    """
    location = os.fspath(location)
    scheme = urlparse(location).scheme.lower()
    if scheme in ('http', 'https'):
        return _read_http(location)
    if scheme == 'package':
        return _read_package(location)
    if scheme == 'file':
        path = unquote(urlparse(location).path)
    elif scheme and len(scheme) > 1:
        # single letter schemes are Windows drive letters
        raise ResourceError(f"Unsupported resource location: {location}")
    else:
        path = location
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ResourceError(f"Failed to read {location}: {e}") from e


def read_text(location, encoding: str = 'utf-8') -> str:
    data = read_bytes(location)
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as e:
        raise ResourceError(f"{location} is not valid {encoding} text: {e}") from e
