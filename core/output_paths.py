#!/usr/bin/env python3
"""
Output Paths Module
Decides where a resource is written and whether it should be written at all.

Every file the converter produces goes through resolve_output_path(), so the
import policies behave the same for geometries, textures, sidecars and scenes.
"""

import os
import posixpath
import re
from pathlib import Path

from .config import ImportPolicy

# Highest number of numbered candidates probed by the RENAME policy
RENAME_ATTEMPTS = 10000


def clean_path(path):
    """Normalise a path to forward slashes without duplicate separators

    Args:
        path: Any file system path

    Returns:
        str: Cleaned path ('a//b\\c/../d' -> 'a/b/d')
    """
    if not path:
        return ""
    path = path.replace("\\", "/")
    path = re.sub(r"/{2,}", "/", path)
    return posixpath.normpath(path)


def combine_name(prefix, name):
    """Join a name prefix and a logical name the way output files are named"""
    if not name:
        return prefix
    if not prefix:
        return name
    return f"{prefix}-{name}"


def resolve_output_path(base_dir, name, prefix, extension, policy):
    """Compute the output path of a resource and decide if it must be written

    The containing directory is created as a side effect. The path is returned
    even when nothing should be written since callers still reference the
    resource by that path.

    Args:
        base_dir: Output directory
        name: Logical resource name (may contain sub directories)
        prefix: Optional name prefix
        extension: File extension without dot
        policy: ImportPolicy applied to this resource class

    Returns:
        tuple: (path, should_write). path is None when base_dir is empty.
    """
    if not base_dir:
        return None, False

    filename = combine_name(prefix, name)
    path = clean_path(f"{base_dir}/{filename}.{extension}")

    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # an unwritable location surfaces when the caller opens the file
        pass

    if policy == ImportPolicy.SKIP_ALWAYS:
        return path, False

    if policy == ImportPolicy.SKIP_EXISTING:
        return path, not os.path.exists(path)

    if policy == ImportPolicy.OVERWRITE:
        return path, True

    if policy == ImportPolicy.RENAME:
        n = 0
        while os.path.exists(path) and n < RENAME_ATTEMPTS:
            path = clean_path(f"{base_dir}/{filename}-{n:04d}.{extension}")
            n += 1
        return path, True

    return path, False


def make_relative_resource_name(name, base_path, prefix):
    """Express an output path relative to the project's base resource path

    Args:
        name: Output path of a resource
        base_path: Base resource path (case-insensitive match)
        prefix: File system prefix joined in front of the stripped name

    Returns:
        str: Relative resource name, or name unchanged if outside base_path
             (or base_path is empty)
    """
    if base_path and name.lower().startswith(base_path.lower()):
        stripped = name[len(base_path):].lstrip("/")
        return f"{prefix}/{stripped}" if prefix else stripped
    return name


def split_asset_name(asset_path):
    """Split an asset path into (file name without extension, extension)

    Args:
        asset_path: Authored asset path, e.g. './tex/wood_<UDIM>.png'

    Returns:
        tuple: ('wood_<UDIM>', 'png')
    """
    base = posixpath.basename(asset_path.replace("\\", "/"))
    stem, ext = posixpath.splitext(base)
    return stem, ext.lstrip(".")


class OutputDirectoryError(Exception):
    """The output directory cannot be used"""


def prepare_output_directory(base_dir):
    """Create the output directory and its Textures sub directory

    Args:
        base_dir: Output directory

    Raises:
        OutputDirectoryError: If base_dir is empty, is a file or can't be created
    """
    if not base_dir:
        raise OutputDirectoryError("No output directory specified")

    path = Path(base_dir)
    if path.exists() and not path.is_dir():
        raise OutputDirectoryError(f"Output path is not a directory: {path}")
    try:
        (path / "Textures").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(f"Cannot create output directory {path}: {e}")
    return path
