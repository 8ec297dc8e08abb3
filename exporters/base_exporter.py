#!/usr/bin/env python3
"""
Base Exporter Module
Abstract base class ensuring consistent interface across all exporters

Every exporter works on the same ConversionContext: it reads the run Config,
fills the shared caches and resource table, and reports through the run log.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from core.config import ImportPolicy
from core.output_paths import resolve_output_path
from core.texture_meta import write_meta

if TYPE_CHECKING:
    from core.context import ConversionContext


class BaseExporter(ABC):
    """Abstract base class for all exporters of the conversion pipeline

    Provides shared utilities for logging and for writing resources through
    the context's scene writer. Write failures are logged, never raised, so a
    partial scene still comes out of the run.
    """

    def __init__(self, context: 'ConversionContext'):
        """Initialize exporter

        Args:
            context: ConversionContext of the current run
        """
        self.context = context
        self.config = context.config

    def log(self, message):
        """Send progress/status message"""
        self.context.log.log(message)

    def debug(self, message):
        self.context.log.debug(message)

    def error(self, message):
        self.context.log.error(message)

    @property
    def resources(self):
        return self.context.resources

    @abstractmethod
    def export(self, *args, **kwargs):
        """Run this exporter's part of the conversion"""

    def write_geometry(self, path, geometry):
        """Write a geometry file, logging failures

        Returns:
            bool: True if the file was written
        """
        try:
            self.context.writer.write_geometry(path, geometry)
        except OSError as e:
            self.error(f"Failed to write geometry '{path}': {e}")
            return False
        self.context.record_write(path)
        return True

    def write_scene(self, path, scene):
        """Write a scene file, logging failures

        Returns:
            bool: True if the file was written
        """
        try:
            self.context.writer.write_scene(path, scene, self.resources)
        except OSError as e:
            self.error(f"Failed to write scene '{path}': {e}")
            return False
        self.context.record_write(path)
        return True

    def write_bytes(self, path, data):
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            self.error(f"Failed to write '{path}': {e}")
            return False
        self.context.record_write(path)
        return True

    def write_texture_meta(self, base_dir, name, meta):
        """Write a texture sidecar as <base_dir>/<name>.meta under the texture policy

        A sidecar written earlier in the same run (the ingestion pass's
        'Ignore' one) is always replaced.

        Args:
            base_dir: Directory the sidecar is relative to
            name: Texture file name or resource name (extension included)
            meta: TextureMeta

        Returns:
            bool: True if the sidecar was written
        """
        path, should_write = resolve_output_path(base_dir, name, "", "meta", ImportPolicy.OVERWRITE)
        if path is None:
            return False
        if not self.context.was_written(path):
            path, should_write = resolve_output_path(base_dir, name, "", "meta", self.config.policy_texture)
            if not should_write:
                return False
        try:
            write_meta(path, meta)
        except OSError as e:
            self.error(f"Failed to write texture meta '{path}': {e}")
            return False
        self.context.record_write(path)
        return True
