#!/usr/bin/env python3
"""
Conversion Context Module
Per-run state shared by the texture ingestion pass and the node exporter.

The context owns the resource table and the three caches that make every
resource exported at most once:
- geometry cache: node identity -> ExportedObject
- texture cache: content hash -> texture entry (plus lookups by path)
- prototype cache: prototype name -> relative path of its sub-scene
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .scene_data import ResourceTable


class IdentityCache:
    """Memoization table with at-most-once factory calls per key"""

    def __init__(self):
        self._entries = {}

    def get(self, key):
        return self._entries.get(key)

    def get_or_create(self, key, factory):
        """Return the cached value for key, running factory() on first use"""
        if key not in self._entries:
            self._entries[key] = factory()
        return self._entries[key]

    def __contains__(self, key):
        return key in self._entries

    def __len__(self):
        return len(self._entries)


@dataclass
class TextureEntry:
    """Texture written (or skipped) by the ingestion pass

    Attributes:
        dest_path: Output path of the texture file
        texture_ref: Texture reference in the ResourceTable
    """
    dest_path: str
    texture_ref: int


@dataclass
class TextureCache:
    """Textures deduplicated by content hash

    by_hash holds one entry per distinct content. by_dest_path maps every
    destination path computed during ingestion to the texture reference of
    its content, and by_asset_path remembers which destination path each
    authored asset path was given.
    """
    by_hash: Dict[str, TextureEntry] = field(default_factory=dict)
    by_dest_path: Dict[str, int] = field(default_factory=dict)
    by_asset_path: Dict[str, str] = field(default_factory=dict)

    def register(self, content_hash, asset_path, dest_path, factory):
        """Register an ingested asset

        Args:
            content_hash: Hash of the raw asset bytes
            asset_path: Authored asset path
            dest_path: Destination computed for this asset
            factory: Called once per new content, returns a texture reference

        Returns:
            tuple: (TextureEntry for the content, True if the content is new)
        """
        entry = self.by_hash.get(content_hash)
        created = entry is None
        if created:
            entry = TextureEntry(dest_path=dest_path, texture_ref=factory())
            self.by_hash[content_hash] = entry
        self.by_dest_path[dest_path] = entry.texture_ref
        self.by_asset_path[asset_path] = dest_path
        return entry, created

    def lookup(self, dest_path) -> Optional[int]:
        return self.by_dest_path.get(dest_path)

    def destination_of(self, asset_path) -> Optional[str]:
        return self.by_asset_path.get(asset_path)


class ConversionContext:
    """Explicit state of one conversion run

    Attributes:
        config: Run Config
        log: ConversionLog
        resources: ResourceTable shared by the main scene and sub-scenes
        geometry_cache: IdentityCache of ExportedObject by node identity
        texture_cache: TextureCache
        prototype_cache: IdentityCache of sub-scene path by prototype name
        written_files: Every file written during the run
    """

    def __init__(self, config, log, writer=None):
        self.config = config
        self.log = log
        self.writer = writer
        self.resources = ResourceTable()
        self.geometry_cache = IdentityCache()
        self.texture_cache = TextureCache()
        self.prototype_cache = IdentityCache()
        self.prototypes_in_progress = set()
        self.written_files = []
        self._written = set()

    def record_write(self, path):
        # a file rewritten in the same run is listed once
        if path not in self._written:
            self.written_files.append(path)
            self._written.add(path)

    def was_written(self, path):
        """True if path was written earlier in this run"""
        return path in self._written
