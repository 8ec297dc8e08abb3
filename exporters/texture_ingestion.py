#!/usr/bin/env python3
"""
Texture Ingestion Module
Pre-pass copying every texture used by the stage's shader graphs.

Runs once before the node traversal. Each UsdUVTexture node found anywhere
in the stage has its asset resolved and fetched; textures are deduplicated
by the SHA1 of their bytes so identical content is written only once,
whatever its source path.
"""

import hashlib

from core.output_paths import make_relative_resource_name, resolve_output_path, split_asset_name
from core.texture_meta import IGNORE_META
from readers.base_reader import AssetPath

from .base_exporter import BaseExporter

TEXTURE_SHADER_ID = "UsdUVTexture"
UDIM_TOKEN = "<UDIM>"
DEFAULT_UDIM_TILE = "1001"


def texture_directory(config):
    return f"{config.base_output_path}/Textures"


def texture_destination(config, asset_path):
    """Output path of a texture asset and whether it should be written

    Args:
        config: Run Config
        asset_path: Authored asset path

    Returns:
        tuple: (path, should_write) from resolve_output_path()
    """
    stem, ext = split_asset_name(asset_path.replace(UDIM_TOKEN, DEFAULT_UDIM_TILE))
    return resolve_output_path(texture_directory(config), stem, "", ext, config.policy_texture)


class TextureIngestion(BaseExporter):
    """Populates the texture cache from every texture node of a stage"""

    def export(self, stage):
        """Ingest all textures of the stage

        Args:
            stage: SourceStage

        Returns:
            int: Number of distinct texture contents in the cache
        """
        for node in stage.traverse_all():
            if node.get_attribute("info:id") != TEXTURE_SHADER_ID:
                continue
            asset = node.get_attribute("inputs:file")
            if not isinstance(asset, AssetPath) or not asset.path:
                self.error(f"Texture node {node.path} has no file")
                continue
            self.ingest(stage, asset)

        count = len(self.context.texture_cache.by_hash)
        self.log(f"  Textures ingested: {count}")
        return count

    def resolve(self, stage, asset):
        """Resolve an asset, substituting the default tile for UDIM tokens"""
        if asset.resolved_path:
            return asset.resolved_path
        return stage.resolve_asset(asset.path.replace(UDIM_TOKEN, DEFAULT_UDIM_TILE))

    def ingest(self, stage, asset):
        """Register one texture asset in the texture cache

        Args:
            stage: SourceStage used to resolve and fetch the asset
            asset: AssetPath authored on the texture node

        Returns:
            TextureEntry: Cache entry of the asset's content, None on failure
        """
        resolved = self.resolve(stage, asset)
        if not resolved:
            self.error(f"Can't find asset with path {asset.path}")
            return None

        try:
            data = stage.fetch_asset(resolved)
        except OSError as e:
            self.error(f"Can't read asset {resolved}: {e}")
            return None

        dest_path, should_write = texture_destination(self.config, asset.path)
        content_hash = hashlib.sha1(data).hexdigest()

        def create():
            if should_write:
                self.debug(f"Export texture to '{dest_path}'")
                self.write_bytes(dest_path, data)

            # keep the raw texture out of the asset compiler unless a material claims it
            name = dest_path.rsplit("/", 1)[-1]
            self.write_texture_meta(texture_directory(self.config), name, IGNORE_META)

            rel_path = make_relative_resource_name(dest_path, self.config.prj_path, self.config.prefix)
            return self.resources.textures.add(rel_path)

        entry, created = self.context.texture_cache.register(content_hash, asset.path, dest_path, create)
        if not created:
            self.debug(f"Texture {asset.path} shares its content with '{entry.dest_path}'")
        return entry
