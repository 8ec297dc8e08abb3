#!/usr/bin/env python3
"""
Core Module
Run configuration, output paths, caches and the engine scene data model.
"""

from .animation_detector import AnimationDetector
from .config import Config, ImportPolicy
from .context import ConversionContext
from .log import ConversionLog
from .output_paths import OutputDirectoryError, resolve_output_path
from .scene_data import (
    Camera,
    ExportedObject,
    Geometry,
    Light,
    Material,
    ResourceTable,
    Scene,
    SceneNode,
)

__all__ = [
    'AnimationDetector',
    'Config',
    'ImportPolicy',
    'ConversionContext',
    'ConversionLog',
    'OutputDirectoryError',
    'resolve_output_path',
    'Camera',
    'ExportedObject',
    'Geometry',
    'Light',
    'Material',
    'ResourceTable',
    'Scene',
    'SceneNode',
]
