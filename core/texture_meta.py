#!/usr/bin/env python3
"""
Texture Meta Module
Sidecar `.meta` files read by the engine's asset compiler.

A sidecar tells the texture processor how to compress a texture and,
optionally, how to build it from the channels of other textures.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass
class ChannelSource:
    """One channel taken from another texture

    Attributes:
        path: Resource name of the source texture
        channel: Channel read from it ('R', 'G', 'B' or 'A')
    """
    path: str
    channel: str

    def to_json(self):
        return {"path": self.path, "channel": self.channel}


@dataclass
class TextureMeta:
    """Single 'default' profile of a texture sidecar

    Attributes:
        compression: Codec name ('BC5', 'BC7', ...)
        srgb: Optional sRGB flag (0/1)
        construct: Optional channel recipe. Each entry is a channel letter
                   of the texture itself, a constant 0-255, a texture
                   resource name, or a ChannelSource.
        type: Optional asset type, 'Ignore' excludes the file from compilation
    """
    compression: Optional[str] = None
    srgb: Optional[int] = None
    construct: Optional[List[Any]] = None
    type: Optional[str] = None

    def to_json(self):
        profile = {}
        if self.compression is not None:
            profile["compression"] = self.compression
        if self.srgb is not None:
            profile["srgb"] = self.srgb
        if self.construct is not None:
            profile["preprocess"] = {
                "construct": [c.to_json() if isinstance(c, ChannelSource) else c
                              for c in self.construct]
            }
        if self.type is not None:
            profile["type"] = self.type
        return {"profiles": {"default": profile}}

    def dumps(self):
        return json.dumps(self.to_json())


IGNORE_META = TextureMeta(type="Ignore")
NORMAL_MAP_META = TextureMeta(compression="BC5")
EMISSIVE_MAP_META = TextureMeta(compression="BC7", srgb=1)


def quantize(value):
    """Map a [0, 1] channel value to an integer constant in [0, 255]"""
    return max(0, min(255, int(float(value) * 255)))


def write_meta(path, meta):
    """Write a sidecar file

    Args:
        path: Destination .meta path
        meta: TextureMeta to serialize

    Raises:
        OSError: If the file cannot be written
    """
    with open(path, "w", encoding="utf-8") as f:
        f.write(meta.dumps())
