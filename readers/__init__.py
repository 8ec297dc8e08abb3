#!/usr/bin/env python3
"""
Readers Module
Source scene readers and the interface the exporters consume
"""

from pathlib import Path

from .base_reader import (
    AssetPath,
    BaseReader,
    NodeKind,
    ShaderInput,
    SourceMaterial,
    SourceNode,
    SourceShader,
    SourceStage,
    ValueSource,
)

# Supported file extensions
USD_EXTENSIONS = {'.usd', '.usda', '.usdc', '.usdz'}
SUPPORTED_EXTENSIONS = USD_EXTENSIONS


def create_reader(input_file):
    """Factory function to create appropriate reader based on file extension

    Args:
        input_file: Path to input scene file

    Returns:
        BaseReader: USDReader instance

    Raises:
        ValueError: If file extension is not supported or the file can't be opened
    """
    ext = Path(input_file).suffix.lower()

    if ext in USD_EXTENSIONS:
        # Lazy import to avoid requiring pxr when only using the interfaces
        from .usd_reader import USDReader
        return USDReader(input_file)

    raise ValueError(
        f"Unsupported file format: {ext}\n"
        f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def is_supported_format(input_file):
    """Check if a file has a supported format

    Args:
        input_file: Path to input scene file

    Returns:
        bool: True if format is supported
    """
    return Path(input_file).suffix.lower() in SUPPORTED_EXTENSIONS


__all__ = [
    'AssetPath',
    'BaseReader',
    'NodeKind',
    'ShaderInput',
    'SourceMaterial',
    'SourceNode',
    'SourceShader',
    'SourceStage',
    'ValueSource',
    'create_reader',
    'is_supported_format',
    'USD_EXTENSIONS',
    'SUPPORTED_EXTENSIONS',
]
