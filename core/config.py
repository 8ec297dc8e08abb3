#!/usr/bin/env python3
"""
Config Module
Immutable run parameters for a USD import.

A Config is built once from the command line and read by every exporter for
the rest of the run.
"""

from dataclasses import dataclass
from enum import Enum


class ImportPolicy(Enum):
    """Output policy for one class of written resources"""
    SKIP_EXISTING = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"
    SKIP_ALWAYS = "skip_always"

    @classmethod
    def from_string(cls, value):
        """Parse a command line policy value

        Args:
            value: One of 'skip', 'overwrite', 'rename', 'skip_always'

        Returns:
            ImportPolicy: Matching policy, SKIP_EXISTING for anything else
        """
        for policy in cls:
            if policy.value == value:
                return policy
        return cls.SKIP_EXISTING


POLICY_CHOICES = [policy.value for policy in ImportPolicy]

DEFAULT_SHADER = "core/shader/pbr.hps"


@dataclass(frozen=True)
class Config:
    """Run configuration

    Attributes:
        input_path: Source scene file
        name: Output scene name (empty = input file stem)
        base_output_path: Directory receiving every written resource
        prj_path: Base resource path references are made relative to
        prefix: File system prefix prepended to relative resource names
        shader: Pipeline shader override (empty = core/shader/pbr.hps)
        geometry_scale: Factor applied to root node scales
        policy_geometry: Policy for .geo files
        policy_material: Policy for material files
        policy_texture: Policy for textures and their .meta sidecars
        policy_scene: Policy for .scn files
        policy_anim: Policy for animation files (only with anim_to_file)
    """
    input_path: str = ""
    name: str = ""
    base_output_path: str = "./"
    prj_path: str = ""
    prefix: str = ""
    shader: str = ""

    geometry_scale: float = 1.0

    policy_geometry: ImportPolicy = ImportPolicy.SKIP_EXISTING
    policy_material: ImportPolicy = ImportPolicy.SKIP_EXISTING
    policy_texture: ImportPolicy = ImportPolicy.SKIP_EXISTING
    policy_scene: ImportPolicy = ImportPolicy.SKIP_EXISTING
    policy_anim: ImportPolicy = ImportPolicy.SKIP_EXISTING

    recalculate_normal: bool = False
    recalculate_tangent: bool = False
    detect_geometry_instances: bool = False
    anim_to_file: bool = False

    finalizer_script: str = ""
    quiet: bool = False

    @property
    def pipeline_shader(self):
        """Shader program used by every exported material"""
        return self.shader or DEFAULT_SHADER
