#!/usr/bin/env python3
"""
Scene Data Module
Target engine scene representation.

The node exporter fills these structures while walking the source stage,
and the scene writer serializes them. Nothing here knows about USD.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

MAX_UV_SETS = 8

Vec4 = Tuple[float, float, float, float]


class BlendMode(Enum):
    OPAQUE = "opaque"
    ALPHA = "alpha"


class FaceCulling(Enum):
    CW = "cw"
    DISABLED = "disabled"


class LightType(Enum):
    POINT = "point"
    SPOT = "spot"


class ResourceList:
    """Named resources of one kind, referenced by index

    Adding a name twice returns the first reference.
    """

    def __init__(self):
        self._names = []
        self._refs = {}

    def add(self, name):
        ref = self._refs.get(name)
        if ref is None:
            ref = len(self._names)
            self._names.append(name)
            self._refs[name] = ref
        return ref

    def name(self, ref):
        return self._names[ref]

    def names(self):
        return list(self._names)

    def __len__(self):
        return len(self._names)

    def __contains__(self, name):
        return name in self._refs


@dataclass
class ResourceTable:
    """Textures, models and shader programs referenced by a scene"""
    textures: ResourceList = field(default_factory=ResourceList)
    models: ResourceList = field(default_factory=ResourceList)
    programs: ResourceList = field(default_factory=ResourceList)


@dataclass
class MaterialTexture:
    """Texture bound to a material slot

    Attributes:
        texture: Texture reference in the ResourceTable
        stage: Sampler stage used by the shader
    """
    texture: int
    stage: int


@dataclass
class Material:
    """Engine material

    Attributes:
        program: Shader program reference in the ResourceTable
        values: Named vec4 uniforms (uBaseOpacityColor, ...)
        textures: Named texture slots (uBaseOpacityMap, ...)
        blend_mode: Opaque or alpha blended
        face_culling: Back face culling or disabled for double sided meshes
    """
    program: int
    values: Dict[str, Vec4] = field(default_factory=dict)
    textures: Dict[str, MaterialTexture] = field(default_factory=dict)
    blend_mode: BlendMode = BlendMode.OPAQUE
    face_culling: FaceCulling = FaceCulling.CW


@dataclass
class ExportedObject:
    """Renderable object: a model reference plus one material per slot

    Shared between every scene node whose source prim has the same identity.
    """
    materials: List[Material] = field(default_factory=list)
    material_names: List[str] = field(default_factory=list)
    model_ref: Optional[int] = None

    def set_material(self, slot, material, name):
        while len(self.materials) <= slot:
            self.materials.append(None)
            self.material_names.append("")
        self.materials[slot] = material
        self.material_names[slot] = name


@dataclass
class Camera:
    znear: float = 0.01
    zfar: float = 1000.0
    fov: float = 0.0
    is_orthographic: bool = False


@dataclass
class Light:
    type: LightType = LightType.POINT
    radius: float = 0.0
    diffuse: Tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass
class Transform:
    """Local transform as a 4x4 column-vector matrix

    Attributes:
        local: Local matrix (translation in the last column)
        parent: Index of the parent node in the scene, None for roots
    """
    local: np.ndarray = field(default_factory=lambda: np.identity(4))
    parent: Optional[int] = None


@dataclass
class SceneNode:
    """Engine scene node

    Attributes:
        name: Node name
        transform: Local transform and parent link
        camera: Camera component
        light: Light component
        object: Shared ExportedObject
        instance: Relative path of an instantiated sub-scene
    """
    name: str
    transform: Transform = field(default_factory=Transform)
    camera: Optional[Camera] = None
    light: Optional[Light] = None
    object: Optional[ExportedObject] = None
    instance: Optional[str] = None


@dataclass
class Environment:
    brdf_map: Optional[int] = None
    irradiance_map: Optional[int] = None
    radiance_map: Optional[int] = None


@dataclass
class Scene:
    """Engine scene: a flat node list linked through transform parents"""
    nodes: List[SceneNode] = field(default_factory=list)
    environment: Environment = field(default_factory=Environment)
    animation: Optional[Dict[str, List[str]]] = None

    def create_node(self, name, parent=None):
        """Create a node, optionally parented to another node of this scene

        Args:
            name: Node name
            parent: Parent SceneNode or None

        Returns:
            SceneNode: The new node
        """
        node = SceneNode(name=name)
        if parent is not None:
            node.transform.parent = self.index_of(parent)
        self.nodes.append(node)
        return node

    def index_of(self, node):
        for i, n in enumerate(self.nodes):
            if n is node:
                return i
        raise ValueError(f"Node {node.name} is not part of this scene")

    def get_node_by_name(self, name):
        for node in self.nodes:
            if node.name == name:
                return node
        return None



@dataclass
class Geometry:
    """Engine geometry

    Per-polygon-vertex arrays (binding, normal, tangent, uv) are flattened in
    polygon order and all have the same length.

    Attributes:
        vtx: (N, 3) point positions in meters
        pol: (P,) vertex count of each polygon
        pol_material: (P,) material index of each polygon
        binding: (M,) point index of each polygon-vertex
        normal: (M, 3) normals, empty when unknown
        tangent: (M, 3) tangents, empty when unknown
        binormal: (M, 3) binormals, empty when unknown
        uv: UV sets, each (M, 2)
        bind_pose: Skin bind matrices
    """
    vtx: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    pol: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    pol_material: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    binding: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    normal: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    tangent: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    binormal: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    uv: List[np.ndarray] = field(default_factory=list)
    bind_pose: List[np.ndarray] = field(default_factory=list)

    @property
    def polygon_count(self):
        return len(self.pol)

    def polygon_offsets(self):
        """Index of each polygon's first entry in the per-polygon-vertex arrays"""
        offsets = np.zeros(len(self.pol), dtype=np.int64)
        if len(self.pol):
            offsets[1:] = np.cumsum(self.pol)[:-1]
        return offsets
