#!/usr/bin/env python3
"""
Base Reader Module
Abstract interface for the resolved source scene graph.

Exporters only talk to these classes, so the conversion pipeline does not
depend on how (or from which library) the source stage was opened.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, List, NamedTuple, Optional


class NodeKind(Enum):
    """Closed set of source node kinds the node exporter dispatches on"""
    MESH = "Mesh"
    GEOM_SUBSET = "GeomSubset"
    CAMERA = "Camera"
    SPHERE_LIGHT = "SphereLight"
    DISTANT_LIGHT = "DistantLight"
    DOME_LIGHT = "DomeLight"
    SPHERE = "Sphere"
    MATERIAL = "Material"
    SHADER = "Shader"
    OTHER = "Other"

    @classmethod
    def from_type_name(cls, type_name):
        for kind in cls:
            if kind.value == type_name:
                return kind
        return cls.OTHER

    @property
    def is_light(self):
        return self in (NodeKind.SPHERE_LIGHT, NodeKind.DISTANT_LIGHT, NodeKind.DOME_LIGHT)

    @property
    def is_data_only(self):
        return self in (NodeKind.MATERIAL, NodeKind.SHADER)


class AssetPath(NamedTuple):
    """Authored asset path and the path it resolved to ('' if unresolved)"""
    path: str
    resolved_path: str = ""


class ValueSource(NamedTuple):
    """What produces the value of a shader input

    Attributes:
        value: Authored value, None when produced by a shader
        shader: Shader whose output drives the input
        found: False when nothing produces a value at all
    """
    value: Any = None
    shader: Optional['SourceShader'] = None
    found: bool = True


class ShaderInput(ABC):
    """Input of a shader node"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Base name of the input ('diffuseColor', 'st', ...)"""

    @abstractmethod
    def get(self) -> Any:
        """Authored value of the input itself, None if unset"""

    @abstractmethod
    def resolve_value_source(self) -> ValueSource:
        """Follow connections to the attribute producing this input's value"""

    @abstractmethod
    def connected_source(self) -> Optional['SourceShader']:
        """First directly connected node, None if not connected"""


class SourceShader(ABC):
    """Shader node (or any connectable node such as a material interface)"""

    @property
    @abstractmethod
    def path(self) -> str:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def shader_id(self) -> Optional[str]:
        """info:id of the shader ('UsdPreviewSurface', 'UsdUVTexture', ...)"""

    @abstractmethod
    def inputs(self) -> List[ShaderInput]:
        pass

    def get_input(self, name) -> Optional[ShaderInput]:
        for shader_input in self.inputs():
            if shader_input.name == name:
                return shader_input
        return None


class SourceMaterial(ABC):
    """Material bound to a geometry node"""

    @property
    @abstractmethod
    def path(self) -> str:
        pass

    @abstractmethod
    def compute_surface_shader(self) -> Optional[SourceShader]:
        """Surface shader for the default render context"""

    @abstractmethod
    def surface_output_sources(self) -> List[SourceShader]:
        """Shaders connected to any of the material's surface outputs"""


class SourceNode(ABC):
    """Resolved node (prim) of the source stage"""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def path(self) -> str:
        """Path of the node in its stage ('/World/Chair/Seat')"""

    @property
    @abstractmethod
    def type_name(self) -> str:
        pass

    @property
    def kind(self) -> NodeKind:
        return NodeKind.from_type_name(self.type_name)

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable key of the node's full resolved composition

        Two nodes with equal identity denote the same resolved prim.
        """

    @property
    @abstractmethod
    def stage(self) -> 'SourceStage':
        pass

    @property
    @abstractmethod
    def parent(self) -> Optional['SourceNode']:
        pass

    @property
    @abstractmethod
    def children(self) -> List['SourceNode']:
        pass

    @property
    def is_instance(self) -> bool:
        return False

    @property
    def prototype(self) -> Optional['SourceNode']:
        return None

    @abstractmethod
    def local_transform(self):
        """Local 4x4 matrix in the source convention

        Row-vector matrix, translation stored in the last row, in stage units.
        """

    @abstractmethod
    def get_attribute(self, name, default=None) -> Any:
        """Value of an attribute, default when missing or unauthored"""

    def animated_attributes(self) -> List[str]:
        """Names of the attributes carrying more than one time sample"""
        return []

    def material_binding(self) -> Optional[SourceMaterial]:
        """Directly bound material, None if unbound"""
        return None


class SourceStage(ABC):
    """Opened source stage"""

    @property
    @abstractmethod
    def meters_per_unit(self) -> float:
        pass

    @property
    @abstractmethod
    def up_axis(self) -> str:
        """'Y' or 'Z'"""

    @abstractmethod
    def root_nodes(self) -> List[SourceNode]:
        """Children of the pseudo root in source order"""

    @abstractmethod
    def traverse_all(self) -> List[SourceNode]:
        """Every node of the stage, prototypes included"""

    @abstractmethod
    def resolve_asset(self, asset_path) -> str:
        """Resolve an authored asset path, '' when it cannot be found"""

    @abstractmethod
    def fetch_asset(self, resolved_path) -> bytes:
        """Raw bytes of a resolved asset

        Raises:
            OSError: If the asset cannot be read
        """


class BaseReader(ABC):
    """Abstract base class for scene file readers

    Provides a consistent interface for opening a scene file as a SourceStage.
    """

    def __init__(self, file_path: str):
        """Initialize reader with file path

        Args:
            file_path: Path to the scene file
        """
        self.file_path = Path(file_path)

    @abstractmethod
    def get_format_name(self) -> str:
        """Return human-readable format name (e.g., 'USD')"""

    @abstractmethod
    def get_stage(self) -> SourceStage:
        """Return the opened stage"""
