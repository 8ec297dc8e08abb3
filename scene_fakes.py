#!/usr/bin/env python3
"""
In-memory source stages for the tests
Implements the readers interfaces without pxr
"""

import numpy as np

from core.config import Config
from core.context import ConversionContext
from core.log import ConversionLog
from exporters.scene_writer import HarfangSceneWriter
from readers.base_reader import (
    AssetPath,
    ShaderInput,
    SourceMaterial,
    SourceNode,
    SourceShader,
    SourceStage,
    ValueSource,
)


class FakeInput(ShaderInput):
    def __init__(self, name, value=None, source=None, connected=None, found=True):
        self._name = name
        self.value = value
        self.source = source
        self.connected = connected
        self.found = found

    @property
    def name(self):
        return self._name

    def get(self):
        return self.value

    def resolve_value_source(self):
        if self.source is not None:
            return ValueSource(shader=self.source)
        if not self.found:
            return ValueSource(found=False)
        return ValueSource(value=self.value)

    def connected_source(self):
        return self.connected if self.connected is not None else self.source


class FakeShader(SourceShader):
    def __init__(self, path, shader_id=None, inputs=()):
        self._path = path
        self._shader_id = shader_id
        self._inputs = list(inputs)

    @property
    def path(self):
        return self._path

    @property
    def name(self):
        return self._path.rsplit("/", 1)[-1]

    @property
    def shader_id(self):
        return self._shader_id

    def inputs(self):
        return list(self._inputs)


class FakeMaterial(SourceMaterial):
    def __init__(self, path, surface=None, outputs=()):
        self._path = path
        self.surface = surface
        self.outputs = list(outputs)

    @property
    def path(self):
        return self._path

    def compute_surface_shader(self):
        return self.surface

    def surface_output_sources(self):
        return list(self.outputs)


class FakeNode(SourceNode):
    def __init__(self, name, type_name="Xform", attributes=None, children=(), identity=None,
                 transform=None, material=None, prototype=None, animated=()):
        self._name = name
        self._type_name = type_name
        self.attributes = dict(attributes or {})
        self._identity = identity
        self.transform = np.identity(4) if transform is None else np.asarray(transform, dtype=np.float64)
        self.material = material
        self._prototype = prototype
        self.animated = list(animated)
        self._parent = None
        self._stage = None
        self._children = []
        for child in children:
            self.add_child(child)

    def add_child(self, child):
        child._parent = self
        self._children.append(child)
        return child

    @property
    def name(self):
        return self._name

    @property
    def path(self):
        if self._parent is None:
            return f"/{self._name}"
        return f"{self._parent.path}/{self._name}"

    @property
    def type_name(self):
        return self._type_name

    @property
    def identity(self):
        return self._identity if self._identity is not None else self.path

    @property
    def stage(self):
        node = self
        while node._parent is not None:
            node = node._parent
        return node._stage

    @property
    def parent(self):
        return self._parent

    @property
    def children(self):
        return list(self._children)

    @property
    def is_instance(self):
        return self._prototype is not None

    @property
    def prototype(self):
        return self._prototype

    def local_transform(self):
        return self.transform

    def get_attribute(self, name, default=None):
        return self.attributes.get(name, default)

    def animated_attributes(self):
        return list(self.animated)

    def material_binding(self):
        return self.material

    def walk(self):
        yield self
        for child in self._children:
            yield from child.walk()


class FakeStage(SourceStage):
    """Stage holding root nodes, prototypes and asset bytes by path"""

    def __init__(self, roots=(), prototypes=(), assets=None, meters_per_unit=1.0, up_axis="Y"):
        self._meters_per_unit = meters_per_unit
        self._up_axis = up_axis
        self.assets = dict(assets or {})
        self.roots = []
        self.prototypes = []
        self.fetched = []
        for root in roots:
            self.add_root(root)
        for prototype in prototypes:
            self.add_prototype(prototype)

    def add_root(self, node):
        node._stage = self
        self.roots.append(node)
        return node

    def add_prototype(self, node):
        node._stage = self
        self.prototypes.append(node)
        return node

    @property
    def meters_per_unit(self):
        return self._meters_per_unit

    @property
    def up_axis(self):
        return self._up_axis

    def root_nodes(self):
        return list(self.roots)

    def traverse_all(self):
        nodes = []
        for root in self.roots + self.prototypes:
            nodes.extend(root.walk())
        return nodes

    def resolve_asset(self, asset_path):
        return asset_path if asset_path in self.assets else ""

    def fetch_asset(self, resolved_path):
        if resolved_path not in self.assets:
            raise OSError(f"No asset {resolved_path}")
        self.fetched.append(resolved_path)
        return self.assets[resolved_path]


class RecordingWriter(HarfangSceneWriter):
    """Scene writer remembering every geometry and scene it wrote"""

    def __init__(self):
        self.geometries = []
        self.scenes = []

    def write_geometry(self, path, geo):
        self.geometries.append((path, geo))
        super().write_geometry(path, geo)

    def write_scene(self, path, scene, resources):
        self.scenes.append((path, scene))
        super().write_scene(path, scene, resources)


# unit cube, one quad per side, outward facing in source (counter-clockwise) order
CUBE_POINTS = np.array([
    [-1, -1, 1], [1, -1, 1], [-1, 1, 1], [1, 1, 1],
    [-1, 1, -1], [1, 1, -1], [-1, -1, -1], [1, -1, -1],
], dtype=np.float64)
CUBE_COUNTS = np.array([4, 4, 4, 4, 4, 4])
CUBE_INDICES = np.array([
    0, 1, 3, 2,
    2, 3, 5, 4,
    4, 5, 7, 6,
    6, 7, 1, 0,
    1, 7, 5, 3,
    6, 0, 2, 4,
])


def make_cube(name="Cube", **kwargs):
    attributes = {
        "points": CUBE_POINTS.copy(),
        "faceVertexCounts": CUBE_COUNTS.copy(),
        "faceVertexIndices": CUBE_INDICES.copy(),
    }
    attributes.update(kwargs.pop("attributes", {}))
    return FakeNode(name, "Mesh", attributes=attributes, **kwargs)


def make_quad(name="Quad", **kwargs):
    attributes = {
        "points": np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float64),
        "faceVertexCounts": np.array([4]),
        "faceVertexIndices": np.array([0, 1, 2, 3]),
    }
    attributes.update(kwargs.pop("attributes", {}))
    return FakeNode(name, "Mesh", attributes=attributes, **kwargs)


def make_texture_node(name, file_path):
    """Texture shader node as the ingestion pass sees it in the tree"""
    return FakeNode(name, "Shader", attributes={
        "info:id": "UsdUVTexture",
        "inputs:file": AssetPath(file_path),
    })


def make_texture_shader(path, file_path, uv_name="st"):
    """Texture shader as the material graph sees it, read through a primvar reader"""
    reader = FakeShader(f"{path}_reader", "UsdPrimvarReader_float2", [FakeInput("varname", uv_name)])
    return FakeShader(path, "UsdUVTexture", [
        FakeInput("file", AssetPath(file_path)),
        FakeInput("st", connected=reader),
    ])


def make_surface(path, **inputs):
    """Preview surface with scalar values or texture shaders per input"""
    shader_inputs = []
    for name, value in inputs.items():
        if isinstance(value, FakeShader):
            shader_inputs.append(FakeInput(name, source=value))
        else:
            shader_inputs.append(FakeInput(name, value))
    return FakeShader(path, "UsdPreviewSurface", shader_inputs)


def make_context(tmp_path, writer=None, **config_values):
    """ConversionContext writing under tmp_path/out"""
    out = tmp_path / "out"
    (out / "Textures").mkdir(parents=True, exist_ok=True)
    values = {"base_output_path": str(out).replace("\\", "/"), "quiet": True}
    values.update(config_values)
    config = Config(**values)
    return ConversionContext(config, ConversionLog(quiet=True), writer or RecordingWriter())
