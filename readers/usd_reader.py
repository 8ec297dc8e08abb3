#!/usr/bin/env python3
"""
USD Reader Module
pxr-backed implementation of the source scene interfaces
"""

import hashlib
from pathlib import Path
from typing import Any, List, Optional

import numpy as np

from .base_reader import (
    AssetPath,
    BaseReader,
    ShaderInput,
    SourceMaterial,
    SourceNode,
    SourceShader,
    SourceStage,
    ValueSource,
)


def _to_python(value):
    """Convert a pxr value to plain Python / numpy

    Vt arrays, Gf vectors and matrices become numpy arrays, asset paths
    become AssetPath, tokens stay strings.
    """
    from pxr import Sdf

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Sdf.AssetPath):
        return AssetPath(value.path, value.resolvedPath or "")
    try:
        return np.array(value)
    except (TypeError, ValueError):
        return value


class USDShaderInputWrapper(ShaderInput):
    """Wrapper for UsdShade.Input"""

    def __init__(self, shade_input):
        self.input = shade_input

    @property
    def name(self) -> str:
        return str(self.input.GetBaseName())

    def get(self) -> Any:
        return _to_python(self.input.Get())

    def resolve_value_source(self) -> ValueSource:
        attrs = self.input.GetValueProducingAttributes()
        if not attrs:
            return ValueSource(found=False)
        attr = attrs[0]
        if attr.HasAuthoredValue():
            return ValueSource(value=_to_python(attr.Get()))
        return ValueSource(shader=USDShaderWrapper(attr.GetPrim()))

    def connected_source(self) -> Optional[SourceShader]:
        source = self.input.GetConnectedSource()
        if not source:
            return None
        return USDShaderWrapper(source[0].GetPrim())


class USDShaderWrapper(SourceShader):
    """Wrapper for a connectable prim (UsdShade.Shader or material interface)"""

    def __init__(self, prim):
        self.prim = prim

    @property
    def path(self) -> str:
        return str(self.prim.GetPath())

    @property
    def name(self) -> str:
        return self.prim.GetName()

    @property
    def shader_id(self) -> Optional[str]:
        from pxr import UsdShade
        shader_id = UsdShade.Shader(self.prim).GetShaderId()
        return str(shader_id) if shader_id else None

    def inputs(self) -> List[ShaderInput]:
        from pxr import UsdShade
        connectable = UsdShade.ConnectableAPI(self.prim)
        return [USDShaderInputWrapper(i) for i in connectable.GetInputs()]


class USDMaterialWrapper(SourceMaterial):
    """Wrapper for UsdShade.Material"""

    def __init__(self, material):
        self.material = material

    @property
    def path(self) -> str:
        return str(self.material.GetPath())

    def compute_surface_shader(self) -> Optional[SourceShader]:
        result = self.material.ComputeSurfaceSource()
        # some pxr releases return (shader, sourceName, sourceType)
        shader = result[0] if isinstance(result, tuple) else result
        if shader and shader.GetPrim().IsValid():
            return USDShaderWrapper(shader.GetPrim())
        return None

    def surface_output_sources(self) -> List[SourceShader]:
        sources = []
        for output in self.material.GetSurfaceOutputs():
            if not output.HasConnectedSource():
                continue
            source = output.GetConnectedSource()
            if source:
                sources.append(USDShaderWrapper(source[0].GetPrim()))
        return sources


class USDPrimWrapper(SourceNode):
    """Wrapper for USD prims implementing the SourceNode interface"""

    def __init__(self, prim, stage):
        """Initialize wrapper with USD prim

        Args:
            prim: USD Prim object
            stage: Owning USDStageWrapper
        """
        self.prim = prim
        self._stage = stage
        self._children = None
        self._identity = None

    @property
    def name(self) -> str:
        return self.prim.GetName()

    @property
    def path(self) -> str:
        return str(self.prim.GetPath())

    @property
    def type_name(self) -> str:
        return str(self.prim.GetTypeName())

    @property
    def identity(self) -> str:
        """SHA1 of the (layer stack, path) sites the prim's arcs bring in

        The arc sites are visited in strength order so the key covers every
        contributing layer. The prim's own stage site is left out, so prims
        referencing the same asset share one identity. Prims without arcs
        fall back to their stage site.
        """
        if self._identity is None:
            digest = hashlib.sha1()
            for layer, path in self._composition_sites():
                digest.update(f"{layer}{path}\n".encode("utf-8"))
            self._identity = digest.hexdigest()
        return self._identity

    def _composition_sites(self):
        index = self.prim.GetPrimIndex()
        if not index.IsValid():
            yield str(self._stage.stage.GetRootLayer().identifier), self.path
            return
        root = index.rootNode
        pending = list(root.children)
        if not pending:
            yield root.layerStack.identifier.rootLayer.identifier, str(root.path)
            return
        while pending:
            node = pending.pop(0)
            yield node.layerStack.identifier.rootLayer.identifier, str(node.path)
            pending[0:0] = list(node.children)

    @property
    def stage(self) -> 'USDStageWrapper':
        return self._stage

    @property
    def parent(self) -> Optional[SourceNode]:
        parent_prim = self.prim.GetParent()
        if parent_prim and not parent_prim.IsPseudoRoot():
            return USDPrimWrapper(parent_prim, self._stage)
        return None

    @property
    def children(self) -> List[SourceNode]:
        if self._children is None:
            self._children = [USDPrimWrapper(c, self._stage) for c in self.prim.GetChildren()]
        return self._children

    @property
    def is_instance(self) -> bool:
        return self.prim.IsInstance()

    @property
    def prototype(self) -> Optional[SourceNode]:
        if not self.prim.IsInstance():
            return None
        return USDPrimWrapper(self.prim.GetPrototype(), self._stage)

    def local_transform(self):
        from pxr import Usd, UsdGeom
        xformable = UsdGeom.Xformable(self.prim)
        if not xformable:
            return np.identity(4)
        matrix = xformable.GetLocalTransformation(Usd.TimeCode.Default())
        if isinstance(matrix, tuple):
            matrix = matrix[0]
        return np.array(matrix, dtype=np.float64)

    def get_attribute(self, name, default=None) -> Any:
        attr = self.prim.GetAttribute(name)
        if not attr or not attr.HasValue():
            return default
        value = attr.Get()
        return default if value is None else _to_python(value)

    def animated_attributes(self) -> List[str]:
        return [attr.GetName() for attr in self.prim.GetAttributes()
                if attr.GetNumTimeSamples() > 1]

    def material_binding(self) -> Optional[SourceMaterial]:
        from pxr import UsdShade
        binding = UsdShade.MaterialBindingAPI(self.prim).GetDirectBinding()
        material = binding.GetMaterial()
        if material and material.GetPrim().IsValid():
            return USDMaterialWrapper(material)
        return None


class USDStageWrapper(SourceStage):
    """Wrapper for Usd.Stage"""

    def __init__(self, stage):
        from pxr import UsdGeom
        self.stage = stage
        self._meters_per_unit = UsdGeom.GetStageMetersPerUnit(stage)
        self._up_axis = str(UsdGeom.GetStageUpAxis(stage))

    @property
    def meters_per_unit(self) -> float:
        return self._meters_per_unit

    @property
    def up_axis(self) -> str:
        return self._up_axis

    def root_nodes(self) -> List[SourceNode]:
        return [USDPrimWrapper(p, self) for p in self.stage.GetPseudoRoot().GetChildren()]

    def traverse_all(self) -> List[SourceNode]:
        from pxr import Usd
        nodes = [USDPrimWrapper(p, self) for p in self.stage.TraverseAll()]
        # prototypes live outside the pseudo root's namespace
        for prototype in self.stage.GetPrototypes():
            nodes.extend(USDPrimWrapper(p, self) for p in Usd.PrimRange(prototype))
        return nodes

    def resolve_asset(self, asset_path) -> str:
        from pxr import Ar
        with Ar.ResolverContextBinder(self.stage.GetPathResolverContext()):
            resolver = Ar.GetResolver()
            resolved = resolver.Resolve(asset_path)
            if not resolved:
                anchored = self.stage.GetRootLayer().ComputeAbsolutePath(asset_path)
                resolved = resolver.Resolve(anchored)
        return resolved.GetPathString() if resolved else ""

    def fetch_asset(self, resolved_path) -> bytes:
        path = Path(resolved_path)
        if path.is_file():
            return path.read_bytes()

        # package members (foo.usdz[tex.png]) only open through Ar
        from pxr import Ar
        with Ar.ResolverContextBinder(self.stage.GetPathResolverContext()):
            asset = Ar.GetResolver().OpenAsset(Ar.ResolvedPath(resolved_path))
        if not asset:
            raise OSError(f"Can't open asset {resolved_path}")
        return bytes(asset.GetBuffer())


class USDReader(BaseReader):
    """USD file reader implementing the BaseReader interface"""

    def __init__(self, usd_file: str):
        """Open USD stage

        Args:
            usd_file: Path to USD file (.usd, .usda, .usdc, .usdz)

        Raises:
            ImportError: If the pxr module is not installed
            ValueError: If the stage cannot be opened
        """
        super().__init__(usd_file)

        try:
            from pxr import Usd
        except ImportError as e:
            raise ImportError(
                f"USD Python library (pxr) not found: {e}\n"
                "Install with: pip install usd-core"
            )

        try:
            stage = Usd.Stage.Open(str(self.file_path))
        except Exception as e:
            raise ValueError(f"Failed to open USD file: {usd_file} ({e})")
        if not stage:
            raise ValueError(f"Failed to open USD file: {usd_file}")

        self._stage = USDStageWrapper(stage)

    def get_format_name(self) -> str:
        return "USD"

    def get_stage(self) -> USDStageWrapper:
        return self._stage
