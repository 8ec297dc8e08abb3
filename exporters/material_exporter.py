#!/usr/bin/env python3
"""
Material Exporter Module
Converts preview surface shader graphs to engine materials.

Scalar inputs become material uniforms, texture inputs are looked up in the
texture cache filled by the ingestion pass. Once every input is read the
texture channels are packed the way the engine's PBR shader expects them:
- uBaseOpacityMap: albedo RGB + opacity A
- uOcclusionRoughnessMetalnessMap: occlusion R, roughness G, metallic B
- uNormalMap, uSelfMap: bound as they are
Packing itself is done later by the texture processor, driven by the
`.meta` sidecars written here.
"""

from dataclasses import replace

import numpy as np

from core.scene_data import BlendMode, ExportedObject, FaceCulling, Material, MaterialTexture
from core.texture_meta import (
    EMISSIVE_MAP_META,
    NORMAL_MAP_META,
    ChannelSource,
    TextureMeta,
    quantize,
)
from readers.base_reader import AssetPath, NodeKind

from .base_exporter import BaseExporter
from .texture_ingestion import TEXTURE_SHADER_ID, texture_destination

PREVIEW_SURFACE_NAME = "UsdPreviewSurface"
DUMMY_MATERIAL_NAME = "dummy_mat"

# shader input -> texture role
TEXTURE_ROLES = {
    "diffuseColor": "albedo",
    "opacity": "opacity",
    "occlusion": "occlusion",
    "roughness": "roughness",
    "metallic": "metallic",
    "normal": "normal",
    "emissiveColor": "emissive",
}

# slot name -> sampler stage
BASE_OPACITY_MAP = ("uBaseOpacityMap", 0)
ORM_MAP = ("uOcclusionRoughnessMetalnessMap", 1)
NORMAL_MAP = ("uNormalMap", 2)
SELF_MAP = ("uSelfMap", 4)


def _vec3(value):
    v = np.asarray(value, dtype=np.float64).flatten()
    return [float(v[0]), float(v[1]), float(v[2])]


class MaterialExporter(BaseExporter):
    """Exports shader nodes to Materials and builds objects around them"""

    def __init__(self, context):
        super().__init__(context)
        # shader path -> (Material, UV primvar names)
        self._exported = {}

    def export(self, shader, uv_names):
        """Export a surface shader to a Material, once per shader node

        Args:
            shader: SourceShader (preview surface)
            uv_names: Set receiving the UV primvar names read by its textures

        Returns:
            Material: Exported material
        """
        cached = self._exported.get(shader.path)
        if cached is None:
            names = set()
            cached = (self._export_shader(shader, names), frozenset(names))
            self._exported[shader.path] = cached
        material, names = cached
        uv_names.update(names)
        return material

    def _export_shader(self, shader, uv_names):
        self.debug(f"\tExporting material '{shader.path}'")

        diffuse = [0.5, 0.5, 0.5, 1.0]
        orm = [1.0, 0.0, 0.0, 1.0]
        emissive = [0.0, 0.0, 0.0, -1.0]
        textures = {}

        for shader_input in shader.inputs():
            source = shader_input.resolve_value_source()
            if not source.found:
                self.error(f"!!! Can't find attr for {shader.path}.inputs:{shader_input.name}")
                continue

            if source.shader is None:
                self._assign_value(shader_input.name, source.value, diffuse, orm, emissive)
            else:
                self._read_texture(shader_input.name, source.shader, textures, uv_names)

        material = Material(program=self.resources.programs.add(self.config.pipeline_shader))
        self._bind_base_opacity(material, textures, diffuse)
        self._bind_orm(material, textures, orm)

        normal = textures.get("normal")
        if normal is not None:
            self.debug(f"\t\t- uNormalMap: {self.resources.textures.name(normal)}")
            self._write_material_meta(normal, NORMAL_MAP_META)
            material.textures[NORMAL_MAP[0]] = MaterialTexture(normal, NORMAL_MAP[1])

        emissive_texture = textures.get("emissive")
        if emissive_texture is not None:
            self.debug(f"\t\t- uSelfMap: {self.resources.textures.name(emissive_texture)}")
            self._write_material_meta(emissive_texture, EMISSIVE_MAP_META)
            material.textures[SELF_MAP[0]] = MaterialTexture(emissive_texture, SELF_MAP[1])

        material.values["uBaseOpacityColor"] = tuple(diffuse)
        material.values["uOcclusionRoughnessMetalnessColor"] = tuple(orm)
        material.values["uSelfColor"] = tuple(emissive)

        if "opacity" in textures or diffuse[3] < 1.0:
            material.blend_mode = BlendMode.ALPHA

        self.debug(f"\t\t- Using pipeline shader '{self.config.pipeline_shader}'")
        return material

    def _assign_value(self, name, value, diffuse, orm, emissive):
        if value is None:
            return
        if name == "diffuseColor":
            diffuse[0:3] = _vec3(value)
        elif name == "opacity":
            diffuse[3] = float(value)
        elif name == "occlusion":
            orm[0] = float(value)
        elif name == "roughness":
            orm[1] = float(value)
        elif name == "metallic":
            orm[2] = float(value)
        elif name == "emissiveColor":
            emissive[0:3] = _vec3(value)

    def _read_texture(self, input_name, texture_shader, textures, uv_names):
        """Record the texture driving a surface input and its UV primvar"""
        if texture_shader.shader_id != TEXTURE_SHADER_ID:
            return

        for texture_input in texture_shader.inputs():
            if texture_input.name == "file":
                texture_ref = self.texture_ref(texture_input.get())
                role = TEXTURE_ROLES.get(input_name)
                if texture_ref is not None and role is not None:
                    textures[role] = texture_ref
            elif texture_input.name == "st":
                uv_name = self.uv_primvar_name(texture_input)
                if uv_name:
                    uv_names.add(uv_name)

    def texture_ref(self, asset):
        """Texture reference the ingestion pass registered for an asset

        Returns:
            int: Texture reference, None if the asset was never ingested
        """
        if not isinstance(asset, AssetPath):
            return None
        cache = self.context.texture_cache
        dest_path = cache.destination_of(asset.path)
        if dest_path is None:
            dest_path, _ = texture_destination(self.config, asset.path)
        return cache.lookup(dest_path)

    def uv_primvar_name(self, st_input):
        """Follow a texture's st input to the primvar name it reads

        st <- primvar reader.varname, itself possibly connected to a
        material interface input 'stPrimvarName'.
        """
        reader = st_input.connected_source()
        if reader is None:
            return None
        varname = reader.get_input("varname")
        if varname is None:
            return None
        upstream = varname.connected_source()
        if upstream is not None:
            varname = upstream.get_input("stPrimvarName")
            if varname is None:
                return None
        value = varname.get()
        return str(value) if value else None

    def _texture_name(self, texture_ref):
        return self.resources.textures.name(texture_ref)

    def _write_material_meta(self, texture_ref, meta):
        self.write_texture_meta(self.config.prj_path, self._texture_name(texture_ref), meta)

    def _bind_base_opacity(self, material, textures, diffuse):
        albedo = textures.get("albedo")
        opacity = textures.get("opacity")

        if albedo is not None:
            self.debug(f"\t\t- uBaseOpacityMap: {self._texture_name(albedo)}")
            construct = None
            if opacity is not None:
                construct = ["R", "G", "B", ChannelSource(self._texture_name(opacity), "A")]
            self._write_material_meta(albedo, TextureMeta(compression="BC7", construct=construct))
            material.textures[BASE_OPACITY_MAP[0]] = MaterialTexture(albedo, BASE_OPACITY_MAP[1])

        elif opacity is not None:
            # decals: flat color with the opacity texture's alpha
            self.debug(f"\t\t- uOpacityMap: {self._texture_name(opacity)}")
            construct = [quantize(diffuse[0]), quantize(diffuse[1]), quantize(diffuse[2]),
                         ChannelSource(self._texture_name(opacity), "A")]
            self._write_material_meta(opacity, TextureMeta(compression="BC7", construct=construct))
            material.textures[BASE_OPACITY_MAP[0]] = MaterialTexture(opacity, BASE_OPACITY_MAP[1])

    def _bind_orm(self, material, textures, orm):
        channels = [textures.get("occlusion"), textures.get("roughness"), textures.get("metallic")]
        present = [t for t in channels if t is not None]
        if not present:
            return

        carrier = present[0]
        construct = None
        if not (channels[0] == channels[1] == channels[2]):
            construct = [self._texture_name(t) if t is not None else quantize(orm[i])
                         for i, t in enumerate(channels)]

        self.debug(f"\t\t- uOcclusionRoughnessMetalnessMap: {self._texture_name(carrier)}")
        self._write_material_meta(carrier, TextureMeta(compression="BC7", construct=construct))
        material.textures[ORM_MAP[0]] = MaterialTexture(carrier, ORM_MAP[1])

    def find_surface_shader(self, material):
        """Surface shader of a bound material

        Falls back to a UsdPreviewSurface connected to any surface output when
        the default render context has none.
        """
        shader = material.compute_surface_shader()
        if shader is not None:
            return shader
        for source in material.surface_output_sources():
            if source.name == PREVIEW_SURFACE_NAME:
                shader = source
        return shader

    def dummy_material(self, node):
        """Flat material keeping a node without usable material visible"""
        diffuse = [0.5, 0.5, 0.5, 1.0]
        display_color = node.get_attribute("primvars:displayColor")
        if display_color is not None:
            colors = np.asarray(display_color, dtype=np.float64).reshape(-1, 3)
            if len(colors):
                diffuse[0:3] = [float(c) for c in colors[0]]

        self.debug(f"\t- Using pipeline shader '{self.config.pipeline_shader}'")
        material = Material(program=self.resources.programs.add(self.config.pipeline_shader))
        material.values["uBaseOpacityColor"] = tuple(diffuse)
        material.values["uOcclusionRoughnessMetalnessColor"] = (1.0, 1.0, 0.0, -1.0)
        material.values["uSelfColor"] = (0.0, 0.0, 0.0, -1.0)
        return material

    def is_double_sided(self, node):
        if node.kind == NodeKind.GEOM_SUBSET and node.parent is not None:
            return bool(node.parent.get_attribute("doubleSided", False))
        return bool(node.get_attribute("doubleSided", False))

    def create_object(self, node, uv_names):
        """Create an object carrying the material bound to a geometry node

        Args:
            node: Mesh, GeomSubset or Sphere SourceNode
            uv_names: Set receiving the UV primvar names the material reads

        Returns:
            ExportedObject: Object with its material in slot 0 (no model yet)
        """
        obj = ExportedObject()

        material = node.material_binding()
        if material is not None:
            shader = self.find_surface_shader(material)
            if shader is not None:
                mat = self.export(shader, uv_names)
                if self.is_double_sided(node):
                    mat = replace(mat, face_culling=FaceCulling.DISABLED)
                obj.set_material(0, mat, shader.path)
                return obj
            self.error(f"!Unexpected shader for material {material.path}")

        self.debug("\t- Has no material, set a dummy one")
        obj.set_material(0, self.dummy_material(node), DUMMY_MATERIAL_NAME)
        return obj
