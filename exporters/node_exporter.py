#!/usr/bin/env python3
"""
Node Exporter Module
Depth-first traversal of the source stage building the engine scene.

Each visited node becomes one scene node. Its kind decides what gets
attached to it (camera, light, object); instances attach a reference to a
sub-scene exported once per prototype instead of recursing into children.
"""

import math

import numpy as np

from core.output_paths import make_relative_resource_name, resolve_output_path
from core.scene_data import Camera, Light, LightType, Scene
from readers.base_reader import NodeKind

from .base_exporter import BaseExporter
from .geometry_exporter import GeometryExporter
from .material_exporter import MaterialExporter

SPHERE_MODEL = "core_library/primitives/sphere.geo"

# swaps Y and Z, Z-up sources to the engine's Y-up
Z_UP_TO_Y_UP = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 1.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])

# default UsdGeomCamera apertures and focal length (tenths of a scene unit)
DEFAULT_VERTICAL_APERTURE = 15.2908
DEFAULT_FOCAL_LENGTH = 50.0
DEFAULT_CLIPPING_RANGE = (1.0, 1000000.0)


def rotation_x(angle):
    c, s = math.cos(angle), math.sin(angle)
    m = np.identity(4)
    m[1, 1], m[1, 2], m[2, 1], m[2, 2] = c, -s, s, c
    return m


def rotation_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    m = np.identity(4)
    m[0, 0], m[0, 1], m[1, 0], m[1, 1] = c, -s, s, c
    return m


def to_engine_matrix(source_matrix, meters_per_unit):
    """Convert a source row-vector matrix to an engine column-vector matrix

    Args:
        source_matrix: 4x4 local matrix, translation in the last row
        meters_per_unit: Stage unit

    Returns:
        np.ndarray: 4x4 matrix, translation in the last column, in meters
    """
    m = np.array(source_matrix, dtype=np.float64).reshape(4, 4).T.copy()
    m[:3, 3] *= meters_per_unit
    return m


class NodeExporter(BaseExporter):
    """Builds the engine scene from the stage's node tree"""

    def __init__(self, context):
        super().__init__(context)
        self.materials = MaterialExporter(context)
        self.geometries = GeometryExporter(context)

    def export(self, stage, scene=None):
        """Export every root node of the stage and its descendants

        Args:
            stage: SourceStage
            scene: Scene to fill, a new one if None

        Returns:
            Scene: The filled scene
        """
        if scene is None:
            scene = Scene()
        for node in stage.root_nodes():
            self.export_node(node, None, scene)
        return scene

    def node_matrix(self, node, is_root):
        """Local engine matrix of a node, with the root corrections applied"""
        stage = node.stage
        m = to_engine_matrix(node.local_transform(), stage.meters_per_unit)
        if is_root:
            if stage.up_axis.upper() == "Z":
                m = Z_UP_TO_Y_UP @ m
            m[:3, :3] *= self.config.geometry_scale
        return m

    def export_node(self, node, parent, scene):
        """Export a node and, recursively, what lies below it

        Args:
            node: SourceNode
            parent: Parent SceneNode, None for root nodes
            scene: Scene receiving the node

        Returns:
            SceneNode: Created node, None for data-only nodes
        """
        kind = node.kind
        if kind.is_data_only:
            return None

        self.log(f"type: {node.type_name}, {node.path}")

        scene_node = scene.create_node(node.name, parent)
        m = self.node_matrix(node, parent is None)

        if kind == NodeKind.CAMERA:
            m = m @ rotation_x(math.pi) @ rotation_z(math.pi)
            m[:3, 0] = -m[:3, 0]
            scene_node.camera = self.export_camera(node)

        elif kind.is_light:
            scene_node.light = self.export_light(node, kind)

        elif kind == NodeKind.MESH:
            scene_node.object = self.context.geometry_cache.get_or_create(
                node.identity, lambda: self.export_object(node, node, None))

        elif kind == NodeKind.GEOM_SUBSET:
            mesh = node.parent
            if mesh is None or mesh.kind != NodeKind.MESH:
                self.error(f"Subset {node.path} is not below a mesh")
            else:
                self.debug(f"\tadd geometry subset {node.path}")
                scene_node.object = self.context.geometry_cache.get_or_create(
                    node.identity, lambda: self.export_object(node, mesh, node))
                # only the subsets of a mesh render
                if parent is not None:
                    parent.object = None

        elif kind == NodeKind.SPHERE:
            radius = float(node.get_attribute("radius", 1.0))
            m[:3, :3] *= radius * node.stage.meters_per_unit
            obj = self.materials.create_object(node, set())
            obj.model_ref = self.resources.models.add(SPHERE_MODEL)
            scene_node.object = obj

        if node.is_instance:
            prototype = node.prototype
            if prototype is not None:
                scene_node.instance = self.export_prototype(prototype)
        else:
            for child in node.children:
                self.export_node(child, scene_node, scene)

        scene_node.transform.local = m
        return scene_node

    def export_camera(self, node):
        znear, zfar = node.get_attribute("clippingRange", DEFAULT_CLIPPING_RANGE)
        camera = Camera(znear=float(znear), zfar=float(zfar))
        if node.get_attribute("projection", "perspective") == "orthographic":
            camera.is_orthographic = True
        else:
            aperture = float(node.get_attribute("verticalAperture", DEFAULT_VERTICAL_APERTURE))
            focal_length = float(node.get_attribute("focalLength", DEFAULT_FOCAL_LENGTH))
            camera.fov = 2.0 * math.atan(aperture / (2.0 * focal_length))
        return camera

    def export_light(self, node, kind):
        light = Light()
        if kind == NodeKind.SPHERE_LIGHT:
            light.type = LightType.POINT
            light.radius = float(node.get_attribute("inputs:radius", 0.5))
        elif kind == NodeKind.DISTANT_LIGHT:
            light.type = LightType.SPOT
            light.radius = float(node.get_attribute("inputs:angle", 0.53))

        color = node.get_attribute("inputs:color")
        if color is not None:
            light.diffuse = tuple(float(c) for c in np.asarray(color).flatten()[:3])
        return light

    def export_object(self, node, mesh, subset):
        """Export the geometry and material of a mesh or subset node

        Args:
            node: Node the object is created for (mesh or subset)
            mesh: Mesh owning the topology
            subset: Subset node or None

        Returns:
            ExportedObject: Object with its model and material
        """
        uv_names = set()
        obj = self.materials.create_object(node, uv_names)
        geo = self.geometries.export(mesh, subset, uv_names)

        path, should_write = resolve_output_path(
            self.config.base_output_path, node.path, "", "geo", self.config.policy_geometry)
        if should_write:
            self.debug(f"Export geometry to '{path}'")
            self.write_geometry(path, geo)

        rel_path = make_relative_resource_name(path, self.config.prj_path, self.config.prefix)
        obj.model_ref = self.resources.models.add(rel_path)
        return obj

    def export_prototype(self, prototype):
        """Export a prototype's sub-scene once and return its relative path

        Args:
            prototype: Prototype SourceNode

        Returns:
            str: Relative path of the sub-scene, None for a prototype
                 instancing itself
        """
        name = prototype.name
        cached = self.context.prototype_cache.get(name)
        if cached is not None:
            return cached

        in_progress = self.context.prototypes_in_progress
        if name in in_progress:
            self.error(f"Prototype {name} instances itself, instance skipped")
            return None

        in_progress.add(name)
        try:
            sub_scene = Scene()
            root = sub_scene.create_node(name)
            for child in prototype.children:
                self.export_node(child, root, sub_scene)

            path, should_write = resolve_output_path(
                self.config.base_output_path, name, "", "scn", self.config.policy_scene)
            if should_write:
                self.debug(f"Export prototype scene to '{path}'")
                self.write_scene(path, sub_scene)
        finally:
            in_progress.discard(name)

        rel_path = make_relative_resource_name(path, self.config.prj_path, self.config.prefix)
        return self.context.prototype_cache.get_or_create(name, lambda: rel_path)
