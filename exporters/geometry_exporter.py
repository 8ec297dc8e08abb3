#!/usr/bin/env python3
"""
Geometry Exporter Module
Builds engine geometries from source meshes.

Polygons are emitted with their vertex order reversed: the engine's front
faces wind the other way. Every per-polygon-vertex array (binding, normals,
UVs) follows that reversed order.
"""

import numpy as np

from core.mesh_utils import compute_vertex_normals, compute_vertex_tangents
from core.scene_data import MAX_UV_SETS, Geometry

from .base_exporter import BaseExporter

DEFAULT_UV_NAME = "st"


def winding_flip_remap(counts):
    """Source face-vertex index of every engine polygon-vertex

    Args:
        counts: (P,) vertex count of each polygon

    Returns:
        np.ndarray: (M,) index into the source face-vertex arrays
    """
    counts = np.asarray(counts, dtype=np.int64)
    total = int(counts.sum())
    offsets = np.cumsum(counts) - counts
    local = np.arange(total) - np.repeat(offsets, counts)
    return np.repeat(offsets + counts - 1, counts) - local


def expand_primvar(values, indices=None):
    """Apply an indexed primvar's indices, if any"""
    values = np.asarray(values)
    if indices is not None and len(indices):
        values = values[np.asarray(indices, dtype=np.int64)]
    return values


class GeometryExporter(BaseExporter):
    """Converts Mesh nodes (optionally restricted to a GeomSubset) to Geometry"""

    def export(self, mesh, subset=None, uv_names=()):
        """Build the geometry of a mesh

        Args:
            mesh: Mesh SourceNode
            subset: Optional GeomSubset SourceNode selecting polygons of mesh
            uv_names: UV primvar names requested by the mesh's material

        Returns:
            Geometry: Engine geometry, empty on inconsistent topology
        """
        geo = Geometry()

        points = mesh.get_attribute("points")
        counts = mesh.get_attribute("faceVertexCounts")
        indices = mesh.get_attribute("faceVertexIndices")
        if points is None or counts is None or indices is None:
            self.error(f"Mesh {mesh.path} has no topology")
            return geo

        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        counts = np.asarray(counts, dtype=np.int64)
        indices = np.asarray(indices, dtype=np.int64)
        if int(counts.sum()) != len(indices):
            self.error(f"Mesh {mesh.path}: face vertex counts don't match face vertex indices")
            return geo
        if len(indices) and indices.max() >= len(points):
            self.error(f"Mesh {mesh.path}: face vertex index out of range")
            return geo

        unit = mesh.stage.meters_per_unit
        geo.vtx = (points * unit).astype(np.float32)

        remap = winding_flip_remap(counts)
        binding = indices[remap]

        geo.pol = counts.astype(np.int32)
        geo.pol_material = np.zeros(len(counts), dtype=np.int32)
        geo.binding = binding.astype(np.int32)

        normals = self._read_normals(mesh)
        if normals is not None:
            normals = self._per_corner(mesh, "normals", normals.reshape(-1, 3), counts, remap, binding, len(points))
            if normals is not None:
                geo.normal = normals.astype(np.float32)

        for name in self._uv_set_names(mesh, uv_names):
            uv = self._read_uv(mesh, name, counts, remap, binding, len(points))
            if uv is not None:
                geo.uv.append(uv)

        if subset is not None:
            geo = self.filter_subset(geo, subset.get_attribute("indices", []))

        self.compute_tangent_frames(geo)
        return geo

    def _read_normals(self, mesh):
        # primvars:normals wins over the normals attribute when both are authored
        values = mesh.get_attribute("primvars:normals")
        if values is not None:
            return expand_primvar(values, mesh.get_attribute("primvars:normals:indices"))
        values = mesh.get_attribute("normals")
        return None if values is None else np.asarray(values)

    def _uv_set_names(self, mesh, uv_names):
        names = sorted(set(uv_names))
        if not names and mesh.get_attribute(f"primvars:{DEFAULT_UV_NAME}") is not None:
            names = [DEFAULT_UV_NAME]
        if len(names) > MAX_UV_SETS:
            self.error(f"Mesh {mesh.path} uses {len(names)} UV sets, only {MAX_UV_SETS} are kept")
            names = names[:MAX_UV_SETS]
        return names

    def _read_uv(self, mesh, name, counts, remap, binding, point_count):
        values = mesh.get_attribute(f"primvars:{name}")
        if values is None:
            self.error(f"Mesh {mesh.path} has no UV primvar '{name}'")
            return None
        values = expand_primvar(values, mesh.get_attribute(f"primvars:{name}:indices"))
        uv = self._per_corner(mesh, name, np.asarray(values, dtype=np.float64).reshape(-1, 2),
                              counts, remap, binding, point_count)
        if uv is None:
            return None
        uv = uv.astype(np.float32)
        uv[:, 1] = 1.0 - uv[:, 1]
        return uv

    def _per_corner(self, mesh, name, values, counts, remap, binding, point_count):
        """Lay out a primvar per engine polygon-vertex

        The array's length decides how it is indexed: per point through the
        binding, per face-vertex through the winding remap, per face or
        constant by repetition.
        """
        if len(values) == point_count:
            return values[binding]
        if len(values) == len(remap):
            return values[remap]
        if len(values) == len(counts):
            return np.repeat(values, counts, axis=0)
        if len(values) == 1:
            return np.repeat(values, len(remap), axis=0)
        self.error(f"Mesh {mesh.path}: can't map {len(values)} '{name}' values to its polygons")
        return None

    def filter_subset(self, geo, polygon_indices):
        """Keep only the polygons listed by a subset

        Args:
            geo: Full mesh Geometry
            polygon_indices: Indices of the polygons to keep

        Returns:
            Geometry: Geometry with compacted per-polygon and per-polygon-vertex arrays
        """
        keep = np.isin(np.arange(len(geo.pol)), np.asarray(polygon_indices, dtype=np.int64))
        corners = np.repeat(keep, np.asarray(geo.pol, dtype=np.int64))

        out = Geometry(vtx=geo.vtx, bind_pose=geo.bind_pose)
        out.pol = geo.pol[keep]
        out.pol_material = geo.pol_material[keep]
        out.binding = geo.binding[corners]
        if len(geo.normal):
            out.normal = geo.normal[corners]
        out.uv = [uv[corners] for uv in geo.uv]
        return out

    def compute_tangent_frames(self, geo):
        """Fill normals and tangent frames as the run configuration asks"""
        if not len(geo.pol):
            return

        if self.config.recalculate_normal or not len(geo.normal):
            self.debug("\t- Compute vertex normals")
            geo.normal = compute_vertex_normals(geo)

        if not geo.uv:
            return

        if len(geo.tangent) != len(geo.normal):
            geo.tangent = np.zeros_like(geo.normal)
            geo.binormal = np.zeros_like(geo.normal)
            needs_tangents = True
        else:
            needs_tangents = self.config.recalculate_tangent

        if needs_tangents:
            self.debug("\t- Compute tangent frame")
            geo.tangent, geo.binormal = compute_vertex_tangents(geo, geo.normal)
