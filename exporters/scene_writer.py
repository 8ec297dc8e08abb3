#!/usr/bin/env python3
"""
Scene Writer Module
Serializes engine geometries (.geo, binary) and scenes (.scn, JSON).

Geometry layout (little endian):
    magic 'HGEO', uint32 version
    uint32 vtx, pol, binding, normal, tangent, uv set count, bind pose count
    float32 vtx[vtx * 3]
    uint8   pol vertex count[pol], uint16 pol material[pol]
    uint32  binding[binding]
    float32 normal[normal * 3]
    float32 tangent[tangent * 3], binormal[tangent * 3]
    per uv set: uint32 count, float32 uv[count * 2]
    float32 bind pose[bind pose * 16]
"""

import json

import numpy as np

GEOMETRY_MAGIC = b"HGEO"
GEOMETRY_VERSION = 1


def _floats(array, width):
    return np.asarray(array, dtype="<f4").reshape(-1, width).tobytes()


def _name_or_none(resource_list, ref):
    return resource_list.name(ref) if ref is not None else None


class HarfangSceneWriter:
    """Default writer used by the converter"""

    def write_geometry(self, path, geo):
        """Write a Geometry

        Raises:
            OSError: If the file cannot be written
        """
        header = np.array([
            GEOMETRY_VERSION,
            len(geo.vtx), len(geo.pol), len(geo.binding),
            len(geo.normal), len(geo.tangent), len(geo.uv), len(geo.bind_pose),
        ], dtype="<u4")

        with open(path, "wb") as f:
            f.write(GEOMETRY_MAGIC)
            f.write(header.tobytes())
            f.write(_floats(geo.vtx, 3))
            f.write(np.asarray(geo.pol, dtype="u1").tobytes())
            f.write(np.asarray(geo.pol_material, dtype="<u2").tobytes())
            f.write(np.asarray(geo.binding, dtype="<u4").tobytes())
            f.write(_floats(geo.normal, 3))
            f.write(_floats(geo.tangent, 3))
            f.write(_floats(geo.binormal, 3))
            for uv in geo.uv:
                f.write(np.array([len(uv)], dtype="<u4").tobytes())
                f.write(_floats(uv, 2))
            for matrix in geo.bind_pose:
                f.write(_floats(matrix, 4))

    def write_scene(self, path, scene, resources):
        """Write a Scene as JSON

        Raises:
            OSError: If the file cannot be written
        """
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.scene_to_json(scene, resources), f, indent=1)

    def scene_to_json(self, scene, resources):
        data = {
            "nodes": [self._node_to_json(node, resources) for node in scene.nodes],
            "environment": {
                "brdf_map": _name_or_none(resources.textures, scene.environment.brdf_map),
                "irradiance_map": _name_or_none(resources.textures, scene.environment.irradiance_map),
                "radiance_map": _name_or_none(resources.textures, scene.environment.radiance_map),
            },
        }
        if scene.animation is not None:
            data["animation"] = scene.animation
        return data

    def _node_to_json(self, node, resources):
        data = {
            "name": node.name,
            "transform": {
                "parent": node.transform.parent,
                "local": [float(v) for v in np.asarray(node.transform.local).flatten()],
            },
        }
        if node.camera is not None:
            data["camera"] = {
                "znear": node.camera.znear,
                "zfar": node.camera.zfar,
                "fov": node.camera.fov,
                "is_orthographic": node.camera.is_orthographic,
            }
        if node.light is not None:
            data["light"] = {
                "type": node.light.type.value,
                "radius": node.light.radius,
                "diffuse": list(node.light.diffuse),
            }
        if node.object is not None:
            data["object"] = {
                "model": _name_or_none(resources.models, node.object.model_ref),
                "materials": [self._material_to_json(m, resources) for m in node.object.materials],
                "material_names": list(node.object.material_names),
            }
        if node.instance is not None:
            data["instance"] = {"name": node.instance}
        return data

    def _material_to_json(self, material, resources):
        return {
            "program": resources.programs.name(material.program),
            "values": {k: [float(c) for c in v] for k, v in material.values.items()},
            "textures": {
                slot: {"name": resources.textures.name(t.texture), "stage": t.stage}
                for slot, t in material.textures.items()
            },
            "blend_mode": material.blend_mode.value,
            "face_culling": material.face_culling.value,
        }
