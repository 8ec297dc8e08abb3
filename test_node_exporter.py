#!/usr/bin/env python3
"""
Tests for the node traversal: dispatch, transforms, geometry sharing, instancing
"""

import math

import numpy as np

from core.scene_data import LightType, Scene
from exporters.node_exporter import SPHERE_MODEL, NodeExporter, to_engine_matrix
from scene_fakes import FakeNode, FakeStage, make_context, make_cube


def _translation(x, y, z):
    m = np.identity(4)
    m[3, :3] = [x, y, z]
    return m


def _export(tmp_path, stage, **config_values):
    context = make_context(tmp_path, **config_values)
    scene = NodeExporter(context).export(stage, Scene())
    return scene, context


def test_to_engine_matrix():
    m = to_engine_matrix(_translation(1, 2, 3), 0.01)
    np.testing.assert_allclose(m[:3, 3], [0.01, 0.02, 0.03])
    np.testing.assert_allclose(m[3], [0, 0, 0, 1])


def test_hierarchy_and_data_only_nodes(tmp_path):
    world = FakeNode("World", children=[
        FakeNode("Child", transform=_translation(0, 1, 0)),
        FakeNode("Looks", "Material"),
        FakeNode("Surface", "Shader"),
    ])
    scene, _ = _export(tmp_path, FakeStage([world]))

    assert [n.name for n in scene.nodes] == ["World", "Child"]
    child = scene.get_node_by_name("Child")
    assert child.transform.parent == 0
    np.testing.assert_allclose(child.transform.local[:3, 3], [0, 1, 0])


def test_root_geometry_scale(tmp_path):
    scene, _ = _export(tmp_path, FakeStage([FakeNode("Root")]), geometry_scale=2.0)
    np.testing.assert_allclose(np.diag(scene.nodes[0].transform.local), [2, 2, 2, 1])


def test_z_up_root_is_rotated_to_y_up(tmp_path):
    root = FakeNode("Root", transform=_translation(1, 2, 3))
    root.add_child(FakeNode("Child", transform=_translation(1, 2, 3)))
    scene, _ = _export(tmp_path, FakeStage([root], up_axis="Z"))

    np.testing.assert_allclose(scene.nodes[0].transform.local[:3, 3], [1, 3, 2])
    # only roots are corrected
    np.testing.assert_allclose(scene.nodes[1].transform.local[:3, 3], [1, 2, 3])


def test_same_identity_shares_one_object(tmp_path):
    first = make_cube("A", identity="shared")
    second = make_cube("B", identity="shared")
    scene, context = _export(tmp_path, FakeStage([first, second]))

    a, b = scene.get_node_by_name("A"), scene.get_node_by_name("B")
    assert a.object is b.object
    assert len(context.writer.geometries) == 1
    assert len(context.geometry_cache) == 1


def test_mesh_geometry_written_under_prim_path(tmp_path):
    world = FakeNode("World", children=[make_cube("Cube")])
    scene, context = _export(tmp_path, FakeStage([world]))

    assert (tmp_path / "out" / "World" / "Cube.geo").is_file()
    obj = scene.get_node_by_name("Cube").object
    assert context.resources.models.name(obj.model_ref).endswith("/World/Cube.geo")
    assert obj.material_names == ["dummy_mat"]


def test_subset_clears_parent_object(tmp_path):
    cube = make_cube("Cube")
    cube.add_child(FakeNode("front", "GeomSubset", attributes={"indices": np.array([0])}))
    cube.add_child(FakeNode("rest", "GeomSubset", attributes={"indices": np.array([1, 2, 3, 4, 5])}))
    scene, context = _export(tmp_path, FakeStage([cube]))

    assert scene.get_node_by_name("Cube").object is None
    assert scene.get_node_by_name("front").object is not None
    assert scene.get_node_by_name("rest").object is not None
    geometries = {path.rsplit("/", 1)[-1]: geo for path, geo in context.writer.geometries}
    assert geometries["front.geo"].polygon_count == 1
    assert geometries["rest.geo"].polygon_count == 5


def test_camera(tmp_path):
    camera = FakeNode("Cam", "Camera", attributes={
        "clippingRange": np.array([0.1, 500.0]),
        "focalLength": 50.0,
        "verticalAperture": 20.0,
    })
    ortho = FakeNode("Ortho", "Camera", attributes={"projection": "orthographic"})
    scene, _ = _export(tmp_path, FakeStage([camera, ortho]))

    cam = scene.get_node_by_name("Cam")
    assert math.isclose(cam.camera.znear, 0.1, rel_tol=1e-6)
    assert cam.camera.zfar == 500.0
    assert math.isclose(cam.camera.fov, 2.0 * math.atan(20.0 / 100.0))
    assert not cam.camera.is_orthographic
    np.testing.assert_allclose(cam.transform.local, np.diag([1.0, 1.0, -1.0, 1.0]), atol=1e-12)

    assert scene.get_node_by_name("Ortho").camera.is_orthographic


def test_lights(tmp_path):
    stage = FakeStage([
        FakeNode("Bulb", "SphereLight", attributes={"inputs:radius": 0.25, "inputs:color": np.array([1.0, 0.5, 0.0])}),
        FakeNode("Sun", "DistantLight", attributes={"inputs:angle": 1.5}),
        FakeNode("Sky", "DomeLight", attributes={"inputs:color": np.array([0.1, 0.2, 0.3])}),
    ])
    scene, _ = _export(tmp_path, stage)

    bulb = scene.get_node_by_name("Bulb").light
    assert bulb.type == LightType.POINT
    assert bulb.radius == 0.25
    assert bulb.diffuse == (1.0, 0.5, 0.0)

    sun = scene.get_node_by_name("Sun").light
    assert sun.type == LightType.SPOT
    assert sun.radius == 1.5

    sky = scene.get_node_by_name("Sky").light
    assert sky.diffuse == (0.1, 0.2, 0.3)


def test_sphere_uses_builtin_model(tmp_path):
    sphere = FakeNode("Ball", "Sphere", attributes={"radius": 2.0})
    scene, context = _export(tmp_path, FakeStage([sphere], meters_per_unit=0.5))

    node = scene.get_node_by_name("Ball")
    assert context.resources.models.name(node.object.model_ref) == SPHERE_MODEL
    np.testing.assert_allclose(np.diag(node.transform.local), [1, 1, 1, 1])
    assert context.writer.geometries == []


def test_instances_share_one_prototype_scene(tmp_path):
    chair = FakeNode("Chair", children=[make_cube("Seat")])
    instances = [FakeNode(f"Chair_{i}", prototype=chair) for i in range(3)]
    room = FakeNode("Room", children=instances)
    scene, context = _export(tmp_path, FakeStage([room], prototypes=[chair]))

    scene_files = [path for path, _ in context.writer.scenes]
    assert len(scene_files) == 1
    assert scene_files[0].endswith("/Chair.scn")
    assert (tmp_path / "out" / "Chair.scn").is_file()

    refs = [scene.get_node_by_name(f"Chair_{i}").instance for i in range(3)]
    assert refs[0] == refs[1] == refs[2] == context.prototype_cache.get("Chair")
    # prototype content lives in the sub-scene only
    assert scene.get_node_by_name("Seat") is None
    _, sub_scene = context.writer.scenes[0]
    assert [n.name for n in sub_scene.nodes] == ["Chair", "Seat"]


def test_self_instancing_prototype_is_cut(tmp_path):
    loop = FakeNode("Loop")
    loop.add_child(FakeNode("Again", prototype=loop))
    instance = FakeNode("Start", prototype=loop)
    scene, context = _export(tmp_path, FakeStage([instance], prototypes=[loop]))

    assert context.log.error_count == 1
    assert scene.get_node_by_name("Start").instance.endswith("Loop.scn")
    _, sub_scene = context.writer.scenes[0]
    assert sub_scene.get_node_by_name("Again").instance is None
