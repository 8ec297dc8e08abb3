#!/usr/bin/env python3
"""
Tests for mesh to engine geometry conversion
"""

import numpy as np

from exporters.geometry_exporter import GeometryExporter, expand_primvar, winding_flip_remap
from scene_fakes import FakeNode, FakeStage, make_context, make_cube, make_quad


def _exporter(tmp_path, **config_values):
    context = make_context(tmp_path, **config_values)
    return GeometryExporter(context), context


def test_winding_flip_remap():
    remap = winding_flip_remap([3, 4])
    assert remap.tolist() == [2, 1, 0, 6, 5, 4, 3]


def test_winding_flip_is_an_involution():
    remap = winding_flip_remap([3, 4, 5, 3])
    assert remap[remap].tolist() == list(range(15))


def test_expand_primvar():
    values = np.array([[0.0, 0.0], [1.0, 1.0]])
    assert expand_primvar(values, np.array([1, 0, 1])).tolist() == [[1, 1], [0, 0], [1, 1]]
    assert expand_primvar(values, None).tolist() == values.tolist()


def test_polygons_are_flipped_once(tmp_path):
    exporter, _ = _exporter(tmp_path)
    quad = make_quad()
    FakeStage([quad])

    geo = exporter.export(quad)
    assert geo.pol.tolist() == [4]
    assert geo.binding.tolist() == [3, 2, 1, 0]
    assert len(geo.pol_material) == 1


def test_points_are_converted_to_meters(tmp_path):
    exporter, _ = _exporter(tmp_path)
    quad = make_quad()
    FakeStage([quad], meters_per_unit=0.01)

    geo = exporter.export(quad)
    np.testing.assert_allclose(geo.vtx[2], [0.01, 0.01, 0.0], rtol=1e-6)


def test_per_point_normals_follow_the_binding(tmp_path):
    exporter, _ = _exporter(tmp_path)
    normals = np.array([[0, 0, 1], [0, 1, 0], [1, 0, 0], [0, 0, -1]], dtype=np.float64)
    quad = make_quad(attributes={"normals": normals})
    FakeStage([quad])

    geo = exporter.export(quad)
    np.testing.assert_allclose(geo.normal, normals[[3, 2, 1, 0]])


def test_face_varying_normals_follow_the_remap(tmp_path):
    exporter, _ = _exporter(tmp_path)
    normals = np.array([[0, 0, 1], [0, 1, 0], [1, 0, 0], [0, 0, -1], [0, 1, 0], [1, 0, 0]], dtype=np.float64)
    mesh = FakeNode("Tris", "Mesh", attributes={
        "points": np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=np.float64),
        "faceVertexCounts": np.array([3, 3]),
        "faceVertexIndices": np.array([0, 1, 2, 1, 3, 2]),
        "normals": normals,
    })
    FakeStage([mesh])

    geo = exporter.export(mesh)
    assert geo.binding.tolist() == [2, 1, 0, 2, 3, 1]
    np.testing.assert_allclose(geo.normal, normals[[2, 1, 0, 5, 4, 3]])


def test_uv_v_is_flipped(tmp_path):
    exporter, _ = _exporter(tmp_path)
    uv = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.25], [0.0, 0.25]])
    quad = make_quad(attributes={"primvars:st": uv})
    FakeStage([quad])

    geo = exporter.export(quad, uv_names={"st"})
    assert len(geo.uv) == 1
    np.testing.assert_allclose(geo.uv[0], [[0.0, 0.75], [1.0, 0.75], [1.0, 1.0], [0.0, 1.0]])


def test_indexed_uv_primvar(tmp_path):
    exporter, _ = _exporter(tmp_path)
    quad = make_quad(attributes={
        "primvars:uvmap": np.array([[0.0, 0.0], [1.0, 1.0]]),
        "primvars:uvmap:indices": np.array([0, 1, 1, 0]),
    })
    FakeStage([quad])

    geo = exporter.export(quad, uv_names={"uvmap"})
    np.testing.assert_allclose(geo.uv[0], [[0.0, 1.0], [1.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


def test_missing_uv_primvar_is_skipped(tmp_path):
    exporter, context = _exporter(tmp_path)
    quad = make_quad()
    FakeStage([quad])

    geo = exporter.export(quad, uv_names={"st1"})
    assert geo.uv == []
    assert context.log.error_count == 1


def test_subset_filtering(tmp_path):
    exporter, _ = _exporter(tmp_path)
    uv = np.zeros((24, 2))
    cube = make_cube(attributes={"primvars:st": uv})
    subset = cube.add_child(FakeNode("back", "GeomSubset", attributes={"indices": np.array([1, 4])}))
    FakeStage([cube])

    full = exporter.export(cube, uv_names={"st"})
    geo = exporter.export(cube, subset, uv_names={"st"})

    assert geo.polygon_count == 2
    assert int(geo.pol.sum()) == 8
    assert len(geo.binding) == 8
    assert len(geo.normal) == 8
    assert len(geo.uv[0]) == 8
    offsets = full.polygon_offsets()
    expected = np.concatenate([full.binding[offsets[1]:offsets[1] + 4], full.binding[offsets[4]:offsets[4] + 4]])
    assert geo.binding.tolist() == expected.tolist()
    assert len(geo.vtx) == len(full.vtx)


def test_inconsistent_topology_is_reported(tmp_path):
    exporter, context = _exporter(tmp_path)
    mesh = make_quad(attributes={"faceVertexIndices": np.array([0, 1, 2])})
    FakeStage([mesh])

    geo = exporter.export(mesh)
    assert geo.polygon_count == 0
    assert context.log.error_count == 1


def test_normals_computed_when_missing(tmp_path):
    exporter, _ = _exporter(tmp_path)
    quad = make_quad()
    FakeStage([quad])

    geo = exporter.export(quad)
    assert len(geo.normal) == len(geo.binding)
    np.testing.assert_allclose(geo.normal, np.tile([0.0, 0.0, 1.0], (4, 1)), atol=1e-6)


def test_authored_normals_kept_unless_forced(tmp_path):
    normals = np.tile([0.0, 1.0, 0.0], (4, 1))
    quad = make_quad(attributes={"normals": normals})
    FakeStage([quad])

    exporter, _ = _exporter(tmp_path)
    np.testing.assert_allclose(exporter.export(quad).normal, normals)

    exporter, _ = _exporter(tmp_path, recalculate_normal=True)
    np.testing.assert_allclose(exporter.export(quad).normal, np.tile([0.0, 0.0, 1.0], (4, 1)), atol=1e-6)


def test_tangents_need_a_uv_set(tmp_path):
    exporter, _ = _exporter(tmp_path)
    quad = make_quad()
    FakeStage([quad])
    assert len(exporter.export(quad).tangent) == 0

    uv = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    quad = make_quad(attributes={"primvars:st": uv})
    FakeStage([quad])
    geo = exporter.export(quad, uv_names={"st"})

    assert len(geo.tangent) == len(geo.normal) == len(geo.binormal)
    np.testing.assert_allclose(geo.tangent, np.tile([1.0, 0.0, 0.0], (4, 1)), atol=1e-6)
    np.testing.assert_allclose(np.sum(geo.tangent * geo.normal, axis=1), 0.0, atol=1e-6)
