#!/usr/bin/env python3
"""
Tests for the pxr-backed source stage
"""

import numpy as np
import pytest

pytest.importorskip("pxr")

from pxr import Gf, Sdf, Usd, UsdGeom, UsdShade  # noqa: E402

from core.config import Config  # noqa: E402
from readers import create_reader, is_supported_format  # noqa: E402
from readers.base_reader import AssetPath, NodeKind  # noqa: E402
from readers.usd_reader import USDPrimWrapper, USDStageWrapper  # noqa: E402
from usd_converter import USDToHarfangConverter  # noqa: E402


def _build(stage):
    UsdGeom.SetStageUpAxis(stage, UsdGeom.Tokens.z)
    UsdGeom.SetStageMetersPerUnit(stage, 0.01)

    UsdGeom.Xform.Define(stage, "/World")
    mesh = UsdGeom.Mesh.Define(stage, "/World/Quad")
    mesh.CreatePointsAttr([(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)])
    mesh.CreateFaceVertexCountsAttr([4])
    mesh.CreateFaceVertexIndicesAttr([0, 1, 2, 3])
    mesh.AddTranslateOp().Set(Gf.Vec3d(1, 2, 3))

    material = UsdShade.Material.Define(stage, "/World/Looks/Mat")
    surface = UsdShade.Shader.Define(stage, "/World/Looks/Mat/Surface")
    surface.CreateIdAttr("UsdPreviewSurface")
    surface.CreateInput("roughness", Sdf.ValueTypeNames.Float).Set(0.25)
    texture = UsdShade.Shader.Define(stage, "/World/Looks/Mat/Tex")
    texture.CreateIdAttr("UsdUVTexture")
    texture.CreateInput("file", Sdf.ValueTypeNames.Asset).Set("./tex/albedo.png")
    rgb = texture.CreateOutput("rgb", Sdf.ValueTypeNames.Float3)
    surface.CreateInput("diffuseColor", Sdf.ValueTypeNames.Color3f).ConnectToSource(rgb)
    material.CreateSurfaceOutput().ConnectToSource(surface.CreateOutput("surface", Sdf.ValueTypeNames.Token))
    UsdShade.MaterialBindingAPI.Apply(mesh.GetPrim()).Bind(material)
    return stage


@pytest.fixture
def stage():
    return USDStageWrapper(_build(Usd.Stage.CreateInMemory()))


def _node(stage, path):
    return USDPrimWrapper(stage.stage.GetPrimAtPath(path), stage)


def test_stage_metrics(stage):
    assert stage.meters_per_unit == pytest.approx(0.01)
    assert stage.up_axis == "Z"
    assert [n.name for n in stage.root_nodes()] == ["World"]


def test_traverse_all_reaches_shaders(stage):
    paths = [n.path for n in stage.traverse_all()]
    assert "/World/Looks/Mat/Tex" in paths
    assert "/World/Quad" in paths


def test_mesh_node(stage):
    quad = _node(stage, "/World/Quad")
    assert quad.kind == NodeKind.MESH
    assert quad.parent.path == "/World"
    assert np.asarray(quad.get_attribute("points")).shape == (4, 3)
    assert quad.get_attribute("faceVertexCounts").tolist() == [4]
    assert quad.get_attribute("doubleSided", False) is False
    assert quad.get_attribute("primvars:st") is None
    np.testing.assert_allclose(quad.local_transform()[3, :3], [1, 2, 3])


def test_identity(stage):
    assert _node(stage, "/World/Quad").identity == _node(stage, "/World/Quad").identity
    assert _node(stage, "/World/Quad").identity != _node(stage, "/World").identity


def test_texture_node_attributes(stage):
    tex = _node(stage, "/World/Looks/Mat/Tex")
    assert tex.kind == NodeKind.SHADER
    assert tex.get_attribute("info:id") == "UsdUVTexture"
    asset = tex.get_attribute("inputs:file")
    assert isinstance(asset, AssetPath)
    assert asset.path == "./tex/albedo.png"


def test_shader_graph(stage):
    material = _node(stage, "/World/Quad").material_binding()
    assert material.path == "/World/Looks/Mat"

    surface = material.compute_surface_shader()
    assert surface.shader_id == "UsdPreviewSurface"

    roughness = surface.get_input("roughness").resolve_value_source()
    assert roughness.shader is None
    assert roughness.value == pytest.approx(0.25)

    diffuse = surface.get_input("diffuseColor").resolve_value_source()
    assert diffuse.shader.shader_id == "UsdUVTexture"
    assert diffuse.shader.get_input("file").get().path == "./tex/albedo.png"


def test_instances_share_a_prototype():
    usd_stage = Usd.Stage.CreateInMemory()
    UsdGeom.Xform.Define(usd_stage, "/Protos/Chair")
    UsdGeom.Mesh.Define(usd_stage, "/Protos/Chair/Seat")
    for i in range(3):
        prim = usd_stage.DefinePrim(f"/Room/Chair_{i}", "Xform")
        prim.GetReferences().AddInternalReference("/Protos/Chair")
        prim.SetInstanceable(True)
    stage = USDStageWrapper(usd_stage)

    chairs = [_node(stage, f"/Room/Chair_{i}") for i in range(3)]
    assert all(c.is_instance for c in chairs)
    assert len({c.prototype.name for c in chairs}) == 1
    assert [n.name for n in chairs[0].prototype.children] == ["Seat"]
    assert any(n.name == "Seat" and n.path != "/Protos/Chair/Seat" for n in stage.traverse_all())


def test_resolve_and_fetch_asset(tmp_path):
    (tmp_path / "tex").mkdir()
    (tmp_path / "tex" / "albedo.png").write_bytes(b"PNG")
    path = tmp_path / "scene.usda"
    usd_stage = _build(Usd.Stage.CreateNew(str(path)))
    usd_stage.Save()

    stage = create_reader(str(path)).get_stage()
    resolved = stage.resolve_asset("./tex/albedo.png")
    assert resolved
    assert stage.fetch_asset(resolved) == b"PNG"
    assert stage.resolve_asset("./tex/missing.png") == ""


def test_reader_factory(tmp_path):
    assert is_supported_format("a.USDZ")
    assert not is_supported_format("a.abc")
    with pytest.raises(ValueError):
        create_reader("scene.obj")

    broken = tmp_path / "broken.usda"
    broken.write_text("this is not usd")
    with pytest.raises(ValueError):
        create_reader(str(broken))


def test_prims_referencing_one_mesh_share_geometry(tmp_path):
    asset = Usd.Stage.CreateNew(str(tmp_path / "chair.usda"))
    mesh = UsdGeom.Mesh.Define(asset, "/Chair")
    mesh.CreatePointsAttr([(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)])
    mesh.CreateFaceVertexCountsAttr([4])
    mesh.CreateFaceVertexIndicesAttr([0, 1, 2, 3])
    asset.SetDefaultPrim(mesh.GetPrim())
    asset.Save()

    room = Usd.Stage.CreateNew(str(tmp_path / "room.usda"))
    for name in ("A", "B"):
        room.DefinePrim(f"/{name}", "Mesh").GetReferences().AddReference("./chair.usda")
    room.DefinePrim("/Local", "Xform")
    room.Save()
    stage = USDStageWrapper(room)

    a, b, local = (_node(stage, path) for path in ("/A", "/B", "/Local"))
    assert a.identity == b.identity
    assert local.identity != a.identity

    out = tmp_path / "out"
    config = Config(base_output_path=str(out).replace("\\", "/"), name="room", quiet=True)
    result = USDToHarfangConverter().convert_stage(stage, config)

    assert result['success']
    assert [p.name for p in out.rglob("*.geo")] == ["A.geo"]
