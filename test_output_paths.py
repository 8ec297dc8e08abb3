#!/usr/bin/env python3
"""
Tests for output path resolution and import policies
"""

import pytest

from core.config import ImportPolicy
from core.output_paths import (
    OutputDirectoryError,
    RENAME_ATTEMPTS,
    clean_path,
    combine_name,
    make_relative_resource_name,
    prepare_output_directory,
    resolve_output_path,
    split_asset_name,
)


def _base(tmp_path):
    return str(tmp_path).replace("\\", "/")


def test_clean_path():
    assert clean_path("a//b\\c/../d") == "a/b/d"
    assert clean_path("") == ""


def test_combine_name():
    assert combine_name("pre", "name") == "pre-name"
    assert combine_name("", "name") == "name"
    assert combine_name("pre", "") == "pre"


def test_empty_base_dir_gives_no_path():
    assert resolve_output_path("", "cube", "", "geo", ImportPolicy.OVERWRITE) == (None, False)


def test_skip_existing(tmp_path):
    base = _base(tmp_path)
    path, should_write = resolve_output_path(base, "cube", "", "geo", ImportPolicy.SKIP_EXISTING)
    assert path == f"{base}/cube.geo"
    assert should_write

    (tmp_path / "cube.geo").write_bytes(b"x")
    path, should_write = resolve_output_path(base, "cube", "", "geo", ImportPolicy.SKIP_EXISTING)
    assert path == f"{base}/cube.geo"
    assert not should_write


def test_overwrite_always_writes(tmp_path):
    (tmp_path / "cube.geo").write_bytes(b"x")
    path, should_write = resolve_output_path(_base(tmp_path), "cube", "", "geo", ImportPolicy.OVERWRITE)
    assert path.endswith("/cube.geo")
    assert should_write


def test_skip_always_returns_overwrite_path(tmp_path):
    base = _base(tmp_path)
    for exists in (False, True):
        if exists:
            (tmp_path / "World" / "cube.geo").write_bytes(b"x")
        skip_path, skip_write = resolve_output_path(base, "/World/cube", "", "geo", ImportPolicy.SKIP_ALWAYS)
        over_path, over_write = resolve_output_path(base, "/World/cube", "", "geo", ImportPolicy.OVERWRITE)
        assert skip_path == over_path
        assert not skip_write
        assert over_write


def test_parent_directory_created(tmp_path):
    path, _ = resolve_output_path(_base(tmp_path), "/World/Sub/mesh", "", "geo", ImportPolicy.SKIP_EXISTING)
    assert (tmp_path / "World" / "Sub").is_dir()
    assert path == f"{_base(tmp_path)}/World/Sub/mesh.geo"


def test_rename_probes_numbered_names(tmp_path):
    base = _base(tmp_path)
    path, should_write = resolve_output_path(base, "scene", "", "scn", ImportPolicy.RENAME)
    assert path == f"{base}/scene.scn"
    assert should_write

    (tmp_path / "scene.scn").write_text("{}")
    (tmp_path / "scene-0000.scn").write_text("{}")
    path, should_write = resolve_output_path(base, "scene", "", "scn", ImportPolicy.RENAME)
    assert path == f"{base}/scene-0001.scn"
    assert should_write


def test_rename_terminates_when_every_name_is_taken(tmp_path):
    base = _base(tmp_path)
    (tmp_path / "t.scn").write_text("")
    for n in range(RENAME_ATTEMPTS):
        (tmp_path / f"t-{n:04d}.scn").write_text("")

    first = resolve_output_path(base, "t", "", "scn", ImportPolicy.RENAME)
    second = resolve_output_path(base, "t", "", "scn", ImportPolicy.RENAME)
    assert first == second
    assert first[0] == f"{base}/t-{RENAME_ATTEMPTS - 1:04d}.scn"


def test_prefix_joined_to_name(tmp_path):
    path, _ = resolve_output_path(_base(tmp_path), "cube", "lod0", "geo", ImportPolicy.OVERWRITE)
    assert path.endswith("/lod0-cube.geo")


def test_make_relative_resource_name():
    assert make_relative_resource_name("Project/Assets/cube.geo", "project/assets", "") == "cube.geo"
    assert make_relative_resource_name("project/assets/cube.geo", "project/assets", "pkg") == "pkg/cube.geo"
    assert make_relative_resource_name("other/cube.geo", "project/assets", "pkg") == "other/cube.geo"


def test_split_asset_name():
    assert split_asset_name("./tex/wood_<UDIM>.png") == ("wood_<UDIM>", "png")
    assert split_asset_name("C:\\tex\\albedo.jpg") == ("albedo", "jpg")


def test_prepare_output_directory(tmp_path):
    out = tmp_path / "out"
    prepare_output_directory(str(out))
    assert (out / "Textures").is_dir()


def test_prepare_output_directory_rejects_files(tmp_path):
    target = tmp_path / "file.txt"
    target.write_text("")
    with pytest.raises(OutputDirectoryError):
        prepare_output_directory(str(target))
    with pytest.raises(OutputDirectoryError):
        prepare_output_directory("")
