#!/usr/bin/env python3
"""
Mesh Utilities Module
Normal and tangent frame computation on engine geometries.

Engine polygons are stored with the winding flipped relative to the source,
so polygon normals are computed against the flipped order to keep them
pointing the same way as the authored normals.

Every step works on whole per-polygon-vertex ("corner") arrays at once.
"""

import numpy as np

DEFAULT_SMOOTHING_ANGLE = np.radians(45.0)


def _normalize_rows(v, fallback=None):
    """Unit rows of v; degenerate rows take the fallback row (or zero)"""
    length = np.linalg.norm(v, axis=1)
    ok = length >= 1e-12
    if fallback is None:
        out = np.zeros_like(v, dtype=np.float64)
    else:
        out = np.array(fallback, dtype=np.float64, copy=True)
    out[ok] = v[ok] / length[ok, None]
    return out


def corner_topology(geo):
    """Per-corner polygon index and previous/next corner in the same polygon

    Returns:
        tuple: (polygon index, previous corner, next corner), each (M,) int64
    """
    counts = np.asarray(geo.pol, dtype=np.int64)
    offsets = geo.polygon_offsets()
    corner_count = int(counts.sum()) if len(counts) else 0

    polygon = np.repeat(np.arange(len(counts)), counts)
    first = np.repeat(offsets, counts)
    size = np.repeat(counts, counts)
    local = np.arange(corner_count, dtype=np.int64) - first
    prev = first + (local - 1) % size
    nxt = first + (local + 1) % size
    return polygon, prev, nxt


def compute_corner_pairs(geo):
    """Every (corner, corner) pair referencing the same point

    Corners are sorted by point index so each point's corners form one
    contiguous group; every corner is then paired with its whole group.

    Returns:
        tuple: (rows, cols) int64 corner indices
    """
    binding = np.asarray(geo.binding, dtype=np.int64)
    order = np.argsort(binding, kind="stable")
    sorted_points = binding[order]
    starts = np.searchsorted(sorted_points, sorted_points, side="left")
    sizes = np.searchsorted(sorted_points, sorted_points, side="right") - starts

    rows = np.repeat(order, sizes)
    group_first = np.repeat(starts, sizes)
    local = np.arange(len(rows), dtype=np.int64) - np.repeat(np.cumsum(sizes) - sizes, sizes)
    cols = order[group_first + local]
    return rows, cols


def compute_polygon_normals(geo, topology=None):
    """Compute one unit normal per polygon (Newell's method)

    Returns:
        np.ndarray: (P, 3) polygon normals
    """
    polygon, _, nxt = topology if topology is not None else corner_topology(geo)
    pts = np.asarray(geo.vtx, dtype=np.float64)[np.asarray(geo.binding, dtype=np.int64)]
    normals = np.zeros((len(geo.pol), 3))
    # engine order is the reverse of the source order
    np.add.at(normals, polygon, -np.cross(pts, pts[nxt]))
    return _normalize_rows(normals)


def compute_corner_angles(geo, topology=None):
    """Interior angle of every polygon-vertex, used as a normal weight"""
    _, prev, nxt = topology if topology is not None else corner_topology(geo)
    pts = np.asarray(geo.vtx, dtype=np.float64)[np.asarray(geo.binding, dtype=np.int64)]
    a = _normalize_rows(pts[prev] - pts)
    b = _normalize_rows(pts[nxt] - pts)
    return np.arccos(np.clip(np.sum(a * b, axis=1), -1.0, 1.0))


def _smooth(pairs, polygon, pol_normals, values, weights, max_smoothing_angle):
    """Average per-polygon-vertex values across polygons sharing a point

    Only polygons whose normal is within max_smoothing_angle of the current
    polygon contribute, so hard edges stay hard.
    """
    rows, cols = pairs
    cos_limit = np.cos(max_smoothing_angle) - 1e-6
    facing = np.sum(pol_normals[polygon[rows]] * pol_normals[polygon[cols]], axis=1) >= cos_limit
    rows, cols = rows[facing], cols[facing]

    out = np.zeros((len(values), 3))
    np.add.at(out, rows, values[cols] * weights[cols, None])
    return out


def compute_vertex_normals(geo, pairs=None, max_smoothing_angle=DEFAULT_SMOOTHING_ANGLE):
    """Compute angle-weighted per-polygon-vertex normals

    Args:
        geo: Geometry
        pairs: Optional precomputed compute_corner_pairs() result
        max_smoothing_angle: Sharp edge threshold in radians

    Returns:
        np.ndarray: (M, 3) float32 normals
    """
    if pairs is None:
        pairs = compute_corner_pairs(geo)
    topology = corner_topology(geo)
    polygon = topology[0]
    pol_normals = compute_polygon_normals(geo, topology)
    per_corner = pol_normals[polygon]
    weights = compute_corner_angles(geo, topology)

    smoothed = _smooth(pairs, polygon, pol_normals, per_corner, weights, max_smoothing_angle)
    return _normalize_rows(smoothed, fallback=per_corner).reshape(-1, 3).astype(np.float32)


def _polygon_tangents(geo, uv):
    """Raw tangent and binormal of each polygon from its first triangle"""
    counts = np.asarray(geo.pol, dtype=np.int64)
    tangents = np.zeros((len(counts), 3))
    binormals = np.zeros((len(counts), 3))

    valid = np.flatnonzero(counts >= 3)
    i0 = geo.polygon_offsets()[valid]
    i1, i2 = i0 + 1, i0 + 2
    binding = np.asarray(geo.binding, dtype=np.int64)
    vtx = np.asarray(geo.vtx, dtype=np.float64)

    p0, p1, p2 = vtx[binding[i0]], vtx[binding[i1]], vtx[binding[i2]]
    e1, e2 = p1 - p0, p2 - p0
    d1, d2 = uv[i1] - uv[i0], uv[i2] - uv[i0]
    det = d1[:, 0] * d2[:, 1] - d2[:, 0] * d1[:, 1]

    ok = np.abs(det) >= 1e-12
    r = 1.0 / det[ok]
    e1, e2, d1, d2 = e1[ok], e2[ok], d1[ok], d2[ok]
    tangents[valid[ok]] = (e1 * d2[:, 1:2] - e2 * d1[:, 1:2]) * r[:, None]
    binormals[valid[ok]] = (e2 * d1[:, 0:1] - e1 * d2[:, 0:1]) * r[:, None]
    return tangents, binormals


def compute_vertex_tangents(geo, normals, uv_index=0, max_smoothing_angle=DEFAULT_SMOOTHING_ANGLE):
    """Compute per-polygon-vertex tangent frames from a UV set

    Args:
        geo: Geometry with at least one UV set
        normals: (M, 3) normals the frames are orthogonalized against
        uv_index: UV set to derive the frames from
        max_smoothing_angle: Sharp edge threshold in radians

    Returns:
        tuple: ((M, 3) tangents, (M, 3) binormals) as float32
    """
    uv = np.asarray(geo.uv[uv_index], dtype=np.float64)
    normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    pairs = compute_corner_pairs(geo)
    topology = corner_topology(geo)
    polygon = topology[0]
    pol_normals = compute_polygon_normals(geo, topology)
    pol_t, pol_b = _polygon_tangents(geo, uv)

    ones = np.ones(len(polygon))
    t_acc = _smooth(pairs, polygon, pol_normals, pol_t[polygon], ones, max_smoothing_angle)
    b_acc = _smooth(pairs, polygon, pol_normals, pol_b[polygon], ones, max_smoothing_angle)

    t = t_acc - normals * np.sum(normals * t_acc, axis=1)[:, None]
    # no usable UV gradient: any direction orthogonal to the normal
    axis = np.where((np.abs(normals[:, 0]) < 0.9)[:, None], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    degenerate = np.linalg.norm(t, axis=1) < 1e-12
    t[degenerate] = np.cross(axis[degenerate], normals[degenerate])

    tangents = _normalize_rows(t)
    binormals = np.cross(normals, tangents)
    flip = np.sum(binormals * b_acc, axis=1) < 0.0
    binormals[flip] = -binormals[flip]
    return tangents.astype(np.float32), binormals.astype(np.float32)
