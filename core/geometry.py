"""
Sector image to map geometry

A sector image is pinned to the map by four corner points. Image pixels are
mapped into that quad bilinearly; rasterising goes through a grid of triangles,
each with its own affine transform.
"""
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from config.settings import WARP_GRID_SIZE
from data_manager.schema import LotBox

Point = Tuple[float, float]
Affine = Tuple[float, float, float, float, float, float]


@dataclass
class Corners:
    """Quad corners; the API sends them as [TL, BL, BR, TR]"""
    tl: Point
    tr: Point
    bl: Point
    br: Point

    @classmethod
    def from_api(cls, coords: Sequence[Sequence[float]]) -> "Corners":
        if len(coords) != 4:
            raise ValueError(f"expected 4 corner points, got {len(coords)}")
        tl, bl, br, tr = (tuple(float(v) for v in p[:2]) for p in coords)
        return cls(tl=tl, tr=tr, bl=bl, br=br)

    def as_list(self) -> List[Point]:
        return [self.tl, self.tr, self.br, self.bl]

    def map(self, fn) -> "Corners":
        return Corners(tl=fn(self.tl), tr=fn(self.tr), bl=fn(self.bl), br=fn(self.br))


@dataclass
class TriangleWarp:
    src: Tuple[Point, Point, Point]
    dst: Tuple[Point, Point, Point]
    affine: Optional[Affine]


@dataclass
class WarpCell:
    row: int
    col: int
    triangles: Tuple[TriangleWarp, TriangleWarp]


def bilinear_point(s: float, t: float, tl: Point, tr: Point, bl: Point, br: Point) -> Point:
    p = (
        np.asarray(tl, dtype=float) * (1 - s) * (1 - t)
        + np.asarray(tr, dtype=float) * s * (1 - t)
        + np.asarray(bl, dtype=float) * (1 - s) * t
        + np.asarray(br, dtype=float) * s * t
    )
    return float(p[0]), float(p[1])


def pixel_to_latlng(px: float, py: float, corners: Corners, image_size: Tuple[int, int]) -> Point:
    width, height = image_size
    if width <= 0 or height <= 0:
        raise ValueError("image size must be positive")
    return bilinear_point(px / width, py / height, corners.tl, corners.tr, corners.bl, corners.br)


def affine_from_triangles(src: Sequence[Point], dst: Sequence[Point]) -> Optional[Affine]:
    """
    Solve x' = a*x + c*y + e, y' = b*x + d*y + f for three point pairs.
    Returns None for a degenerate (collinear) source triangle.
    """
    (sx0, sy0), (sx1, sy1), (sx2, sy2) = src
    (dx0, dy0), (dx1, dy1), (dx2, dy2) = dst
    denom = sx0 * (sy2 - sy1) + sx1 * (sy0 - sy2) + sx2 * (sy1 - sy0)
    if denom == 0:
        return None
    a = (dx0 * (sy2 - sy1) + dx1 * (sy0 - sy2) + dx2 * (sy1 - sy0)) / denom
    b = (dy0 * (sy2 - sy1) + dy1 * (sy0 - sy2) + dy2 * (sy1 - sy0)) / denom
    c = (dx0 * (sx1 - sx2) + dx1 * (sx2 - sx0) + dx2 * (sx0 - sx1)) / denom
    d = (dy0 * (sx1 - sx2) + dy1 * (sx2 - sx0) + dy2 * (sx0 - sx1)) / denom
    e = (dx0 * (sx2 * sy1 - sx1 * sy2) + dx1 * (sx0 * sy2 - sx2 * sy0) + dx2 * (sx1 * sy0 - sx0 * sy1)) / denom
    f = (dy0 * (sx2 * sy1 - sx1 * sy2) + dy1 * (sx0 * sy2 - sx2 * sy0) + dy2 * (sx1 * sy0 - sx0 * sy1)) / denom
    return a, b, c, d, e, f


def apply_affine(affine: Affine, point: Point) -> Point:
    a, b, c, d, e, f = affine
    x, y = point
    return a * x + c * y + e, b * x + d * y + f


def invert_affine(affine: Affine) -> Optional[Affine]:
    a, b, c, d, e, f = affine
    m = np.array([[a, c, e], [b, d, f], [0.0, 0.0, 1.0]])
    if abs(np.linalg.det(m)) < 1e-12:
        return None
    inv = np.linalg.inv(m)
    return float(inv[0, 0]), float(inv[1, 0]), float(inv[0, 1]), float(inv[1, 1]), float(inv[0, 2]), float(inv[1, 2])


def warp_grid(
    image_size: Tuple[int, int],
    dest: Corners,
    cols: int = WARP_GRID_SIZE,
    rows: int = WARP_GRID_SIZE,
) -> Iterator[WarpCell]:
    """Split the image into cols x rows cells, two triangles each: (00,10,11) and (00,11,01)"""
    width, height = image_size
    for r in range(rows):
        t0, t1 = r / rows, (r + 1) / rows
        for c in range(cols):
            s0, s1 = c / cols, (c + 1) / cols
            src00, src10 = (s0 * width, t0 * height), (s1 * width, t0 * height)
            src01, src11 = (s0 * width, t1 * height), (s1 * width, t1 * height)
            dst00 = bilinear_point(s0, t0, dest.tl, dest.tr, dest.bl, dest.br)
            dst10 = bilinear_point(s1, t0, dest.tl, dest.tr, dest.bl, dest.br)
            dst01 = bilinear_point(s0, t1, dest.tl, dest.tr, dest.bl, dest.br)
            dst11 = bilinear_point(s1, t1, dest.tl, dest.tr, dest.bl, dest.br)
            upper = TriangleWarp(
                src=(src00, src10, src11),
                dst=(dst00, dst10, dst11),
                affine=affine_from_triangles((src00, src10, src11), (dst00, dst10, dst11)),
            )
            lower = TriangleWarp(
                src=(src00, src11, src01),
                dst=(dst00, dst11, dst01),
                affine=affine_from_triangles((src00, src11, src01), (dst00, dst11, dst01)),
            )
            yield WarpCell(row=r, col=c, triangles=(upper, lower))


def lot_polygon(box: LotBox, image_size: Tuple[int, int], dest: Corners) -> List[Point]:
    """Warped corners of a lot box, clockwise from its top-left"""
    width, height = image_size
    pts = [
        (box.x, box.y),
        (box.x + box.width, box.y),
        (box.x + box.width, box.y + box.height),
        (box.x, box.y + box.height),
    ]
    return [bilinear_point(x / width, y / height, dest.tl, dest.tr, dest.bl, dest.br) for x, y in pts]


def lot_center(box: LotBox, image_size: Tuple[int, int], dest: Corners) -> Point:
    return pixel_to_latlng(box.x + box.width / 2, box.y + box.height / 2, dest, image_size)


def bounding_box(points: Sequence[Point]) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y)"""
    arr = np.asarray(points, dtype=float)
    return float(arr[:, 0].min()), float(arr[:, 1].min()), float(arr[:, 0].max()), float(arr[:, 1].max())


def segment_thirds(a: Point, b: Point) -> Tuple[Point, Point]:
    """Points one third and two thirds of the way from a to b"""
    pa, pb = np.asarray(a, dtype=float), np.asarray(b, dtype=float)
    m1 = (2 * pa + pb) / 3
    m2 = (pa + 2 * pb) / 3
    return (float(m1[0]), float(m1[1])), (float(m2[0]), float(m2[1]))
