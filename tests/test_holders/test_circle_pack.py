"""Tests for front-chain sibling packing."""

import math

from src.holders.circle_pack import Circle, bounding_box, pack_siblings


def _overlaps(circles: list[Circle], tol: float = 1e-4) -> list[tuple[int, int]]:
    bad = []
    for i, a in enumerate(circles):
        for j in range(i + 1, len(circles)):
            b = circles[j]
            if math.hypot(a.x - b.x, a.y - b.y) < a.r + b.r - tol:
                bad.append((i, j))
    return bad


class TestPackSiblings:
    def test_empty_and_single(self) -> None:
        pack_siblings([])
        one = [Circle(r=5)]
        pack_siblings(one)
        assert (one[0].x, one[0].y) == (0.0, 0.0)

    def test_two_circles_touch(self) -> None:
        circles = [Circle(r=10), Circle(r=4)]
        pack_siblings(circles)
        d = math.hypot(circles[0].x - circles[1].x, circles[0].y - circles[1].y)
        assert math.isclose(d, 14)

    def test_no_overlap_mixed_sizes(self) -> None:
        radii = sorted((8 + (i * 37 % 48) for i in range(60)), reverse=True)
        circles = [Circle(r=r) for r in radii]
        pack_siblings(circles)
        assert _overlaps(circles) == []

    def test_equal_circles_no_overlap(self) -> None:
        circles = [Circle(r=10) for _ in range(40)]
        pack_siblings(circles)
        assert _overlaps(circles) == []

    def test_recentred_on_bounding_box(self) -> None:
        circles = [Circle(r=r) for r in (30, 20, 20, 10, 5)]
        pack_siblings(circles)
        min_x, min_y, max_x, max_y = bounding_box(circles)
        assert math.isclose(min_x + max_x, 0, abs_tol=1e-9)
        assert math.isclose(min_y + max_y, 0, abs_tol=1e-9)

    def test_deterministic(self) -> None:
        first = [Circle(r=r) for r in (12, 9, 9, 7, 3, 3, 2)]
        second = [Circle(r=r) for r in (12, 9, 9, 7, 3, 3, 2)]
        pack_siblings(first)
        pack_siblings(second)
        assert [(c.x, c.y) for c in first] == [(c.x, c.y) for c in second]
