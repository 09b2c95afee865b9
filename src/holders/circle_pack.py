"""Front-chain sibling circle packing.

Places circles one by one tangent to two circles on the current front
chain, so the result never overlaps. Used to seed the bubble layout
before relaxation; cheaper than relaxing from random positions.
"""

import math
from dataclasses import dataclass

_INTERSECT_EPS = 1e-6


@dataclass
class Circle:
    r: float
    x: float = 0.0
    y: float = 0.0


class _Link:
    __slots__ = ("circle", "next", "prev")

    def __init__(self, circle: Circle) -> None:
        self.circle = circle
        self.next: "_Link" = self
        self.prev: "_Link" = self


def _place(b: Circle, a: Circle, c: Circle) -> None:
    """Put ``c`` tangent to both ``a`` and ``b``."""
    dx = b.x - a.x
    dy = b.y - a.y
    d2 = dx * dx + dy * dy
    if d2 == 0:
        c.x = a.x + c.r
        c.y = a.y
        return
    a2 = (a.r + c.r) ** 2
    b2 = (b.r + c.r) ** 2
    if a2 > b2:
        x = (d2 + b2 - a2) / (2 * d2)
        y = math.sqrt(max(0.0, b2 / d2 - x * x))
        c.x = b.x - x * dx - y * dy
        c.y = b.y - x * dy + y * dx
    else:
        x = (d2 + a2 - b2) / (2 * d2)
        y = math.sqrt(max(0.0, a2 / d2 - x * x))
        c.x = a.x + x * dx - y * dy
        c.y = a.y + x * dy + y * dx


def _intersects(a: Circle, b: Circle) -> bool:
    dr = a.r + b.r - _INTERSECT_EPS
    dx = b.x - a.x
    dy = b.y - a.y
    return dr > 0 and dr * dr > dx * dx + dy * dy


def _score(link: _Link) -> float:
    """Squared distance from origin to the weighted midpoint of a chain edge."""
    a = link.circle
    b = link.next.circle
    ab = a.r + b.r
    dx = (a.x * b.r + b.x * a.r) / ab
    dy = (a.y * b.r + b.y * a.r) / ab
    return dx * dx + dy * dy


def pack_siblings(circles: list[Circle]) -> None:
    """Assign non-overlapping x/y to every circle in place.

    Circles are placed in list order, so callers put the largest first
    to keep them near the middle. Coordinates are recentred on the
    bounding box of the packing.
    """
    n = len(circles)
    if n == 0:
        return

    a = circles[0]
    a.x, a.y = 0.0, 0.0
    if n == 1:
        return

    b = circles[1]
    a.x = -b.r
    b.x, b.y = a.r, 0.0
    if n == 2:
        _recenter(circles)
        return

    _place(b, a, circles[2])
    la, lb, lc = _Link(a), _Link(b), _Link(circles[2])
    la.next = lc.prev = lb
    lb.next = la.prev = lc
    lc.next = lb.prev = la

    i = 3
    while i < n:
        c = circles[i]
        _place(la.circle, lb.circle, c)
        lc = _Link(c)

        # Walk the front chain from both ends looking for a collision.
        j, k = lb.next, la.prev
        sj, sk = lb.circle.r, la.circle.r
        collided = False
        while True:
            if sj <= sk:
                if _intersects(j.circle, c):
                    lb = j
                    la.next, lb.prev = lb, la
                    collided = True
                    break
                sj += j.circle.r
                j = j.next
            else:
                if _intersects(k.circle, c):
                    la = k
                    la.next, lb.prev = lb, la
                    collided = True
                    break
                sk += k.circle.r
                k = k.prev
            if j is k.next:
                break
        if collided:
            continue  # retry the same circle against the shortened chain

        lc.prev, lc.next = la, lb
        la.next = lb.prev = lc
        lb = lc

        # New chain start: the edge closest to the origin.
        best = _score(la)
        cursor = lc.next
        while cursor is not lb:
            s = _score(cursor)
            if s < best:
                la, best = cursor, s
            cursor = cursor.next
        lb = la.next
        i += 1

    _recenter(circles)


def _recenter(circles: list[Circle]) -> None:
    min_x, min_y, max_x, max_y = bounding_box(circles)
    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2
    for c in circles:
        c.x -= cx
        c.y -= cy


def bounding_box(circles: list[Circle]) -> tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) covering every circle's extent."""
    return (
        min(c.x - c.r for c in circles),
        min(c.y - c.r for c in circles),
        max(c.x + c.r for c in circles),
        max(c.y + c.r for c in circles),
    )
