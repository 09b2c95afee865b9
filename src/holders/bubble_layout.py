"""Bubble layout: size holders by share of supply and place them without overlap.

Pipeline:
1. Radius on a square-root scale so circle AREA tracks percent of supply
2. Seed positions with front-chain sibling packing (largest first)
3. Relax: size-weighted pull to the centre + pairwise collision
4. Fit the bounding box to the canvas with one uniform scale + translate

Headless and deterministic: the same input always yields the same layout.
"""

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from src.holders.circle_pack import Circle, bounding_box, pack_siblings
from src.holders.types import HolderNode


@dataclass(frozen=True)
class LayoutConfig:
    r_min: float = 8.0
    r_max: float = 56.0
    padding: float = 3.0  # gap kept between seeded circles
    margin: float = 1.0  # minimum gap enforced by relaxation
    center_base: float = 0.01
    center_scale: float = 0.08
    center_gamma: float = 2.0  # > 1: big holders pulled much harder than small ones
    alpha_decay: float = 0.02
    max_iterations: int = 300
    epsilon: float = 0.01  # stop when no node moves further than this
    cleanup_passes: int = 200
    fit_padding: float = 20.0
    min_zoom: float = 0.6
    max_zoom: float = 7.0
    seed: int = 7


@dataclass(frozen=True)
class ViewTransform:
    """Maps layout coordinates to canvas coordinates: ``p' = p * scale + t``."""

    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale + self.translate_x, y * self.scale + self.translate_y

    def to_dict(self) -> dict:
        return {"k": self.scale, "x": self.translate_x, "y": self.translate_y}


@dataclass
class BubbleLayout:
    nodes: list[HolderNode] = field(default_factory=list)
    transform: ViewTransform = field(default_factory=ViewTransform)
    iterations: int = 0
    converged: bool = True

    @property
    def empty(self) -> bool:
        return not self.nodes


def radius_for(percent: float, max_percent: float, config: LayoutConfig) -> float:
    """Square-root scale between r_min and r_max."""
    if max_percent <= 0:
        return config.r_min
    t = math.sqrt(max(0.0, percent)) / math.sqrt(max_percent)
    t = min(1.0, t)
    return config.r_min + (config.r_max - config.r_min) * t


def center_strength(radius: float, max_radius: float, config: LayoutConfig) -> float:
    size = radius / max_radius if max_radius > 0 else 0.0
    return config.center_base + config.center_scale * size ** config.center_gamma


def layout_bubbles(
    nodes: Sequence[HolderNode],
    width: float,
    height: float,
    *,
    config: LayoutConfig | None = None,
) -> BubbleLayout:
    """Assign radius, x and y to every node and compute the fit-to-view transform.

    Nodes are updated in place and returned largest first. An empty input,
    or one where nobody holds a positive share, yields an empty layout.
    """
    config = config or LayoutConfig()
    if not nodes:
        return BubbleLayout()
    max_p = max(n.percent_of_supply for n in nodes)
    if max_p <= 0:
        logger.debug("[LAYOUT] No positive shares, returning empty layout")
        return BubbleLayout()

    ordered = sorted(nodes, key=lambda n: (-n.percent_of_supply, n.address))
    for n in ordered:
        n.radius = radius_for(n.percent_of_supply, max_p, config)

    seeds = [Circle(r=n.radius + config.padding / 2) for n in ordered]
    pack_siblings(seeds)
    for n, c in zip(ordered, seeds):
        n.x, n.y = c.x, c.y

    iterations, converged = _relax(ordered, config)
    transform = fit_to_view(ordered, width, height, config)

    logger.debug(
        f"[LAYOUT] {len(ordered)} bubbles, {iterations} iterations, "
        f"converged={converged}, zoom={transform.scale:.2f}"
    )
    return BubbleLayout(
        nodes=ordered, transform=transform, iterations=iterations, converged=converged
    )


def _relax(nodes: list[HolderNode], config: LayoutConfig) -> tuple[int, bool]:
    """Run the force system until displacement settles or the cap is hit."""
    rng = random.Random(config.seed)
    max_r = max(n.radius for n in nodes)
    strengths = [center_strength(n.radius, max_r, config) for n in nodes]
    alpha = 1.0
    iterations = 0
    converged = False

    for iterations in range(1, config.max_iterations + 1):
        start = [(n.x, n.y) for n in nodes]
        for n, s in zip(nodes, strengths):
            n.x -= n.x * s * alpha
            n.y -= n.y * s * alpha
        _resolve_collisions(nodes, config.margin, rng)
        alpha *= 1 - config.alpha_decay

        moved = max(
            math.hypot(n.x - sx, n.y - sy) for n, (sx, sy) in zip(nodes, start)
        )
        if moved < config.epsilon:
            converged = True
            break

    for _ in range(config.cleanup_passes):
        if not _resolve_collisions(nodes, config.margin, rng):
            break
    else:
        logger.warning("[LAYOUT] Collision cleanup hit its pass cap")
    return iterations, converged


def _resolve_collisions(
    nodes: list[HolderNode], margin: float, rng: random.Random
) -> bool:
    """One pairwise pass. Pushes overlapping pairs apart, heavier circles move less.

    Returns True if any pair had to be moved.
    """
    moved = False
    count = len(nodes)
    for i in range(count):
        a = nodes[i]
        for j in range(i + 1, count):
            b = nodes[j]
            min_dist = a.radius + b.radius + margin
            dx = b.x - a.x
            dy = b.y - a.y
            d2 = dx * dx + dy * dy
            if d2 >= min_dist * min_dist:
                continue
            dist = math.sqrt(d2)
            if dist == 0:
                angle = rng.uniform(0, 2 * math.pi)
                dx, dy, dist = math.cos(angle), math.sin(angle), 1.0
            overlap = min_dist - math.sqrt(d2)
            ux, uy = dx / dist, dy / dist
            wa = a.radius ** 2
            wb = b.radius ** 2
            share_a = wb / (wa + wb)
            share_b = 1 - share_a
            a.x -= ux * overlap * share_a
            a.y -= uy * overlap * share_a
            b.x += ux * overlap * share_b
            b.y += uy * overlap * share_b
            moved = True
    return moved


def fit_to_view(
    nodes: Sequence[HolderNode],
    width: float,
    height: float,
    config: LayoutConfig,
) -> ViewTransform:
    """Uniform scale + translate putting the layout's bounding box in the canvas."""
    if not nodes:
        return ViewTransform()
    min_x, min_y, max_x, max_y = bounding_box(
        [Circle(r=n.radius, x=n.x, y=n.y) for n in nodes]
    )
    box_w = max(max_x - min_x, 1e-9)
    box_h = max(max_y - min_y, 1e-9)
    avail_w = max(width - 2 * config.fit_padding, 1.0)
    avail_h = max(height - 2 * config.fit_padding, 1.0)

    scale = min(avail_w / box_w, avail_h / box_h)
    scale = max(config.min_zoom, min(config.max_zoom, scale))

    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2
    return ViewTransform(
        scale=scale,
        translate_x=width / 2 - cx * scale,
        translate_y=height / 2 - cy * scale,
    )
