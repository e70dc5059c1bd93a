"""Joint-tree traversal, copy-on-write editing and figure templates."""

import math
from typing import Callable, Optional

from .models import CIRCLE, FILLED_CIRCLE, RECTANGLE, Arc, Ellipse, Figure, Joint


def find_joint(root: Joint, joint_id: str) -> Optional[Joint]:
    if root.id == joint_id:
        return root
    for child in root.children:
        found = find_joint(child, joint_id)
        if found is not None:
            return found
    return None


def find_parent(root: Joint, joint_id: str) -> Optional[Joint]:
    """Parent of the joint with ``joint_id``; None for the root or an unknown id."""
    for child in root.children:
        if child.id == joint_id:
            return root
        found = find_parent(child, joint_id)
        if found is not None:
            return found
    return None


def collect_joint_ids(root: Joint) -> set[str]:
    ids = {root.id}
    for child in root.children:
        ids |= collect_joint_ids(child)
    return ids


def generate_joint_id(figure: Figure) -> str:
    existing = collect_joint_ids(figure.root)
    counter = 1
    while f"joint_{counter}" in existing:
        counter += 1
    return f"joint_{counter}"


# ── Copy-on-write edits ───────────────────────────────────────────────────────
# Only the path from the root to the edited joint is rebuilt; every other
# subtree is shared with the input tree, which is never mutated.

def _rebuild(root: Joint, joint_id: str, fn: Callable[[Joint], Joint]) -> Optional[Joint]:
    if root.id == joint_id:
        return fn(root)
    for i, child in enumerate(root.children):
        replaced = _rebuild(child, joint_id, fn)
        if replaced is not None:
            children = list(root.children)
            children[i] = replaced
            return Joint(root.id, root.length, root.angle, root.type, children)
    return None


def replace_joint(root: Joint, joint_id: str, fn: Callable[[Joint], Joint]) -> Joint:
    """Return a new tree where the joint ``joint_id`` is replaced by ``fn(joint)``."""
    result = _rebuild(root, joint_id, fn)
    if result is None:
        raise KeyError(joint_id)
    return result


def set_joint_angle(root: Joint, joint_id: str, angle: float) -> Joint:
    return replace_joint(
        root,
        joint_id,
        lambda j: Joint(j.id, j.length, angle, j.type, j.children),
    )


def add_child(root: Joint, parent_id: str, child: Joint) -> Joint:
    return replace_joint(
        root,
        parent_id,
        lambda j: Joint(j.id, j.length, j.angle, j.type, [*j.children, child]),
    )


def remove_joint(root: Joint, joint_id: str) -> Joint:
    """Return a new tree without ``joint_id`` (and its subtree). The root cannot be removed."""
    if root.id == joint_id:
        raise KeyError(f"cannot remove root joint {joint_id!r}")
    parent = find_parent(root, joint_id)
    if parent is None:
        raise KeyError(joint_id)
    return replace_joint(
        root,
        parent.id,
        lambda j: Joint(
            j.id, j.length, j.angle, j.type, [c for c in j.children if c.id != joint_id]
        ),
    )


# ── Templates ─────────────────────────────────────────────────────────────────

def humanoid_figure(name: str = "humanoid", x: float = 300.0, y: float = 200.0) -> Figure:
    # Child angles are relative to the parent's world angle.
    torso = Joint("torso", 50.0, -math.pi / 2, children=[
        Joint("head", 30.0, 0.0, CIRCLE),
        Joint("leftArm", 40.0, math.pi / 3 + math.pi / 2),
        Joint("rightArm", 40.0, -math.pi / 3 - math.pi / 2),
    ])
    hip = Joint("hip", 0.0, 0.0, children=[
        torso,
        Joint("leftLeg", 45.0, math.pi / 2 + 0.2),
        Joint("rightLeg", 45.0, math.pi / 2 - 0.2),
    ])
    return Figure(name=name, root=hip, x=x, y=y)


def shapes_demo_figure(x: float = 300.0, y: float = 300.0) -> Figure:
    """A figure with one arm per segment shape."""
    stem = math.radians(30)

    def arm(arm_id: str, tip: Joint) -> Joint:
        return Joint(arm_id, 100.0, stem, children=[tip])

    origin = Joint("origin", 0.0, 0.0, children=[
        arm("line-circle", Joint("circle", 40.0, 0.0, CIRCLE)),
        arm("line-filled-circle", Joint("filledCircle", 30.0, 2 * math.pi / 3, FILLED_CIRCLE)),
        arm("line-rect", Joint("rect", 60.0, math.pi, RECTANGLE)),
        arm("line-ellipse", Joint("ellipse", 50.0, -2 * math.pi / 3, Ellipse(width_ratio=0.4))),
        arm("line-arc", Joint("arc", 40.0, -math.pi / 3, Arc(sweep_angle=math.pi))),
    ])
    return Figure(name="shapes-demo", root=origin, x=x, y=y)
