"""Keyframe interpolation: joint angles, figure positions, viewport and frame expansion."""

import math

from .errors import FigureMismatchError
from .models import Figure, FigureFrame, Joint, ViewportTransition

_TWO_PI = 2 * math.pi


def lerp_angle(start: float, end: float, t: float) -> float:
    """
    Interpolate between two angles along the shortest arc.

    Args:
        start: Starting angle in radians.
        end: Target angle in radians.
        t: Interpolation factor (0.0 = start, 1.0 = end).

    Returns:
        The interpolated angle in radians. The applied delta never exceeds π.
    """
    diff = math.fmod(end - start, _TWO_PI)
    if diff > math.pi:
        diff -= _TWO_PI
    if diff < -math.pi:
        diff += _TWO_PI
    return start + diff * t


def lerp_joint(joint: Joint, other: Joint, t: float) -> Joint:
    """
    Interpolate two joint trees. Children are matched by id; a child with no
    match in ``other`` is copied unchanged. Length and shape are structural and
    always come from ``joint``.
    """
    other_children = {c.id: c for c in other.children}
    children = []
    for child in joint.children:
        match = other_children.get(child.id)
        if match is not None:
            children.append(lerp_joint(child, match, t))
        else:
            children.append(child.deep_copy())

    return Joint(
        id=joint.id,
        length=joint.length,
        angle=lerp_angle(joint.angle, other.angle, t),
        type=joint.type,
        children=children,
    )


def lerp_figure(figure: Figure, other: Figure, t: float) -> Figure:
    if figure.name != other.name:
        raise FigureMismatchError(
            f"Figure names must match for interpolation: '{figure.name}' vs '{other.name}'"
        )
    return Figure(
        name=figure.name,
        root=lerp_joint(figure.root, other.root, t),
        x=figure.x + (other.x - figure.x) * t,
        y=figure.y + (other.y - figure.y) * t,
    )


def lerp_frame(frame: FigureFrame, other: FigureFrame, t: float) -> FigureFrame:
    """
    Interpolate two keyframes.

    Figures are matched by name. A figure present in only one of the two frames
    is a hard cut at t=0.5: source-only figures are shown while t < 0.5,
    target-only figures from t >= 0.5. The viewport moves only when the source
    frame's transition is LERP.
    """
    other_by_name = {f.name: f for f in other.figures}
    own_names = {f.name for f in frame.figures}

    figures: list[Figure] = []
    for figure in frame.figures:
        target = other_by_name.get(figure.name)
        if target is not None:
            figures.append(lerp_figure(figure, target, t))
        elif t < 0.5:
            figures.append(figure.deep_copy())

    if t >= 0.5:
        for figure in other.figures:
            if figure.name not in own_names:
                figures.append(figure.deep_copy())

    if frame.viewport_transition is ViewportTransition.LERP:
        viewport = frame.viewport.lerp(other.viewport, t)
    else:
        viewport = frame.viewport

    return FigureFrame(
        figures=figures,
        viewport=viewport,
        viewport_transition=frame.viewport_transition,
    )


def expand_frames(
    keyframes: list[FigureFrame],
    keyframe_fps: int = 3,
    target_fps: int = 24,
) -> list[FigureFrame]:
    """
    Expand keyframes into a dense frame sequence for playback or export.

    Each keyframe pair gets ``target_fps // keyframe_fps`` frames (the first
    being the pair's start keyframe), and the last keyframe is appended as-is.
    With keyframe_fps=3 and target_fps=24, 3 keyframes expand to
    (3-1) * 8 + 1 = 17 frames.

    Returned frames never share joint trees with ``keyframes``.
    """
    if keyframe_fps <= 0 or target_fps <= 0:
        raise ValueError("fps values must be positive")
    if target_fps < keyframe_fps:
        raise ValueError(f"target_fps ({target_fps}) must be >= keyframe_fps ({keyframe_fps})")

    if not keyframes:
        return []
    if len(keyframes) == 1:
        return [keyframes[0].deep_copy()]

    steps = target_fps // keyframe_fps
    result: list[FigureFrame] = []
    for start, end in zip(keyframes, keyframes[1:]):
        for step in range(steps):
            result.append(lerp_frame(start, end, step / steps))

    result.append(keyframes[-1].deep_copy())
    return result
