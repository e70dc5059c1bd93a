"""Figure, keyframe and compiled-segment data model, plus its JSON codec."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .errors import ProjectFormatError


# ── Segment shapes ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Line:
    pass


@dataclass(frozen=True)
class Circle:
    pass


@dataclass(frozen=True)
class FilledCircle:
    pass


@dataclass(frozen=True)
class Rectangle:
    pass


@dataclass(frozen=True)
class Ellipse:
    width_ratio: float = 0.5  # minor axis / major axis


@dataclass(frozen=True)
class Arc:
    sweep_angle: float = math.pi  # radians


SegmentType = Union[Line, Circle, FilledCircle, Rectangle, Ellipse, Arc]

LINE = Line()
CIRCLE = Circle()
FILLED_CIRCLE = FilledCircle()
RECTANGLE = Rectangle()


# ── Joint tree ────────────────────────────────────────────────────────────────

@dataclass
class Joint:
    id: str
    length: float  # distance from parent
    angle: float   # radians, relative to the parent's world angle
    type: SegmentType = LINE
    children: list["Joint"] = field(default_factory=list)

    def deep_copy(self) -> "Joint":
        return Joint(
            id=self.id,
            length=self.length,
            angle=self.angle,
            type=self.type,
            children=[c.deep_copy() for c in self.children],
        )


@dataclass
class Figure:
    name: str
    root: Joint
    x: float  # world origin
    y: float

    def deep_copy(self) -> "Figure":
        return Figure(name=self.name, root=self.root.deep_copy(), x=self.x, y=self.y)

    def compile(self) -> list["Segment"]:
        return compile_joints(self.root, self.x, self.y)


@dataclass(frozen=True)
class Viewport:
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0  # radians

    def lerp(self, other: "Viewport", t: float) -> "Viewport":
        return Viewport(
            offset_x=self.offset_x + (other.offset_x - self.offset_x) * t,
            offset_y=self.offset_y + (other.offset_y - self.offset_y) * t,
            scale=self.scale + (other.scale - self.scale) * t,
            rotation=self.rotation + (other.rotation - self.rotation) * t,
        )

    def apply(self, x: float, y: float, pivot_x: float, pivot_y: float) -> tuple[float, float]:
        """Map a world point to screen space, transforming around (pivot_x, pivot_y)."""
        qx = (x + self.offset_x - pivot_x) * self.scale
        qy = (y + self.offset_y - pivot_y) * self.scale
        cos_r = math.cos(self.rotation)
        sin_r = math.sin(self.rotation)
        return (
            qx * cos_r - qy * sin_r + pivot_x,
            qx * sin_r + qy * cos_r + pivot_y,
        )


class ViewportTransition(Enum):
    NONE = "none"
    LERP = "lerp"


@dataclass
class FigureFrame:
    """A keyframe: every figure on stage plus the camera."""
    figures: list[Figure]
    viewport: Viewport = field(default_factory=Viewport)
    viewport_transition: ViewportTransition = ViewportTransition.NONE

    def deep_copy(self) -> "FigureFrame":
        return FigureFrame(
            figures=[f.deep_copy() for f in self.figures],
            viewport=self.viewport,
            viewport_transition=self.viewport_transition,
        )

    def compile(self) -> "SegmentFrame":
        segments: list[Segment] = []
        for figure in self.figures:
            segments.extend(figure.compile())
        return SegmentFrame(
            segments=segments,
            viewport=self.viewport,
            viewport_transition=self.viewport_transition,
        )


# ── Compiled form ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Segment:
    length: float
    angle: float  # absolute world radians
    start_x: float
    start_y: float
    type: SegmentType = LINE

    @property
    def end_x(self) -> float:
        return self.start_x + self.length * math.cos(self.angle)

    @property
    def end_y(self) -> float:
        return self.start_y + self.length * math.sin(self.angle)

    @property
    def center_x(self) -> float:
        return (self.start_x + self.end_x) / 2

    @property
    def center_y(self) -> float:
        return (self.start_y + self.end_y) / 2

    @property
    def radius(self) -> float:
        return self.length / 2


@dataclass(frozen=True)
class SegmentFrame:
    segments: list[Segment]
    viewport: Viewport = field(default_factory=Viewport)
    viewport_transition: ViewportTransition = ViewportTransition.NONE


def compile_joints(
    root: Joint,
    start_x: float,
    start_y: float,
    parent_angle: float = 0.0,
) -> list[Segment]:
    """
    Flatten a joint tree into world-space segments.

    World angle accumulates from the root down; each child starts where its
    parent ends. Children are emitted before their parent so the parent is
    drawn on top.
    """
    world_angle = parent_angle + root.angle
    end_x = start_x + root.length * math.cos(world_angle)
    end_y = start_y + root.length * math.sin(world_angle)

    result: list[Segment] = []
    for child in root.children:
        result.extend(compile_joints(child, end_x, end_y, world_angle))
    result.append(Segment(root.length, world_angle, start_x, start_y, root.type))
    return result


# ── JSON codec (persisted keyframe shape) ─────────────────────────────────────

_SIMPLE_TYPES: dict[str, SegmentType] = {
    "line": LINE,
    "circle": CIRCLE,
    "filled_circle": FILLED_CIRCLE,
    "rectangle": RECTANGLE,
}


def segment_type_to_dict(segment_type: SegmentType) -> dict[str, Any]:
    match segment_type:
        case Line():
            return {"kind": "line"}
        case Circle():
            return {"kind": "circle"}
        case FilledCircle():
            return {"kind": "filled_circle"}
        case Rectangle():
            return {"kind": "rectangle"}
        case Ellipse(width_ratio=ratio):
            return {"kind": "ellipse", "width_ratio": ratio}
        case Arc(sweep_angle=sweep):
            return {"kind": "arc", "sweep_angle": sweep}
    raise TypeError(f"Unknown segment type: {segment_type!r}")


def segment_type_from_dict(data: dict[str, Any] | None) -> SegmentType:
    if data is None:
        return LINE
    kind = data.get("kind")
    if kind in _SIMPLE_TYPES:
        return _SIMPLE_TYPES[kind]
    if kind == "ellipse":
        return Ellipse(width_ratio=float(data["width_ratio"]))
    if kind == "arc":
        return Arc(sweep_angle=float(data["sweep_angle"]))
    raise ProjectFormatError(f"Unknown segment kind: {kind!r}")


def joint_to_dict(joint: Joint) -> dict[str, Any]:
    return {
        "id": joint.id,
        "length": joint.length,
        "angle": joint.angle,
        "type": segment_type_to_dict(joint.type),
        "children": [joint_to_dict(c) for c in joint.children],
    }


def joint_from_dict(data: dict[str, Any]) -> Joint:
    return Joint(
        id=str(data["id"]),
        length=float(data["length"]),
        angle=float(data["angle"]),
        type=segment_type_from_dict(data.get("type")),
        children=[joint_from_dict(c) for c in data.get("children", [])],
    )


def figure_to_dict(figure: Figure) -> dict[str, Any]:
    return {
        "name": figure.name,
        "root": joint_to_dict(figure.root),
        "x": figure.x,
        "y": figure.y,
    }


def figure_from_dict(data: dict[str, Any]) -> Figure:
    return Figure(
        name=str(data["name"]),
        root=joint_from_dict(data["root"]),
        x=float(data["x"]),
        y=float(data["y"]),
    )


def viewport_to_dict(viewport: Viewport) -> dict[str, float]:
    return {
        "offset_x": viewport.offset_x,
        "offset_y": viewport.offset_y,
        "scale": viewport.scale,
        "rotation": viewport.rotation,
    }


def viewport_from_dict(data: dict[str, Any] | None) -> Viewport:
    if data is None:
        return Viewport()
    return Viewport(
        offset_x=float(data.get("offset_x", 0.0)),
        offset_y=float(data.get("offset_y", 0.0)),
        scale=float(data.get("scale", 1.0)),
        rotation=float(data.get("rotation", 0.0)),
    )


def frame_to_dict(frame: FigureFrame) -> dict[str, Any]:
    return {
        "figures": [figure_to_dict(f) for f in frame.figures],
        "viewport": viewport_to_dict(frame.viewport),
        "viewport_transition": frame.viewport_transition.value,
    }


def frame_from_dict(data: dict[str, Any]) -> FigureFrame:
    """Decode one keyframe. Raises ProjectFormatError on malformed input."""
    try:
        return FigureFrame(
            figures=[figure_from_dict(f) for f in data["figures"]],
            viewport=viewport_from_dict(data.get("viewport")),
            viewport_transition=ViewportTransition(data.get("viewport_transition", "none")),
        )
    except ProjectFormatError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ProjectFormatError(f"Malformed keyframe: {e}") from e


def frames_to_list(frames: list[FigureFrame]) -> list[dict[str, Any]]:
    return [frame_to_dict(f) for f in frames]


def frames_from_list(data: list[dict[str, Any]]) -> list[FigureFrame]:
    if not isinstance(data, list):
        raise ProjectFormatError("Keyframes must be a list")
    return [frame_from_dict(f) for f in data]
