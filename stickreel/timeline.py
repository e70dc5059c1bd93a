"""
Timeline resolution: relative start/end placements → absolute timings.

Components are added in program order. A monotonically advancing cursor tracks
where ``AfterPrevious`` lands; items ending ``BeforeNext`` stay open until a
later item starts at or after their own start, and ``build()`` pins whatever
is still open to the end of the whole timeline.
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from .errors import TimelineClosedError

if TYPE_CHECKING:
    from .speech import SpeechWithTimestamps


# ── Placement descriptors ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class AfterPrevious:
    pass


@dataclass(frozen=True)
class StartAt:
    start: float  # absolute seconds within the current scope


SequenceStart = Union[AfterPrevious, StartAt]


@dataclass(frozen=True)
class UntilEnd:
    pass


@dataclass(frozen=True)
class BeforeNext:
    minimum_length: float = 0.0


@dataclass(frozen=True)
class EndAt:
    end: float  # absolute seconds within the current scope


@dataclass(frozen=True)
class FixedDuration:
    duration: float


SequenceEnd = Union[UntilEnd, BeforeNext, EndAt, FixedDuration]


@dataclass(frozen=True)
class Timing:
    start: float
    end: SequenceEnd
    is_until_end: bool = False

    def absolute_end(self) -> Optional[float]:
        if isinstance(self.end, FixedDuration):
            return self.start + self.end.duration
        if isinstance(self.end, EndAt):
            return self.end.end
        return None


@dataclass(frozen=True)
class AbsoluteTiming:
    start: float
    end: float


# ── Components ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Transition:
    kind: str = "fade"   # "fade" | "none"
    duration: float = 0.3


FADE = Transition("fade", 0.3)
NO_TRANSITION = Transition("none", 0.0)


# eq=False: components are looked up by identity, the same content may be added twice.

@dataclass(eq=False)
class SequenceDef:
    content: Callable[[Any], None]
    enter: Transition = FADE
    exit: Transition = FADE
    tag: Optional[int] = None


@dataclass(eq=False)
class TTSAudio:
    audio_base64: str
    text: str
    speech: "SpeechWithTimestamps"


@dataclass(eq=False)
class ResourceAudio:
    file: str
    media_from: float
    media_to: float


VidComp = Union[SequenceDef, TTSAudio, ResourceAudio]


@dataclass
class TimedComp:
    timing: Timing
    comp: VidComp


def _check_end(start: float, end: SequenceEnd) -> None:
    if isinstance(end, FixedDuration) and end.duration < 0:
        raise ValueError(f"Negative duration: {end.duration}")
    if isinstance(end, EndAt) and end.end < start:
        raise ValueError(f"End {end.end:.3f}s is before start {start:.3f}s")
    if isinstance(end, BeforeNext) and end.minimum_length < 0:
        raise ValueError(f"Negative minimum length: {end.minimum_length}")


# ── Builder ───────────────────────────────────────────────────────────────────

@dataclass
class TimelineBuilder:
    cursor: float = 0.0
    items: list[TimedComp] = field(default_factory=list)
    _built: bool = False

    def _advance_cursor(self, position: float) -> None:
        self.cursor = max(self.cursor, position)

    def _resolve_start(self, start: SequenceStart) -> float:
        if isinstance(start, StartAt):
            return start.start
        if not self.items:
            return self.cursor
        position = self.cursor
        for item in self.items:
            end = item.timing.end
            if isinstance(end, BeforeNext) and item.timing.start <= self.cursor:
                position = max(position, item.timing.start + end.minimum_length)
        return position

    def _close_before_next(self, start_absolute: float) -> None:
        """Close every open BeforeNext item that started at or before ``start_absolute``."""
        for i, item in enumerate(self.items):
            if isinstance(item.timing.end, BeforeNext) and item.timing.start <= start_absolute:
                self.items[i] = replace(item, timing=replace(item.timing, end=EndAt(start_absolute)))

    def _ensure_open(self) -> None:
        if self._built:
            raise TimelineClosedError("Timeline was already built; timelines are single-use")

    def timing_of(self, component: VidComp) -> Optional[Timing]:
        for item in self.items:
            if item.comp is component:
                return item.timing
        return None

    def add(
        self,
        start: SequenceStart,
        end: SequenceEnd,
        components: list[VidComp],
        resolve_disabled: bool = False,
    ) -> Optional[Timing]:
        """
        Place ``components`` with a shared timing.

        Args:
            start: Where the components begin.
            end: How they end.
            components: Components to place; an empty list is a no-op.
            resolve_disabled: Skip closing open BeforeNext items (used for
                audio, which must not cut visuals short).

        Returns:
            The timing given to the components, or None when nothing was added.
        """
        self._ensure_open()
        if not components:
            return None

        start_absolute = self._resolve_start(start)
        _check_end(start_absolute, end)
        if not resolve_disabled:
            self._close_before_next(start_absolute)

        if isinstance(end, FixedDuration):
            self._advance_cursor(start_absolute + end.duration)
        elif isinstance(end, EndAt):
            self._advance_cursor(end.end)
        elif isinstance(end, BeforeNext):
            self._advance_cursor(start_absolute + end.minimum_length)
        # UntilEnd is only resolved by build()

        timing = Timing(start=start_absolute, end=end, is_until_end=isinstance(end, UntilEnd))
        for component in components:
            self.items.append(TimedComp(timing, component))
        return timing

    def add_timeline(
        self,
        start: SequenceStart,
        end: SequenceEnd,
        timeline: list[TimedComp],
    ) -> AbsoluteTiming:
        """
        Splice a built sub-timeline into this one.

        Every child start is shifted by the resolved offset. A fixed end
        (FixedDuration or EndAt) clamps every child end; children that ended
        UntilEnd inside the sub-timeline snap to that bound. Without a fixed
        end, children keep their own (shifted) ends.
        """
        self._ensure_open()
        start_absolute = self._resolve_start(start)
        _check_end(start_absolute, end)
        self._close_before_next(start_absolute)

        if isinstance(end, FixedDuration):
            clamp: Optional[float] = start_absolute + end.duration
        elif isinstance(end, EndAt):
            clamp = end.end
        else:
            clamp = None

        max_end = clamp if clamp is not None else start_absolute
        for child in timeline:
            child_end = child.timing.absolute_end()
            if child_end is None:
                raise ValueError("Sub-timeline must be built before it is spliced")

            new_start = child.timing.start + start_absolute
            if child.timing.is_until_end and clamp is not None:
                new_end = clamp
            else:
                new_end = start_absolute + child_end
                if clamp is not None:
                    new_end = min(new_end, clamp)
            if clamp is not None:
                new_start = min(new_start, clamp)

            max_end = max(max_end, new_end)
            self.items.append(TimedComp(Timing(new_start, EndAt(new_end)), child.comp))

        self._advance_cursor(max_end)
        return AbsoluteTiming(start_absolute, max_end)

    def end_of_timeline(self) -> float:
        ends = [0.0]
        for item in self.items:
            absolute = item.timing.absolute_end()
            if absolute is not None:
                ends.append(absolute)
            elif isinstance(item.timing.end, BeforeNext):
                ends.append(item.timing.start + item.timing.end.minimum_length)
            else:
                ends.append(item.timing.start)
        return max(ends)

    def build(self) -> list[TimedComp]:
        """Pin every open item to the end of the timeline. Idempotent."""
        if self._built:
            return self.items

        end_absolute = self.end_of_timeline()
        for i, item in enumerate(self.items):
            if isinstance(item.timing.end, (BeforeNext, UntilEnd)):
                timing = replace(item.timing, end=EndAt(end_absolute), is_until_end=True)
                self.items[i] = replace(item, timing=timing)
        self._built = True
        return self.items
