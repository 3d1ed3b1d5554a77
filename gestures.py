"""Turns raw press/release events into one gesture per physical input.

Every physical press on a surface ends as exactly one of ``TAP``,
``LONG_PRESS_END`` or part of a ``REPEAT_PATTERN``.  ``LONG_PRESS_START`` is
emitted while the key is still held, once the hold passes ``long_press_s``.

Short presses on surfaces listed in ``repeat_surfaces`` are held back until
either ``repeat_count`` taps have arrived (each within ``repeat_window_s`` of
the previous one) or the window lapses, in which case they collapse into a
single ``TAP``.  Time-based gestures are produced by ``poll(now)``, which the
input adapter calls periodically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from models import Gesture, GestureKind, Surface


@dataclass
class _SurfaceState:
    pressed_at: Optional[float] = None
    long_started: bool = False
    tap_times: list[float] = field(default_factory=list)


class GestureClassifier:
    def __init__(
        self,
        long_press_s: float = 0.6,
        repeat_window_s: float = 0.4,
        repeat_count: int = 3,
        repeat_surfaces: Iterable[Surface] = (Surface.OUTPUT,),
    ) -> None:
        if repeat_count < 2:
            raise ValueError("repeat_count must be at least 2")
        self.long_press_s = long_press_s
        self.repeat_window_s = repeat_window_s
        self.repeat_count = repeat_count
        self._repeat_surfaces = frozenset(repeat_surfaces)
        self._surfaces = {surface: _SurfaceState() for surface in Surface}

    def press(self, surface: Surface, now: float) -> list[Gesture]:
        gestures = self.poll(now)
        state = self._surfaces[surface]
        if state.pressed_at is not None:
            return gestures  # auto-repeat while held
        state.pressed_at = now
        state.long_started = False
        return gestures

    def release(self, surface: Surface, now: float) -> list[Gesture]:
        state = self._surfaces[surface]
        if state.pressed_at is None:
            return self.poll(now)
        gestures = self._check_long_press(surface, state, now)
        state.pressed_at = None

        if state.long_started:
            state.long_started = False
            gestures.append(Gesture(GestureKind.LONG_PRESS_END, surface, now))
        elif surface not in self._repeat_surfaces:
            gestures.append(Gesture(GestureKind.TAP, surface, now))
        else:
            if state.tap_times and now - state.tap_times[-1] > self.repeat_window_s:
                state.tap_times.clear()
                gestures.append(Gesture(GestureKind.TAP, surface, now))
            state.tap_times.append(now)
            if len(state.tap_times) >= self.repeat_count:
                state.tap_times.clear()
                gestures.append(Gesture(GestureKind.REPEAT_PATTERN, surface, now))
        return gestures + self.poll(now)

    def poll(self, now: float) -> list[Gesture]:
        gestures: list[Gesture] = []
        for surface, state in self._surfaces.items():
            if state.pressed_at is not None:
                gestures.extend(self._check_long_press(surface, state, now))
            elif state.tap_times and now - state.tap_times[-1] > self.repeat_window_s:
                state.tap_times.clear()
                gestures.append(Gesture(GestureKind.TAP, surface, now))
        return gestures

    def _check_long_press(self, surface: Surface, state: _SurfaceState, now: float) -> list[Gesture]:
        if state.pressed_at is None or state.long_started:
            return []
        if now - state.pressed_at < self.long_press_s:
            return []
        state.long_started = True
        state.tap_times.clear()
        return [Gesture(GestureKind.LONG_PRESS_START, surface, now)]
