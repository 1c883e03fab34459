"""Which overlay the reading view shows: none, the toolbar, or one panel."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class OverlayState(str, Enum):
    READING = "reading"
    TOOLBAR = "toolbar"
    TOC = "toc"
    BOOKMARKS = "bookmarks"
    COLOR_SETTINGS = "color_settings"
    FONT_SETTINGS = "font_settings"


class OverlayEvent(str, Enum):
    TAP_MIDDLE = "tap_middle"
    TAP_EDGE = "tap_edge"
    KEY = "key"
    OPEN = "open"
    JUMP = "jump"
    CLOSE = "close"


PANELS = frozenset(
    {
        OverlayState.TOC,
        OverlayState.BOOKMARKS,
        OverlayState.COLOR_SETTINGS,
        OverlayState.FONT_SETTINGS,
    }
)


class OverlayMachine:
    """At most one overlay is active; any tap while one is shown dismisses it."""

    def __init__(self) -> None:
        self.state = OverlayState.READING

    @property
    def navigation_enabled(self) -> bool:
        return self.state is OverlayState.READING

    def dispatch(
        self,
        event: OverlayEvent,
        target: Optional[OverlayState] = None,
        key: str = "",
    ) -> OverlayState:
        state = self.state
        if event is OverlayEvent.OPEN:
            if target not in PANELS:
                raise ValueError(f"Cannot open {target!r} as a panel")
            # panels are reached from the toolbar, or directly by shortcut
            self.state = target
        elif event is OverlayEvent.TAP_MIDDLE:
            self.state = (
                OverlayState.TOOLBAR if state is OverlayState.READING else OverlayState.READING
            )
        elif event in (OverlayEvent.TAP_EDGE, OverlayEvent.JUMP, OverlayEvent.CLOSE):
            self.state = OverlayState.READING
        elif event is OverlayEvent.KEY:
            if key == "escape":
                self.state = OverlayState.READING
        return self.state

    def toggle(self, panel: OverlayState) -> OverlayState:
        if self.state is panel:
            return self.dispatch(OverlayEvent.CLOSE)
        return self.dispatch(OverlayEvent.OPEN, target=panel)
