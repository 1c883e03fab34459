from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.color import Color
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Footer, ListItem, ListView, Static

from pagemark.errors import WebDAVError
from pagemark.library.index import ShelfItem
from pagemark.reader.overlay import OverlayEvent, OverlayMachine, OverlayState
from pagemark.reader.paginator import LayoutParams
from pagemark.reader.session import ReadingSession
from pagemark.settings import BACKGROUND_PRESETS, FONT_FAMILIES, ReadingSettings

from .dialogs import PromptScreen

if TYPE_CHECKING:
    from pagemark.app import PagemarkApp

TOC_STEP_PERCENT = 5

_PANEL_IDS = {
    OverlayState.TOC: "toc-panel",
    OverlayState.BOOKMARKS: "bookmark-panel",
    OverlayState.COLOR_SETTINGS: "color-panel",
    OverlayState.FONT_SETTINGS: "font-panel",
}


def viewport_params(settings: ReadingSettings, columns: int, rows: int) -> LayoutParams:
    """Layout for a terminal area, one cell being one char wide and one line tall."""
    base = settings.layout(0, 0)
    return base.with_viewport(
        max(1, columns) * base.approx_char_width,
        max(1, rows) * base.line_height,
    )


def _brightness_tint(brightness: int) -> Color:
    if brightness < 100:
        return Color(0, 0, 0, (100 - brightness) / 100)
    return Color(255, 255, 255, (brightness - 100) / 100)


class ReaderScreen(Screen):
    BINDINGS = [
        Binding("escape", "go_back", "Back"),
        Binding("left", "prev_page", "←"),
        Binding("right", "next_page", "→"),
        Binding("pageup", "prev_page", "Prev", show=False),
        Binding("pagedown", "next_page", "Next", show=False),
        Binding("space", "next_page", "Next", show=False),
        Binding("enter", "toggle_toolbar", "Menu"),
        Binding("t", "toggle_panel('toc')", "Pages"),
        Binding("b", "toggle_panel('bookmarks')", "Marks"),
        Binding("c", "toggle_panel('color_settings')", "Color"),
        Binding("f", "toggle_panel('font_settings')", "Font"),
        Binding("m", "add_bookmark", "Mark"),
        Binding("x", "remove_bookmark", "Unmark", show=False),
        Binding("g", "goto_percent", "Go to %"),
        Binding("s", "sync_book", "Sync"),
        Binding("=", "font_size(1)", "A+"),
        Binding("minus", "font_size(-1)", "A-"),
        Binding("right_square_bracket", "line_height(2)", "+LH", show=False),
        Binding("left_square_bracket", "line_height(-2)", "-LH", show=False),
        Binding("right_curly_bracket", "padding(10)", "+Pad", show=False),
        Binding("left_curly_bracket", "padding(-10)", "-Pad", show=False),
        Binding("full_stop", "brightness(10)", "+Light", show=False),
        Binding("comma", "brightness(-10)", "-Light", show=False),
    ]

    def __init__(self, item: ShelfItem) -> None:
        super().__init__()
        self._item = item
        self._session: Optional[ReadingSession] = None
        self._overlay = OverlayMachine()

    @property
    def pm(self) -> PagemarkApp:
        return self.app  # type: ignore[return-value]

    @property
    def session(self) -> Optional[ReadingSession]:
        return self._session

    def compose(self) -> ComposeResult:
        yield Static("", id="reader-header", classes="hidden", markup=False)
        with Horizontal(id="reader-body"):
            with Vertical(id="toc-panel", classes="side-panel"):
                yield Static("Pages", classes="panel-title")
                yield ListView(id="toc-list", classes="panel-list")
            yield Static("Loading...", id="page-text", markup=False)
            with Vertical(id="bookmark-panel", classes="side-panel"):
                yield Static("Bookmarks", classes="panel-title")
                yield ListView(id="bookmark-list", classes="panel-list")
            with Vertical(id="color-panel", classes="side-panel"):
                yield Static("Background", classes="panel-title")
                yield ListView(
                    *[
                        ListItem(Static(name), classes="panel-item", name=color)
                        for color, name in BACKGROUND_PRESETS
                    ],
                    id="color-list",
                    classes="panel-list",
                )
            with Vertical(id="font-panel", classes="side-panel"):
                yield Static("Font", classes="panel-title")
                yield ListView(
                    *[
                        ListItem(Static(name), classes="panel-item", name=family)
                        for family, name in FONT_FAMILIES
                    ],
                    id="font-list",
                    classes="panel-list",
                )
        yield Footer()

    def on_mount(self) -> None:
        self.pm.current_book_id = self._item.book.id
        self._load_book()

    # ── Loading ────────────────────────────────────

    def _settings(self) -> ReadingSettings:
        return self.pm.settings.current if self.pm.settings else ReadingSettings()

    def _viewport(self) -> LayoutParams:
        widget = self.query_one("#page-text", Static)
        columns, rows = widget.size.width, widget.size.height
        if columns < 10 or rows < 3:
            columns, rows = self.app.size.width, max(3, self.app.size.height - 2)
        return viewport_params(self._settings(), columns, rows)

    @work(exclusive=True, group="reader")
    async def _load_book(self) -> None:
        session = await ReadingSession.open(
            self._item.book.id,
            self._item.path,
            self._viewport(),
            store=self.pm.progress,
            resize_delay=self.pm.config.resize_debounce,
        )
        session.on_layout = self._render_page
        self._session = session
        if session.error is not None:
            self.notify(session.error.message, severity="error", timeout=self.pm.config.toast_timeout)
        self._apply_appearance()
        self._populate_toc()
        self._refresh_bookmarks()
        self._render_page()

    # ── Rendering ──────────────────────────────────

    def _apply_appearance(self) -> None:
        settings = self._settings()
        widget = self.query_one("#page-text", Static)
        params = settings.layout(0, 0)
        cw, lh = params.approx_char_width, params.line_height
        widget.styles.background = settings.background_color
        widget.styles.padding = (
            settings.padding_top // lh,
            settings.padding_right // cw,
            settings.padding_bottom // lh,
            settings.padding_left // cw,
        )
        widget.styles.tint = _brightness_tint(settings.brightness)

    def _render_page(self) -> None:
        session = self._session
        if session is None:
            return
        self.query_one("#page-text", Static).update(session.page_text)
        self._update_header()

    def _update_header(self) -> None:
        session = self._session
        if session is None:
            return
        settings = self._settings()
        parts = [
            f" {self._item.book.title}",
            f"P {session.page}/{session.page_count}",
            f"{session.percent:.2f}%",
            f"{settings.font_size}px/{settings.line_height}px",
            session.charset.upper(),
            f"{session.reading_minutes} min",
        ]
        if session.restoring:
            parts.append("…")
        self.query_one("#reader-header", Static).update("  │  ".join(parts))

    def _apply_overlay(self) -> None:
        state = self._overlay.state
        header = self.query_one("#reader-header")
        header.set_class(state is OverlayState.READING, "hidden")
        for panel, widget_id in _PANEL_IDS.items():
            panel_widget = self.query_one(f"#{widget_id}")
            panel_widget.set_class(state is panel, "visible")
            if state is panel:
                panel_widget.query_one(ListView).focus()
        if state is OverlayState.BOOKMARKS:
            self._refresh_bookmarks()
        self._update_header()

    def _dispatch(self, event: OverlayEvent, target: Optional[OverlayState] = None) -> None:
        self._overlay.dispatch(event, target=target)
        self._apply_overlay()

    # ── Page Navigation ────────────────────────────

    def _turn(self, forward: bool) -> None:
        session = self._session
        if session is None:
            return
        if not self._overlay.navigation_enabled:
            self._dispatch(OverlayEvent.TAP_EDGE)
            return
        moved = session.next_page() if forward else session.prev_page()
        if moved:
            self._render_page()

    def action_next_page(self) -> None:
        self._turn(forward=True)

    def action_prev_page(self) -> None:
        self._turn(forward=False)

    def on_click(self, event: events.Click) -> None:
        if event.widget is None or event.widget.id != "page-text":
            return
        width = max(1, event.widget.size.width)
        third = event.x * 3 // width
        if third == 1 or not self._overlay.navigation_enabled:
            if self._overlay.state is OverlayState.READING:
                self._dispatch(OverlayEvent.TAP_MIDDLE)
            else:
                self._dispatch(OverlayEvent.TAP_EDGE)
            return
        self._turn(forward=third == 2)

    def action_toggle_toolbar(self) -> None:
        self._dispatch(OverlayEvent.TAP_MIDDLE)

    def action_toggle_panel(self, name: str) -> None:
        self._overlay.toggle(OverlayState(name))
        self._apply_overlay()

    def action_goto_percent(self) -> None:
        if self._session is None:
            return
        self.app.push_screen(
            PromptScreen("Go to percent (0-100)", value=f"{self._session.percent:.2f}"),
            callback=self._on_percent_entered,
        )

    def _on_percent_entered(self, value: str | None) -> None:
        if not value or self._session is None:
            return
        try:
            percent = float(value.rstrip("%"))
        except ValueError:
            self.notify(f"Not a number: {value}", severity="error")
            return
        self._session.goto_percent(percent)
        self._dispatch(OverlayEvent.JUMP)
        self._render_page()

    # ── TOC & Bookmarks ───────────────────────────

    def _populate_toc(self) -> None:
        session = self._session
        if session is None:
            return
        toc_list = self.query_one("#toc-list", ListView)
        toc_list.clear()
        seen: set[int] = set()
        for percent in range(0, 100, TOC_STEP_PERCENT):
            page = min(session.page_count, percent * session.page_count // 100 + 1)
            if page in seen:
                continue
            seen.add(page)
            item = ListItem(Static(f"Page {page}  ·  {percent}%"), classes="panel-item")
            item.data = page  # type: ignore[attr-defined]
            toc_list.append(item)

    def _refresh_bookmarks(self) -> None:
        session = self._session
        if session is None:
            return
        bm_list = self.query_one("#bookmark-list", ListView)
        bm_list.clear()
        for bm in session.bookmarks:
            label = f"{bm.description}\n  {bm.created_at[:16].replace('T', ' ')}"
            item = ListItem(Static(label), classes="panel-item bookmark-item")
            item.data = bm  # type: ignore[attr-defined]
            bm_list.append(item)

    @on(ListView.Selected, "#toc-list")
    def on_toc_selected(self, event: ListView.Selected) -> None:
        page = getattr(event.item, "data", None)
        if page is not None and self._session is not None:
            self._session.goto_page(page)
            self._dispatch(OverlayEvent.JUMP)
            self._render_page()

    @on(ListView.Selected, "#bookmark-list")
    def on_bookmark_selected(self, event: ListView.Selected) -> None:
        bm = getattr(event.item, "data", None)
        if bm is not None and self._session is not None:
            self._session.goto_bookmark(bm)
            self._dispatch(OverlayEvent.JUMP)
            self._render_page()

    def action_add_bookmark(self) -> None:
        if self._session is None:
            return
        bm = self._session.add_bookmark()
        self._refresh_bookmarks()
        self.notify(f"Bookmark added at {bm.description}", timeout=self.pm.config.toast_timeout)

    def action_remove_bookmark(self) -> None:
        if self._session is None or self._overlay.state is not OverlayState.BOOKMARKS:
            return
        highlighted = self.query_one("#bookmark-list", ListView).highlighted_child
        bm = getattr(highlighted, "data", None)
        if bm is not None and self._session.remove_bookmark(bm.id):
            self._refresh_bookmarks()
            self.notify("Bookmark removed", timeout=self.pm.config.toast_timeout)

    # ── Settings ───────────────────────────────────

    def _update_settings(self, **changes) -> None:
        if self.pm.settings is None:
            return
        self.pm.settings.update(**changes)
        self._apply_appearance()
        if self._session is not None:
            self._session.set_layout(self._viewport())
            self._populate_toc()
        self._render_page()

    @on(ListView.Selected, "#color-list")
    def on_color_selected(self, event: ListView.Selected) -> None:
        self._update_settings(background_color=event.item.name)

    @on(ListView.Selected, "#font-list")
    def on_font_selected(self, event: ListView.Selected) -> None:
        self._update_settings(font_family=event.item.name)

    def action_font_size(self, step: int) -> None:
        self._update_settings(font_size=self._settings().font_size + step)

    def action_line_height(self, step: int) -> None:
        self._update_settings(line_height=self._settings().line_height + step)

    def action_padding(self, step: int) -> None:
        settings = self._settings()
        self._update_settings(
            padding_left=settings.padding_left + step,
            padding_right=settings.padding_right + step,
        )

    def action_brightness(self, step: int) -> None:
        self._update_settings(brightness=self._settings().brightness + step)

    # ── Sync ───────────────────────────────────────

    def action_sync_book(self) -> None:
        if self.pm.sync is None or not self.pm.sync.enabled:
            self.notify("WebDAV is not configured", severity="warning")
            return
        self._do_sync_book()

    @work(exclusive=True, group="sync")
    async def _do_sync_book(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            result = await session.sync()
        except WebDAVError as e:
            self.notify(f"Sync failed: {e.message}", severity="error")
            return
        if not result.success:
            self.notify(result.message, severity="error")
            return
        if result.data is not None:
            self._refresh_bookmarks()
            self._render_page()
        self.notify(result.message, timeout=self.pm.config.toast_timeout)

    # ── Back & Resize ──────────────────────────────

    async def action_go_back(self) -> None:
        if self._overlay.state is not OverlayState.READING:
            self._overlay.dispatch(OverlayEvent.KEY, key="escape")
            self._apply_overlay()
            return
        if self._session is not None:
            await self._session.close()
        self.pm.current_book_id = None
        self.app.pop_screen()

    def on_resize(self, event: events.Resize) -> None:
        if self._session is None:
            return
        params = self._viewport()
        self._session.on_resize(params.viewport_width, params.viewport_height)
        self._update_header()
