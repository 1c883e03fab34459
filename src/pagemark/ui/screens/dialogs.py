from __future__ import annotations

from pathlib import Path
from typing import Iterable, TypeVar

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DirectoryTree, Input, Label

from pagemark.errors import InvalidExtension, MissingBookFile
from pagemark.library.index import IMPORTABLE_EXTENSIONS

T = TypeVar("T")


def resolve_book_path(raw: str) -> Path:
    """Expand a typed path and check it names an importable book file."""
    path = Path(raw.strip()).expanduser()
    if path.suffix.lower() not in IMPORTABLE_EXTENSIONS:
        raise InvalidExtension(path.suffix.lower(), IMPORTABLE_EXTENSIONS)
    if not path.is_file():
        raise MissingBookFile(path)
    return path.resolve()


def book_entries(paths: Iterable[Path]) -> list[Path]:
    """Folders first, then only the files the library can import; dotfiles hidden."""
    listed = [
        p
        for p in paths
        if not p.name.startswith(".")
        and (p.is_dir() or p.suffix.lower() in IMPORTABLE_EXTENSIONS)
    ]
    listed.sort(key=lambda p: (p.is_file(), p.name.casefold()))
    return listed


class TextBookTree(DirectoryTree):
    def filter_paths(self, paths: Iterable[Path]) -> Iterable[Path]:
        return book_entries(paths)


class Dialog(ModalScreen[T]):
    """Centered modal; escape dismisses with ``cancel_value``."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]
    cancel_value: T | None = None

    def action_cancel(self) -> None:
        self.dismiss(self.cancel_value)


class FilePickerScreen(Dialog[str | None]):
    """Browse for a ``.txt`` book, or type its path and press enter."""

    def __init__(self, start_path: str = "~") -> None:
        super().__init__()
        self._start = Path(start_path).expanduser().resolve()

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog dialog-large"):
            yield Label("Import a .txt book", classes="dialog-title")
            yield Input(placeholder=f"{self._start}/…", id="picker-path")
            yield Label("", id="picker-error")
            yield TextBookTree(str(self._start), id="picker-tree")

    def on_mount(self) -> None:
        self.query_one(TextBookTree).focus()

    @on(DirectoryTree.FileSelected)
    def _picked(self, event: DirectoryTree.FileSelected) -> None:
        self.dismiss(str(event.path))

    @on(Input.Submitted, "#picker-path")
    def _typed(self, event: Input.Submitted) -> None:
        if not event.value.strip():
            return
        try:
            path = resolve_book_path(event.value)
        except (InvalidExtension, MissingBookFile) as e:
            self.query_one("#picker-error", Label).update(e.message)
            return
        self.dismiss(str(path))


class ConfirmDeleteScreen(Dialog[bool]):
    BINDINGS = [
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]
    cancel_value = False

    def __init__(self, book_title: str) -> None:
        super().__init__()
        self._book_title = book_title

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog dialog-danger"):
            yield Label(
                f'Delete "{self._book_title}"?\n'
                "The file, its progress and its remote copy are removed.",
                classes="dialog-body",
                markup=False,
            )
            with Horizontal(classes="dialog-buttons"):
                yield Button("Delete (y)", variant="error", id="delete-yes")
                yield Button("Keep (n)", id="delete-no")

    @on(Button.Pressed)
    def _answered(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "delete-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)


class PromptScreen(Dialog[str | None]):
    """Single-line text prompt; dismisses with the entered value or None."""

    def __init__(self, title: str, value: str = "", placeholder: str = "") -> None:
        super().__init__()
        self._title = title
        self._value = value
        self._placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Label(self._title, classes="dialog-title")
            yield Input(value=self._value, placeholder=self._placeholder)

    def on_mount(self) -> None:
        self.query_one(Input).focus()

    @on(Input.Submitted)
    def _submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip() or None)
