"""Textual CSS for pagemark."""

APP_CSS = """
/* ── Global ────────────────────────────────── */
Screen {
    background: $surface;
}

/* ── Library Screen ────────────────────────── */
#library-header {
    dock: top;
    height: 3;
    padding: 1 2;
    background: $primary;
    color: $text;
    text-style: bold;
}

#shelf-table {
    height: 1fr;
}

#shelf-empty {
    height: 1fr;
    content-align: center middle;
    color: $text-muted;
    display: none;
}

/* ── Reader Screen ─────────────────────────── */
#reader-header {
    dock: top;
    height: 1;
    background: $primary;
    color: $text;
    padding: 0 2;
    text-style: bold;
}

#reader-header.hidden {
    display: none;
}

#reader-body {
    height: 1fr;
}

#page-text {
    height: 1fr;
    overflow: hidden;
    color: #222222;
}

.side-panel {
    width: 32;
    display: none;
    background: $surface-darken-1;
}

.side-panel.visible {
    display: block;
}

#toc-panel {
    dock: left;
    border-right: solid $primary;
}

#bookmark-panel,
#color-panel,
#font-panel {
    dock: right;
    border-left: solid $primary;
}

.panel-title {
    padding: 1 1;
    text-style: bold;
    background: $primary-darken-1;
    color: $text;
    text-align: center;
    height: 3;
}

.panel-list {
    height: 1fr;
}

.panel-item {
    padding: 0 1;
    height: 1;
}

.panel-item:hover {
    background: $primary-darken-1;
}

.bookmark-item {
    height: 2;
}

/* ── Dialogs ───────────────────────────────── */
Dialog {
    align: center middle;
}

.dialog {
    width: 70;
    height: auto;
    max-height: 90%;
    background: $surface;
    border: solid $primary;
    padding: 1 2;
}

.dialog-large {
    width: 80%;
    height: 80%;
}

.dialog-danger {
    border: solid $error;
}

.dialog-title {
    width: 100%;
    text-align: center;
    text-style: bold;
    margin-bottom: 1;
}

.dialog-body {
    width: 100%;
    text-align: center;
    margin: 1 0;
}

.dialog-buttons {
    align: center middle;
    height: 3;
}

.dialog-buttons Button {
    margin: 0 2;
}

#picker-error {
    color: $error;
    height: auto;
}

#picker-tree {
    height: 1fr;
}
"""
