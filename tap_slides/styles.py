"""Colors and text styles shared by all terminal views."""
from rich import box
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

# Color scheme - consistent across all views.
COLOR_PRIMARY = "#7C3AED"    # purple, main accent
COLOR_SECONDARY = "#10B981"  # emerald, success / selection
COLOR_ERROR = "#EF4444"
COLOR_MUTED = "#6B7280"
COLOR_WHITE = "#FFFFFF"

TITLE_STYLE = Style(bold=True, color=COLOR_PRIMARY)
SUBTITLE_STYLE = Style(color=COLOR_MUTED)
ERROR_STYLE = Style(bold=True, color=COLOR_ERROR)
INLINE_ERROR_STYLE = Style(color="#ff5555")
SUCCESS_STYLE = Style(color=COLOR_SECONDARY)
MUTED_STYLE = Style(color=COLOR_MUTED)
ITALIC_MUTED_STYLE = Style(color=COLOR_MUTED, italic=True)
HIGHLIGHT_STYLE = Style(bold=True, color=COLOR_PRIMARY)
SELECTED_STYLE = Style(bold=True, color=COLOR_SECONDARY)
UNSELECTED_STYLE = Style(color=COLOR_WHITE)
KEY_STYLE = Style(bold=True, color=COLOR_PRIMARY)
URL_STYLE = Style(bold=True, color=COLOR_SECONDARY)


def render_title(text: str) -> Text:
    return Text(text, style=TITLE_STYLE)


def render_muted(text: str) -> Text:
    return Text(text, style=MUTED_STYLE)


def render_error_box(message: str) -> Panel:
    """Rounded red box used for session-level errors."""
    return Panel(
        Text("Error: " + message, style=ERROR_STYLE),
        box=box.ROUNDED,
        border_style=Style(color=COLOR_ERROR),
        padding=(0, 1),
        expand=False,
    )


def render_help(*pairs) -> Text:
    """
    Key help line such as ``enter select • esc cancel``.

    Args:
        pairs: (key, description) tuples
    """
    text = Text(style=MUTED_STYLE)
    for i, (key, description) in enumerate(pairs):
        if i:
            text.append(" • ")
        text.append(key, style=KEY_STYLE)
        if description:
            text.append(" " + description)
    return text


def render_list_item(label: str, selected: bool, prefix: str = "") -> Text:
    """One row of a selectable list with the ``>`` cursor."""
    text = Text()
    if selected:
        text.append("> ", style=HIGHLIGHT_STYLE)
        if prefix:
            text.append(prefix + " ", style=HIGHLIGHT_STYLE)
        text.append(label, style=SELECTED_STYLE)
    else:
        text.append("  ")
        if prefix:
            text.append(prefix + " ", style=MUTED_STYLE)
        text.append(label, style=UNSELECTED_STYLE)
    return text
