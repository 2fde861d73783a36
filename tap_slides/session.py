"""
Dev session coordinator.

Owns the dashboard, the theme picker and the image workflow overlay, routes
every message to the mode that should see it, and exposes thread-safe entry
points for the file watcher and live-sync hub.
"""
import logging
import queue
import webbrowser
from typing import Callable, Optional, Protocol

from rich.console import Group, RenderableType
from rich.text import Text

from .errors import ConfigError, TapError
from .gemini import GeminiImageClient, has_api_key
from .image_workflow import GeneratorFactory, ImageWorkflow, WorkflowSignal
from .markdown_parser import SlideSplitter, split_slides_preserving_code_blocks
from .messages import (
    DASHBOARD_TICK_INTERVAL,
    SPINNER_TICK_INTERVAL,
    Command,
    Commands,
    DevEventMsg,
    ImageGenerateMsg,
    KeyMsg,
    Message,
    SpinnerTickMsg,
    TickMsg,
    WindowSizeMsg,
    quit_cmd,
    tick_cmd,
)
from .models import DevConfig, DevEvent, EventKind, UIMode
from .status_board import StatusBoard, StatusSnapshot
from .styles import (
    COLOR_ERROR,
    COLOR_PRIMARY,
    COLOR_SECONDARY,
    HIGHLIGHT_STYLE,
    MUTED_STYLE,
    SELECTED_STYLE,
    SUBTITLE_STYLE,
    SUCCESS_STYLE,
    UNSELECTED_STYLE,
    URL_STYLE,
    render_error_box,
    render_help,
    render_muted,
    render_title,
)
from .themes import AVAILABLE_THEMES, theme_index

logger = logging.getLogger(__name__)

EVENT_QUEUE_CAPACITY = 100
QR_CODE_MIN_HEIGHT = 30
QR_CODE_MAX_LINES = 15
LABEL_WIDTH = 18

MISSING_API_KEY_MESSAGE = "GEMINI_API_KEY not set. Add it to your .env file to use AI image generation"

EVENT_ICONS = {
    EventKind.RELOAD: ("↻", COLOR_SECONDARY),
    EventKind.ACTION: ("→", COLOR_PRIMARY),
    EventKind.ERROR: ("✗", COLOR_ERROR),
}

_CLOSED = object()


class ThemeBroadcaster(Protocol):
    """Pushes a theme change to connected browsers. Raises on failure."""

    def broadcast_theme(self, theme: str) -> None:
        ...


class LoggingBroadcaster:
    """Broadcaster used when no live-sync hub is attached."""

    def broadcast_theme(self, theme: str) -> None:
        logger.info(f"Theme change to '{theme}' (no live clients attached)")


class DevSession:
    """
    Reducer for the interactive dev session.

    Background producers call the public mutators from any thread; the
    runtime calls init/update/view on its loop thread.

    Args:
        config: Static session configuration
        broadcaster: Receives theme changes; defaults to LoggingBroadcaster
        image_generator_factory: Builds the image generator for each request
        splitter: Slide-boundary function used by the workflow
        credential_check: Returns True when image generation is configured
        status: Shared status board
        opener: Opens a URL in the browser
        events_capacity: Size of the external event queue
    """

    def __init__(
        self,
        config: DevConfig,
        broadcaster: Optional[ThemeBroadcaster] = None,
        image_generator_factory: GeneratorFactory = GeminiImageClient,
        splitter: SlideSplitter = split_slides_preserving_code_blocks,
        credential_check: Callable[[], bool] = has_api_key,
        status: Optional[StatusBoard] = None,
        opener: Callable[[str], object] = webbrowser.open,
        events_capacity: int = EVENT_QUEUE_CAPACITY,
        tick_interval: float = DASHBOARD_TICK_INTERVAL,
        spinner_interval: float = SPINNER_TICK_INTERVAL,
    ):
        self.config = config
        self.broadcaster = broadcaster or LoggingBroadcaster()
        self.image_generator_factory = image_generator_factory
        self.splitter = splitter
        self.credential_check = credential_check
        self.status = status or StatusBoard()
        self.opener = opener
        self.tick_interval = tick_interval
        self.spinner_interval = spinner_interval

        self.mode = UIMode.NORMAL
        self.width = 80
        self.height = 24
        self.current_theme = config.current_theme
        self.theme_picker_index = theme_index(self.current_theme)
        self.quitting = False
        self.workflow: Optional[ImageWorkflow] = None

        self._events: "queue.Queue" = queue.Queue(maxsize=events_capacity)
        self._closed = False

    # ------------------------------------------------------------------
    # Thread-safe mutators for background producers
    # ------------------------------------------------------------------

    def record_event(self, kind: EventKind, message: str) -> None:
        self.status.record_event(DevEvent(kind=kind, message=message))

    def set_live_client_count(self, count: int) -> None:
        self.status.set_live_client_count(count)

    def set_watcher_running(self, running: bool) -> None:
        self.status.set_watcher_running(running)

    def set_error(self, error) -> None:
        self.status.set_error(error)

    def clear_error(self) -> None:
        self.status.clear_error()

    def send_event(self, kind: EventKind, message: str) -> bool:
        """
        Queue an event for the reducer without blocking.

        Returns:
            False if the queue was full and the event was dropped
        """
        if self._closed:
            return False
        try:
            self._events.put_nowait(DevEvent(kind=kind, message=message))
        except queue.Full:
            logger.debug(f"Event queue full, dropping: {message}")
            return False
        return True

    def send_reload_event(self, path: str) -> bool:
        return self.send_event(EventKind.RELOAD, f"File changed: {path}")

    def close(self) -> None:
        """Release the event forwarder. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        while True:
            try:
                self._events.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._events.get_nowait()
                except queue.Empty:
                    pass

    @property
    def was_quit(self) -> bool:
        return self.quitting

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _wait_for_event_cmd(self) -> Command:
        events = self._events

        def _wait() -> Optional[Message]:
            item = events.get()
            if item is _CLOSED:
                # Leave the sentinel for any other waiter.
                try:
                    events.put_nowait(_CLOSED)
                except queue.Full:
                    pass
                return None
            return DevEventMsg(event=item)

        return _wait

    def _open_url_cmd(self, url: str) -> Command:
        opener = self.opener

        def _open() -> None:
            try:
                opener(url)
            except webbrowser.Error as e:
                logger.warning(f"Could not open browser for {url}: {e}")
            return None

        return _open

    # ------------------------------------------------------------------
    # Reducer
    # ------------------------------------------------------------------

    def init(self) -> Commands:
        return [self._wait_for_event_cmd(), tick_cmd(self.tick_interval)]

    def update(self, msg: Message) -> Commands:
        """
        Apply one message and return the commands it triggers.

        Status messages are handled here whatever the mode, so the event
        forwarder and the clock stay armed while an overlay is open.
        """
        if isinstance(msg, DevEventMsg):
            self.status.record_event(msg.event)
            return [self._wait_for_event_cmd()]

        if isinstance(msg, TickMsg):
            return [tick_cmd(self.tick_interval)]

        if isinstance(msg, WindowSizeMsg):
            self.width = msg.width
            self.height = msg.height
            return []

        if isinstance(msg, (ImageGenerateMsg, SpinnerTickMsg)):
            if self.mode == UIMode.IMAGE_WORKFLOW and self.workflow is not None:
                return self._update_workflow(msg)
            return []

        if isinstance(msg, KeyMsg):
            if msg.key == "ctrl+c":
                return self._quit()
            if self.mode == UIMode.THEME_PICKER:
                return self._handle_theme_picker_key(msg.key)
            if self.mode == UIMode.IMAGE_WORKFLOW:
                return self._update_workflow(msg)
            return self._handle_key(msg.key)

        return []

    def _quit(self) -> Commands:
        self.quitting = True
        return [quit_cmd]

    def _handle_key(self, key: str) -> Commands:
        if key == "q":
            return self._quit()

        if key == "o":
            self.record_event(EventKind.ACTION, "Opening browser...")
            return [self._open_url_cmd(self.config.audience_url)]

        if key == "p":
            self.record_event(EventKind.ACTION, "Opening presenter view...")
            return [self._open_url_cmd(self.config.presenter_url)]

        if key == "a":
            self.record_event(EventKind.ACTION, "Opening slide builder...")
        elif key == "r":
            self.record_event(EventKind.RELOAD, "Manual reload triggered")
        elif key == "t":
            self.theme_picker_index = theme_index(self.current_theme)
            self.mode = UIMode.THEME_PICKER
        elif key == "i":
            self._open_image_workflow()
        elif key == "x":
            self.clear_error()

        return []

    def _handle_theme_picker_key(self, key: str) -> Commands:
        if key in ("esc", "q"):
            self.mode = UIMode.NORMAL
        elif key in ("up", "k"):
            if self.theme_picker_index > 0:
                self.theme_picker_index -= 1
        elif key in ("down", "j"):
            if self.theme_picker_index < len(AVAILABLE_THEMES) - 1:
                self.theme_picker_index += 1
        elif key == "enter":
            selected = AVAILABLE_THEMES[self.theme_picker_index].name
            self.current_theme = selected
            self.mode = UIMode.NORMAL
            try:
                self.broadcaster.broadcast_theme(selected)
            except Exception as e:
                logger.warning(f"Theme broadcast failed: {e}")
            self.record_event(EventKind.ACTION, f"Theme changed to {selected}")
        return []

    def _open_image_workflow(self) -> None:
        if self.workflow is not None:
            return

        if not self.credential_check():
            self.set_error(MISSING_API_KEY_MESSAGE)
            self.record_event(EventKind.ERROR, "Missing GEMINI_API_KEY environment variable")
            return

        try:
            workflow = ImageWorkflow(
                self.config.markdown_file,
                self.image_generator_factory,
                splitter=self.splitter,
                spinner_interval=self.spinner_interval,
            )
            if not workflow.slides:
                raise ConfigError("no slides found")
        except ConfigError as e:
            logger.error(f"Could not open image generator: {e}")
            self.set_error(f"failed to load slides: {e}")
            self.record_event(EventKind.ERROR, "Failed to load slides for image generator")
            return

        self.workflow = workflow
        self.mode = UIMode.IMAGE_WORKFLOW
        self.record_event(EventKind.ACTION, "Opening image generator...")

    def _close_image_workflow(self) -> None:
        self.workflow = None
        self.mode = UIMode.NORMAL

    def _update_workflow(self, msg: Message) -> Commands:
        workflow = self.workflow
        signal, cmds = workflow.update(msg)

        if signal == WorkflowSignal.CANCELLED:
            self._close_image_workflow()
            self.record_event(EventKind.ACTION, "Image generator cancelled")
            return []

        if signal == WorkflowSignal.COMPLETED:
            self._close_image_workflow()
            if workflow.saved_image_path:
                self.record_event(EventKind.ACTION, f"Image saved to {workflow.saved_image_path}")
            return cmds

        if workflow.awaiting_persist:
            self._persist_workflow(workflow)

        return cmds

    def _persist_workflow(self, workflow: ImageWorkflow) -> None:
        try:
            path = workflow.persist()
        except (TapError, OSError) as e:
            logger.error(f"Failed to save generated image: {e}")
            workflow.error = f"Failed to save image: {e}"
            self.record_event(EventKind.ERROR, "Failed to save generated image")
            return
        logger.info(f"Saved generated image to {path}")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view(self) -> RenderableType:
        if self.quitting:
            return render_muted("Shutting down server...")

        if self.mode == UIMode.THEME_PICKER:
            return self._view_theme_picker()

        if self.mode == UIMode.IMAGE_WORKFLOW and self.workflow is not None:
            return self.workflow.view()

        snapshot = self.status.snapshot()
        parts = [self._view_header(), Text(), self._view_urls(), Text(), self._view_status(snapshot)]

        if self.config.qr_code_ascii and self.height > QR_CODE_MIN_HEIGHT:
            parts.extend([Text(), self._view_qr_code()])

        parts.extend([Text(), self._view_events(snapshot)])

        if snapshot.error:
            parts.extend([Text(), render_error_box(snapshot.error)])

        parts.extend([Text(), self._view_help()])
        return Group(*parts)

    def _view_header(self) -> Text:
        text = render_title("⚡ Tap Dev Server")
        text.append("\n")
        text.append(f"Serving: {self.config.markdown_file}", style=MUTED_STYLE)
        return text

    @staticmethod
    def _label(label: str) -> Text:
        return Text(label.ljust(LABEL_WIDTH), style=MUTED_STYLE)

    def _view_urls(self) -> Text:
        text = self._label("Audience view:")
        text.append(self.config.audience_url, style=URL_STYLE)
        text.append("\n")
        text.append_text(self._label("Presenter view:"))
        text.append(self.config.presenter_url, style=URL_STYLE)
        if self.config.presenter_password:
            text.append("\n")
            text.append_text(self._label(""))
            text.append("(password protected)", style=MUTED_STYLE)
        return text

    def _view_status(self, snapshot: StatusSnapshot) -> Text:
        text = self._label("Theme:")
        text.append(self.current_theme, style=HIGHLIGHT_STYLE)
        text.append("\n")

        text.append_text(self._label("Connections:"))
        if snapshot.live_clients == 0:
            text.append("none", style=MUTED_STYLE)
        else:
            text.append(f"{snapshot.live_clients} client(s)", style=SUCCESS_STYLE)
        text.append("\n")

        text.append_text(self._label("File watcher:"))
        if snapshot.watcher_running:
            text.append("● watching", style=SUCCESS_STYLE)
        else:
            text.append("○ not running", style=MUTED_STYLE)
        return text

    def _view_qr_code(self) -> Text:
        text = Text("Scan to join:", style=SUBTITLE_STYLE)
        text.append("\n")
        lines = self.config.qr_code_ascii.split("\n")
        if len(lines) > QR_CODE_MAX_LINES:
            # Every other line keeps large codes on screen.
            lines = lines[::2][:QR_CODE_MAX_LINES]
        text.append("\n".join(lines))
        return text

    def _view_events(self, snapshot: StatusSnapshot) -> Text:
        text = Text("Recent activity:", style=SUBTITLE_STYLE)
        if not snapshot.recent_events:
            text.append("\n")
            text.append("  No activity yet", style=MUTED_STYLE)
            return text

        for event in snapshot.recent_events:
            icon, color = EVENT_ICONS.get(event.kind, ("•", None))
            text.append("\n  ")
            text.append(event.timestamp.strftime("%H:%M:%S").ljust(10), style=MUTED_STYLE)
            text.append(f"{icon} ")
            text.append(event.message, style=color)
        return text

    def _view_help(self) -> Text:
        return render_help(
            ("o", "open browser"),
            ("p", "presenter view"),
            ("t", "theme"),
            ("a", "add slide"),
            ("i", "image"),
            ("r", "reload"),
            ("x", "dismiss error"),
            ("q", "quit"),
        )

    def _view_theme_picker(self) -> Group:
        rows = [render_title("🎨 Select Theme"), Text()]

        for i, theme in enumerate(AVAILABLE_THEMES):
            is_current = theme.name == self.current_theme
            if i == self.theme_picker_index:
                row = Text("> " + theme.name, style=SELECTED_STYLE)
            else:
                row = Text("  " + theme.name, style=UNSELECTED_STYLE)
            if is_current:
                row.append(" (current)", style=MUTED_STYLE)
            rows.append(row)
            if i == self.theme_picker_index:
                rows.append(Text("    " + theme.description, style=MUTED_STYLE))

        rows.append(Text())
        rows.append(render_help(("↑/↓", "navigate"), ("enter", "select"), ("esc", "cancel")))
        return Group(*rows)
