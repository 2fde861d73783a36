"""Test the dev session coordinator."""

import io

import pytest
from rich.console import Console

from tap_slides.messages import (
    DevEventMsg,
    ImageGenerateMsg,
    KeyMsg,
    QuitMsg,
    SpinnerTickMsg,
    TickMsg,
    WindowSizeMsg,
)
from tap_slides.models import DevConfig, DevEvent, EventKind, UIMode, WorkflowStep
from tap_slides.session import DevSession


class RecordingBroadcaster:
    def __init__(self, fail=False):
        self.themes = []
        self.fail = fail

    def broadcast_theme(self, theme):
        self.themes.append(theme)
        if self.fail:
            raise ConnectionError("hub unavailable")


@pytest.fixture
def config(presentation):
    return DevConfig(
        audience_url="http://localhost:3000",
        presenter_url="http://localhost:3000/presenter",
        markdown_file=str(presentation),
        current_theme="noir",
    )


@pytest.fixture
def make_session(config, fake_generator_cls):
    def _make(**kwargs):
        kwargs.setdefault("broadcaster", RecordingBroadcaster())
        kwargs.setdefault("credential_check", lambda: True)
        kwargs.setdefault("opener", lambda url: None)
        kwargs.setdefault("tick_interval", 0)
        kwargs.setdefault("spinner_interval", 0)
        generator = kwargs.pop("generator", fake_generator_cls())
        kwargs.setdefault("image_generator_factory", lambda: generator)
        return DevSession(kwargs.pop("config", config), **kwargs)

    return _make


def press(session, *keys):
    cmds = []
    for key in keys:
        cmds.extend(session.update(KeyMsg(key)))
    return cmds


def messages(session):
    return [e.message for e in session.status.snapshot().recent_events]


def render(session, width=120):
    console = Console(file=io.StringIO(), width=width, color_system=None)
    console.print(session.view())
    return console.file.getvalue()


def run_commands(session, cmds):
    """Run commands synchronously, feeding results back except clock ticks."""
    for cmd in cmds:
        msg = cmd()
        if msg is not None and not isinstance(msg, (TickMsg, SpinnerTickMsg)):
            session.update(msg)


def test_quit_keys(make_session):
    """Test that q and ctrl+c quit."""
    for key in ("q", "ctrl+c"):
        session = make_session()
        cmds = press(session, key)

        assert session.was_quit
        assert [type(cmd()) for cmd in cmds] == [QuitMsg]
        assert "Shutting down server..." in render(session)


def test_action_keys_log_events(make_session):
    """Test the dashboard shortcuts."""
    opened = []
    session = make_session(opener=opened.append)

    run_commands(session, press(session, "o", "p", "a", "r"))

    assert opened == ["http://localhost:3000", "http://localhost:3000/presenter"]
    assert messages(session) == [
        "Opening browser...",
        "Opening presenter view...",
        "Opening slide builder...",
        "Manual reload triggered",
    ]
    kinds = [e.kind for e in session.status.snapshot().recent_events]
    assert kinds[-1] == EventKind.RELOAD


def test_event_log_keeps_last_five(make_session):
    """Test that the dashboard only keeps five events."""
    session = make_session()
    press(session, *["r"] * 7 + ["a"])

    assert len(messages(session)) == 5
    assert messages(session)[-1] == "Opening slide builder..."


def test_theme_picker_commit(make_session):
    """Test choosing a theme broadcasts it and logs the change."""
    broadcaster = RecordingBroadcaster()
    session = make_session(broadcaster=broadcaster)

    press(session, "t")
    assert session.mode == UIMode.THEME_PICKER
    assert session.theme_picker_index == 1  # noir

    press(session, "down", "enter")

    assert session.mode == UIMode.NORMAL
    assert session.current_theme == "aurora"
    assert broadcaster.themes == ["aurora"]
    assert messages(session) == ["Theme changed to aurora"]


def test_theme_picker_cancel(make_session):
    """Test that cancelling discards the cursor and reopening resets it."""
    broadcaster = RecordingBroadcaster()
    session = make_session(broadcaster=broadcaster)

    press(session, "t", "down", "down", "esc")
    assert session.mode == UIMode.NORMAL
    assert session.current_theme == "noir"
    assert broadcaster.themes == []

    press(session, "t")
    assert session.theme_picker_index == 1


def test_theme_picker_bounds(make_session):
    """Test that the picker cursor does not wrap."""
    session = make_session()
    press(session, "t", "up", "up", "up")
    assert session.theme_picker_index == 0

    press(session, *["j"] * 10)
    assert session.theme_picker_index == 4


def test_theme_broadcast_failure_is_not_surfaced(make_session):
    """Test that a failing broadcaster only logs."""
    session = make_session(broadcaster=RecordingBroadcaster(fail=True))

    press(session, "t", "enter")

    assert session.current_theme == "noir"
    assert session.status.snapshot().error is None
    assert messages(session) == ["Theme changed to noir"]


def test_image_workflow_requires_api_key(make_session):
    """Test that a missing credential blocks the workflow."""
    session = make_session(credential_check=lambda: False)

    press(session, "i")

    assert session.mode == UIMode.NORMAL
    assert session.workflow is None
    assert session.status.snapshot().error == (
        "GEMINI_API_KEY not set. Add it to your .env file to use AI image generation"
    )
    assert messages(session) == ["Missing GEMINI_API_KEY environment variable"]


def test_image_workflow_unreadable_file(make_session, config, tmp_path):
    """Test that a missing presentation reports a load failure."""
    config.markdown_file = str(tmp_path / "missing.md")
    session = make_session(config=config)

    press(session, "i")

    assert session.mode == UIMode.NORMAL
    assert session.status.snapshot().error.startswith("failed to load slides: ")
    assert messages(session) == ["Failed to load slides for image generator"]


def test_image_workflow_no_slides(make_session, config, tmp_path):
    """Test that a presentation without slides does not open the workflow."""
    empty = tmp_path / "empty.md"
    empty.write_text("---\ntheme: paper\n---\n\n", encoding="utf-8")
    config.markdown_file = str(empty)
    session = make_session(config=config)

    press(session, "i")

    assert session.mode == UIMode.NORMAL
    assert "failed to load slides" in session.status.snapshot().error


def test_dismiss_error(make_session):
    """Test that x clears the error banner."""
    session = make_session()
    session.set_error("watcher crashed")
    assert "Error: watcher crashed" in render(session)

    press(session, "x")
    assert session.status.snapshot().error is None
    assert "watcher crashed" not in render(session)


def test_image_workflow_end_to_end(make_session, presentation, fake_generator_cls, png_factory):
    """Test opening, generating, persisting and closing the workflow."""
    generator = fake_generator_cls()
    session = make_session(generator=generator)

    press(session, "i")
    assert session.mode == UIMode.IMAGE_WORKFLOW
    assert messages(session) == ["Opening image generator..."]

    # Third slide has no annotations
    cmds = press(session, "down", "down", "enter", *"a sunset", "enter")
    assert session.workflow.step == WorkflowStep.GENERATING
    run_commands(session, cmds)

    workflow = session.workflow
    assert workflow.step == WorkflowStep.DONE
    assert workflow.saved_image_path.startswith("images/generated-")
    assert workflow.saved_image_path in presentation.read_text(encoding="utf-8")
    assert "Saved to: " + workflow.saved_image_path in render(session)

    press(session, "enter")
    assert session.mode == UIMode.NORMAL
    assert session.workflow is None
    assert messages(session)[-1] == f"Image saved to {workflow.saved_image_path}"
    assert generator.prompts == ["a sunset"]


def test_image_workflow_cancel(make_session):
    """Test cancelling from slide selection."""
    session = make_session()
    press(session, "i", "esc")

    assert session.mode == UIMode.NORMAL
    assert session.workflow is None
    assert messages(session)[-1] == "Image generator cancelled"


def test_persist_failure_is_shown(make_session, presentation):
    """Test that a save error stays in the done view."""
    session = make_session()
    (presentation.parent / "images").rename(presentation.parent / "moved")
    (presentation.parent / "images").write_text("blocking file")

    cmds = press(session, "i", "enter", "enter", *"x", "enter")
    run_commands(session, cmds)

    workflow = session.workflow
    assert workflow.step == WorkflowStep.DONE
    assert workflow.error.startswith("Failed to save image: ")
    assert messages(session)[-1] == "Failed to save generated image"
    assert "Image Could Not Be Saved" in render(session)


def test_status_messages_handled_in_overlay(make_session):
    """Test that events and ticks are processed while the workflow is open."""
    session = make_session()
    press(session, "i")

    event = DevEvent(EventKind.RELOAD, "File changed: slides.md")
    cmds = session.update(DevEventMsg(event))
    assert len(cmds) == 1
    assert messages(session)[-1] == "File changed: slides.md"

    assert len(session.update(TickMsg())) == 1

    session.update(WindowSizeMsg(width=100, height=40))
    assert (session.width, session.height) == (100, 40)
    assert session.mode == UIMode.IMAGE_WORKFLOW


def test_workflow_messages_without_workflow(make_session):
    """Test that stray workflow messages are ignored."""
    session = make_session()
    assert session.update(SpinnerTickMsg()) == []
    assert session.update(ImageGenerateMsg(error=ValueError("late"))) == []


def test_send_event_is_forwarded(make_session):
    """Test the external queue through the forwarder command."""
    session = make_session()
    forwarder, _tick = session.init()

    assert session.send_reload_event("slides.md") is True
    msg = forwarder()

    assert isinstance(msg, DevEventMsg)
    assert msg.event.kind == EventKind.RELOAD
    assert msg.event.message == "File changed: slides.md"


def test_send_event_drops_when_full(make_session):
    """Test that a full queue drops events instead of blocking."""
    session = make_session(events_capacity=2)

    assert session.send_event(EventKind.ACTION, "one") is True
    assert session.send_event(EventKind.ACTION, "two") is True
    assert session.send_event(EventKind.ACTION, "three") is False


def test_close_releases_forwarder(make_session):
    """Test that close() unblocks a waiting forwarder."""
    session = make_session(events_capacity=1)
    session.send_event(EventKind.ACTION, "pending")
    forwarder, _ = session.init()

    session.close()

    assert forwarder() is None
    assert session.send_event(EventKind.ACTION, "late") is False


def test_external_mutators(make_session):
    """Test status updates from background producers."""
    session = make_session()
    session.set_live_client_count(2)
    session.set_watcher_running(True)
    session.record_event(EventKind.ERROR, "build failed")

    output = render(session)
    assert "2 client(s)" in output
    assert "● watching" in output
    assert "build failed" in output


def test_dashboard_view(make_session, config):
    """Test the dashboard layout."""
    config.presenter_password = "secret"
    config.qr_code_ascii = "QR-LINE-1\nQR-LINE-2"
    session = make_session(config=config)

    output = render(session)
    assert "Tap Dev Server" in output
    assert f"Serving: {config.markdown_file}" in output
    assert "http://localhost:3000/presenter" in output
    assert "(password protected)" in output
    assert "noir" in output
    assert "none" in output
    assert "○ not running" in output
    assert "No activity yet" in output
    assert "QR-LINE-1" not in output

    session.update(WindowSizeMsg(width=120, height=40))
    assert "QR-LINE-1" in render(session)


def test_theme_picker_view(make_session):
    """Test the theme picker layout."""
    session = make_session()
    press(session, "t")

    output = render(session)
    assert "Select Theme" in output
    assert "> noir (current)" in output
    assert "Professional style with subtle shadows" in output
