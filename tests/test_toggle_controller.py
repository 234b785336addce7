from __future__ import annotations

from typing import Callable, Optional

from errors import HOTKEY_UNAVAILABLE
from models import ToggleState
from toggle_controller import HOTKEY_CHECK_INTERVAL_S, READY_FIRST_RETRY_S, READY_RETRY_S, ToggleController


class FakeSurface:
    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.ready_after_reset = ready
        self.visible = False
        self.show_calls = 0
        self.hide_calls = 0
        self.reset_calls = 0

    def show_surface(self) -> None:
        self.show_calls += 1
        self.visible = True

    def hide_surface(self) -> None:
        self.hide_calls += 1
        self.visible = False

    def is_surface_visible(self) -> bool:
        return self.visible

    def is_content_ready(self) -> bool:
        return self.ready

    def reset_content(self) -> None:
        self.reset_calls += 1
        self.ready = self.ready_after_reset


class FakeHotkey:
    def __init__(self, registered: bool = False, succeed: bool = True) -> None:
        self.registered = registered
        self.succeed = succeed
        self.register_calls = 0
        self.callback: Optional[Callable[[], None]] = None

    def is_registered(self) -> bool:
        return self.registered

    def register(self, on_activate: Callable[[], None]) -> bool:
        self.register_calls += 1
        self.callback = on_activate
        self.registered = self.succeed
        return self.succeed

    def unregister(self) -> None:
        self.registered = False


def _controller(surface, scheduler, clock, **kwargs):  # noqa: ANN001, ANN202
    events: list[str] = []
    controller = ToggleController(
        surface,
        scheduler,
        clock=clock,
        on_shown=lambda: events.append("shown"),
        on_hidden=lambda: events.append("hidden"),
        **kwargs,
    )
    return controller, events


def test_hotkey_shows_ready_surface(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, events = _controller(surface, scheduler, clock)

    controller.on_hotkey()

    assert controller.state == ToggleState.VISIBLE
    assert surface.show_calls == 1
    assert events == ["shown"]
    assert controller.last_toggle_at == clock.now


def test_showing_waits_for_content_readiness(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface(ready=False)
    controller, events = _controller(surface, scheduler, clock)

    controller.on_hotkey()
    assert controller.state == ToggleState.SHOWING

    scheduler.advance(READY_FIRST_RETRY_S)
    assert controller.state == ToggleState.SHOWING
    assert surface.show_calls == 0

    surface.ready = True
    scheduler.advance(READY_RETRY_S)
    assert controller.state == ToggleState.VISIBLE
    assert surface.show_calls == 1
    assert events == ["shown"]


def test_hotkey_while_showing_cancels_the_wait(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface(ready=False)
    controller, events = _controller(surface, scheduler, clock)

    controller.on_hotkey()
    controller.on_hotkey()
    assert controller.state == ToggleState.HIDDEN

    surface.ready = True
    scheduler.advance(5)
    assert controller.state == ToggleState.HIDDEN
    assert surface.show_calls == 0
    assert events == []


def test_surface_is_shown_anyway_when_readiness_never_arrives(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface(ready=False)
    controller, _ = _controller(surface, scheduler, clock)

    controller.on_hotkey()
    scheduler.advance(10)

    assert controller.state == ToggleState.VISIBLE
    assert surface.show_calls == 1


def test_hotkey_while_visible_hides_and_resets_content(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, events = _controller(surface, scheduler, clock)

    controller.on_hotkey()
    clock.now += 1
    controller.on_hotkey()

    assert controller.state == ToggleState.HIDDEN
    assert surface.hide_calls == 1
    assert surface.reset_calls >= 1
    assert events == ["shown", "hidden"]


def test_focus_lost_right_after_show_is_ignored(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, _ = _controller(surface, scheduler, clock, focus_debounce_s=0.2)

    controller.on_hotkey()
    scheduler.advance(0.05)
    controller.on_focus_lost()

    assert controller.state == ToggleState.VISIBLE
    assert surface.hide_calls == 0


def test_focus_lost_after_debounce_hides(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, events = _controller(surface, scheduler, clock, focus_debounce_s=0.2)

    controller.on_hotkey()
    scheduler.advance(0.5)
    controller.on_focus_lost()

    assert controller.state == ToggleState.HIDDEN
    assert surface.hide_calls == 1
    assert events == ["shown", "hidden"]


def test_focus_lost_while_hidden_or_showing_is_ignored(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface(ready=False)
    controller, _ = _controller(surface, scheduler, clock)

    controller.on_focus_lost()
    controller.on_hotkey()
    clock.now += 1
    controller.on_focus_lost()

    assert controller.state == ToggleState.SHOWING
    assert surface.hide_calls == 0


def test_hidden_by_another_path_returns_to_hidden(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, events = _controller(surface, scheduler, clock)
    controller.on_hotkey()

    surface.visible = False
    controller.on_surface_hidden()

    assert controller.state == ToggleState.HIDDEN
    assert surface.reset_calls == 1
    assert events == ["shown", "hidden"]


def test_stale_visible_state_is_reconciled_on_hotkey(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, _ = _controller(surface, scheduler, clock)
    controller.on_hotkey()

    surface.visible = False  # hidden without a hide notification
    clock.now += 1
    controller.on_hotkey()

    assert controller.state == ToggleState.VISIBLE
    assert surface.show_calls == 2


def test_request_show_only_acts_when_hidden(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    controller, _ = _controller(surface, scheduler, clock)

    controller.request_show()
    controller.request_show()

    assert controller.state == ToggleState.VISIBLE
    assert surface.show_calls == 1


def test_hotkey_is_rearmed_periodically(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    hotkey = FakeHotkey()
    controller, _ = _controller(surface, scheduler, clock, hotkey=hotkey)

    controller.start()
    assert hotkey.register_calls == 1
    assert hotkey.callback == controller.on_hotkey

    scheduler.advance(HOTKEY_CHECK_INTERVAL_S)
    assert hotkey.register_calls == 1

    hotkey.registered = False  # dropped by the OS after sleep
    scheduler.advance(HOTKEY_CHECK_INTERVAL_S)
    assert hotkey.register_calls == 2
    assert hotkey.registered is True


def test_hotkey_is_rearmed_when_shown(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    hotkey = FakeHotkey(registered=True)
    controller, _ = _controller(surface, scheduler, clock, hotkey=hotkey)

    hotkey.registered = False
    controller.request_show()

    assert hotkey.register_calls == 1


def test_failed_registration_reports_error(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    hotkey = FakeHotkey(succeed=False)
    errors: list[tuple[str, str]] = []
    controller, _ = _controller(
        surface, scheduler, clock, hotkey=hotkey, on_error=lambda c, m: errors.append((c, m))
    )

    assert controller.ensure_hotkey() is False
    assert errors[0][0] == HOTKEY_UNAVAILABLE


def test_stop_unregisters_and_cancels_checks(scheduler, clock) -> None:  # noqa: ANN001
    surface = FakeSurface()
    hotkey = FakeHotkey()
    controller, _ = _controller(surface, scheduler, clock, hotkey=hotkey)
    controller.start()

    controller.stop()

    assert hotkey.registered is False
    assert scheduler.active == []
