"""
ShowNet menu-bar app (macOS).

Thin rumps shell around StatusAggregator: renders its rows, copies clicked
addresses to the pasteboard, pulses the status icon, and pumps worker
results on the main thread.

Environment:
  SHOWNET_LOG_LEVEL   (default INFO)
  SHOWNET_PREFIX      optional text before the menu-bar icon
"""

import logging
import os
import sys

import rumps

from . import __version__
from .status import DisplayRow, StatusAggregator

APP_NAME = "ShowNet"
TITLE_PREFIX = os.environ.get("SHOWNET_PREFIX", "")

HINT_TITLE = "💡 Click any IP to copy"
COPIED_TITLE = "✓ Copied!"
ANIMATION_FRAMES = ("ⓘ", "ℹ︎")

ANIMATION_SEC = 0.4
PUMP_SEC = 0.1
COPIED_FLASH_SEC = 1.0

logger = logging.getLogger(__name__)


# ───────────────────────── logging ───────────────────────── #

def setup_logging() -> None:
    level_name = os.getenv("SHOWNET_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)


# ───────────────────────── pasteboard ────────────────────── #

def copy_to_clipboard(text: str) -> bool:
    try:
        from AppKit import NSPasteboard
    except ImportError:
        logger.error("AppKit not available, cannot copy %r", text)
        return False
    pb = NSPasteboard.generalPasteboard()
    pb.clearContents()
    return bool(pb.setString_forType_(text, "public.utf8-plain-text"))


# ───────────────────────── app ───────────────────────────── #

class ShowNetApp(rumps.App):
    def __init__(self):
        super(ShowNetApp, self).__init__(APP_NAME, title=TITLE_PREFIX + ANIMATION_FRAMES[0],
                                         quit_button=None)
        self._frame = 0
        self._flash_timers = []

        self.item_refresh = rumps.MenuItem("Refresh", callback=self.refresh_now, key="r")
        self.item_quit = rumps.MenuItem("Quit", callback=self.quit_app, key="q")

        self.status = StatusAggregator(render=self.render_rows)
        self.render_rows([])

        self.pump_timer = rumps.Timer(self.on_pump, PUMP_SEC)
        self.pump_timer.start()
        self.animation_timer = rumps.Timer(self.on_animate, ANIMATION_SEC)
        self.animation_timer.start()

        self.refresh_now(None)

    def _row_item(self, row: DisplayRow):
        if row.separator:
            return rumps.separator
        if row.enabled and row.copy_value is not None:
            return rumps.MenuItem(row.label, callback=lambda sender, r=row: self.copy_row(sender, r))
        return rumps.MenuItem(row.label, callback=None)

    def render_rows(self, rows):
        self.menu.clear()
        self.menu = (
            [rumps.MenuItem(HINT_TITLE, callback=None), rumps.separator]
            + [self._row_item(r) for r in rows]
            + [rumps.separator, self.item_refresh, rumps.separator, self.item_quit]
        )

    def refresh_now(self, _):
        self.status.refresh()

    def on_pump(self, _):
        self.status.pump()

    def on_animate(self, _):
        # keeps pulsing regardless of connection state
        self._frame = (self._frame + 1) % len(ANIMATION_FRAMES)
        self.title = TITLE_PREFIX + ANIMATION_FRAMES[self._frame]

    def copy_row(self, sender, row: DisplayRow):
        text = self.status.copy(row)
        if text is None or not copy_to_clipboard(text):
            return
        logger.info("Copied %s", text)

        original = sender.title
        sender.title = COPIED_TITLE

        ticks = []

        def restore(timer):
            # rumps timers fire once immediately on start
            ticks.append(timer)
            if len(ticks) < 2:
                return
            timer.stop()
            sender.title = original
            if timer in self._flash_timers:
                self._flash_timers.remove(timer)

        t = rumps.Timer(restore, COPIED_FLASH_SEC)
        self._flash_timers.append(t)
        t.start()

    def quit_app(self, _):
        for t in [self.pump_timer, self.animation_timer] + self._flash_timers:
            t.stop()
        self.status.quit()
        rumps.quit_application()


def main():
    setup_logging()
    logger.info("%s v%s starting", APP_NAME, __version__)
    app = ShowNetApp()

    try:
        from AppKit import NSApplication, NSApp, NSApplicationActivationPolicyAccessory
        NSApplication.sharedApplication()
        NSApp.setActivationPolicy_(NSApplicationActivationPolicyAccessory)
    except ImportError:
        pass

    app.run()

