"""Terminal progress spinner that can print lines while it spins."""

from __future__ import annotations

import enum
import sys
import threading
from collections.abc import Sequence
from typing import TextIO

from otari.utils import Color, paint

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CLEAR_LINE = "\x1b[2K"
CURSOR_UP = "\x1b[{}A"


class SpinnerStyle(enum.Enum):
    LINE = 0
    DOTS = 1


_STYLE_FRAMES = {
    SpinnerStyle.LINE: ("-", "\\", "|", "/"),
    SpinnerStyle.DOTS: (
        ".    ", "..   ", "...  ", ".... ", ".....",
        " ....", "  ...", "   ..", "    .", "     ",
    ),
}


class Spinner:
    """Animated status line finished with a success, error or info message."""

    def __init__(
        self,
        frames: Sequence[str],
        success_symbol: str = "",
        error_symbol: str = "",
        info_symbol: str = "",
        out: TextIO | None = None,
    ) -> None:
        if not frames:
            raise ValueError("a spinner needs at least one frame")
        self.frames = list(frames)
        self.success_symbol = success_symbol
        self.error_symbol = error_symbol
        self.info_symbol = info_symbol
        self.out = out if out is not None else sys.stdout
        self._message = ""
        self._lock = threading.Lock()
        self._println_count = 0
        self._frame_index = 0
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_style(cls, style: SpinnerStyle, **kwargs) -> "Spinner":
        frames = _STYLE_FRAMES.get(style, _STYLE_FRAMES[SpinnerStyle.LINE])
        return cls(frames, **kwargs)

    @property
    def message(self) -> str:
        return self._message

    def _write(self, text: str) -> None:
        self.out.write(text)
        flush = getattr(self.out, "flush", None)
        if flush is not None:
            flush()

    def set_message(self, msg: str) -> None:
        with self._lock:
            self._message = msg

    def println(self, msg: str) -> None:
        """Print a line above the spinner and redraw it."""
        with self._lock:
            text = f"\r{CLEAR_LINE}\r{msg}\n"
            self._println_count += 1
            if self._thread is not None:
                frame = self.frames[self._frame_index % len(self.frames)]
                text += f"{frame} {self._message}"
            self._write(text)

    def enable(self, interval: float) -> None:
        """Start animating, advancing one frame every interval seconds."""
        with self._lock:
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._write(HIDE_CURSOR)
            self._thread = threading.Thread(
                target=self._animate, args=(stop_event, interval), daemon=True
            )
            self._thread.start()

    def _animate(self, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.wait(interval):
            with self._lock:
                if stop_event.is_set():
                    return
                self._frame_index = (self._frame_index + 1) % len(self.frames)
                self._write(f"\r{self.frames[self._frame_index]} {self._message}")

    def _stop(self) -> None:
        with self._lock:
            thread = self._thread
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _clear_output_block(self) -> None:
        with self._lock:
            total = self._println_count + 1
            parts = ["\r"]
            for remaining in range(total - 1, -1, -1):
                parts.append(CLEAR_LINE)
                if remaining:
                    parts.append(CURSOR_UP.format(1))
            self._write("".join(parts))

    def finish_with_message(self, msg: str) -> None:
        self._stop()
        self._clear_output_block()
        self._write(f"{SHOW_CURSOR}{msg}\n")

    def finish_with_success(self, msg: str) -> None:
        if self.success_symbol:
            msg = f"{self.success_symbol} {msg}"
        self.finish_with_message(msg)

    def finish_with_error(self, msg: str) -> None:
        if self.error_symbol:
            msg = f"{self.error_symbol} {msg}"
        self.finish_with_message(msg)

    def finish_with_info(self, msg: str) -> None:
        if self.info_symbol:
            msg = f"{self.info_symbol} {msg}"
        self.finish_with_message(msg)

    def finish(self) -> None:
        self.finish_with_message("")


def default_spinner() -> Spinner:
    """The spinner used across commands, already running."""
    sp = Spinner(
        ["[|]", "[/]", "[-]", "[\\]"],
        success_symbol=paint("[+]", Color.GREEN, Color.BOLD),
        error_symbol=paint("[x]", Color.RED, Color.BOLD),
        info_symbol=paint("[i]", Color.CYAN, Color.BOLD),
    )
    sp.enable(0.1)
    return sp