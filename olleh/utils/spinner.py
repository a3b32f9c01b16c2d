# Copyright 2025 Olleh Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Terminal loading indicator."""
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

CLEAR_LINE = "\r\x1b[K"


class Spinner:
    """Animates a braille spinner on the current terminal line.

    The animation runs on a daemon thread. ``stop`` joins the thread and
    clears the line before returning, so nothing else may write to the
    stream between ``start`` and ``stop``.
    """

    frames = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

    def __init__(self, stream: Optional[TextIO] = None, interval: float = 0.1):
        self.stream = stream or sys.stdout
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="spinner", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        index = 0
        while not self._stop_event.is_set():
            self._update(self.frames[index])
            index = (index + 1) % len(self.frames)
            self._stop_event.wait(self.interval)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join()
        self._thread = None
        self._update()

    def _update(self, content: str = "") -> None:
        self.stream.write(f"{CLEAR_LINE}{content}")
        self.stream.flush()


@contextmanager
def loading_animation(stream: Optional[TextIO] = None) -> Iterator[Spinner]:
    """Show a spinner for the duration of the block, clearing it on exit or error."""
    spinner = Spinner(stream)
    spinner.start()
    try:
        yield spinner
    finally:
        spinner.stop()
