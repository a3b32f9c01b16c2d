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

"""Line editing with history and tab completion on top of GNU readline."""
import contextlib
import logging
from pathlib import Path
from typing import Callable, List, Optional

# Readline is optional (missing on some minimal builds)
try:
    import readline
except ImportError:
    readline = None

logger = logging.getLogger(__name__)

HISTORY_LENGTH = 500


class ReadlineEditor:
    """Reads prompt lines; only lines passed to ``add_history`` are remembered."""

    def __init__(self):
        if readline is None:
            logger.debug("readline unavailable; history and completion disabled")
            return
        # Completion operates on the whole buffer, not on the last word.
        readline.set_completer_delims('')
        readline.set_history_length(HISTORY_LENGTH)
        if hasattr(readline, 'set_auto_history'):
            readline.set_auto_history(False)
        readline.parse_and_bind('tab: complete')

    def read_line(self, prompt: str) -> Optional[str]:
        """Read one line, returning None at end of input."""
        try:
            return input(prompt)
        except EOFError:
            return None

    def add_history(self, line: str) -> None:
        if readline is not None:
            readline.add_history(line)

    def load_history(self, path: Path) -> None:
        if readline is None:
            return
        with contextlib.suppress(FileNotFoundError):
            readline.read_history_file(str(path))

    def save_history(self, path: Path) -> None:
        if readline is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            readline.write_history_file(str(path))
        except OSError as e:
            logger.warning(f"Could not save history to {path}: {e}")

    def clear_history(self) -> None:
        if readline is not None:
            readline.clear_history()

    def set_completer(self, candidates: Callable[[str], List[str]]) -> None:
        """Install ``candidates(buffer)`` as the tab-completion source."""
        if readline is None:
            return

        def completer(text: str, state: int) -> Optional[str]:
            matches = candidates(readline.get_line_buffer())
            if state < len(matches):
                return matches[state]
            return None

        readline.set_completer(completer)
