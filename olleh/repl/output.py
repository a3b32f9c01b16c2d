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

"""Streamed response output for the terminal."""
import shutil
from typing import Optional, TextIO

# Columns kept free at the right edge before a word is wrapped.
WRAP_MARGIN = 5


class StreamPrinter:
    """Writes streamed chunks, optionally word-wrapping at the terminal width.

    When a word crosses the right edge, the part already printed is erased
    with a cursor-left sequence and the whole word is reprinted on the next
    line.
    """

    def __init__(self, out: TextIO, wordwrap: bool = True, width: Optional[int] = None):
        self.out = out
        self.wordwrap = wordwrap
        self.width = width or shutil.get_terminal_size((80, 24)).columns
        self.line_length = 0
        self.word = ''
        self.text = ''

    def write(self, chunk: str) -> None:
        self.text += chunk
        if self.wordwrap:
            for ch in chunk:
                self._put(ch)
        else:
            self.out.write(chunk)
        self.out.flush()

    def _put(self, ch: str) -> None:
        limit = self.width - WRAP_MARGIN
        if ch not in '\r\n' and self.line_length + 1 > limit:
            if len(self.word) > limit - WRAP_MARGIN:
                # Word longer than a line; let the terminal break it.
                self.out.write(ch)
                self.line_length += 1
                self.word = '' if ch in ' \t' else self.word + ch
                return
            if self.word:
                self.out.write(f"\x1b[{len(self.word)}D")
            self.out.write("\x1b[K\n")
            if ch in ' \t':
                self.out.write(self.word)
                self.line_length = len(self.word)
                self.word = ''
            else:
                self.out.write(f"{self.word}{ch}")
                self.word += ch
                self.line_length = len(self.word)
            return

        self.out.write(ch)
        if ch in '\r\n':
            self.line_length = 0
            self.word = ''
            return
        self.line_length += 1
        if ch in ' \t':
            self.word = ''
        else:
            self.word += ch

    def finish(self) -> None:
        """End the response on a fresh line."""
        self.out.write('\n')
        self.out.flush()
        self.line_length = 0
        self.word = ''
