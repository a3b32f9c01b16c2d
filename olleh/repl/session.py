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

"""Interactive chat session over a generation backend."""
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from ..backends.base import GenerationBackend
from ..core.exceptions import ParameterValidationError
from ..core.schemas import GenerationParameters, SessionSettings
from ..utils.spinner import CLEAR_LINE, Spinner, loading_animation
from .commands import (
    Command, PARAMETER_HELP, PARAMETER_LABELS, SET_HELP, SHORTCUTS_HELP,
    complete, help_text, parse_command
)
from .line_editor import ReadlineEditor
from .output import StreamPrinter

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_FILE = Path.home() / '.olleh_history'

PROMPT = '>>> '
CONTINUATION_PROMPT = '... '
MULTILINE_DELIMITER = '"""'
HINT = 'Enter a message (/? for help)'
UNAVAILABLE_MESSAGE = 'Model backend not available on this system'


class ChatSession:
    """Read-eval-print loop for chatting with the backend's model.

    Settings and parameters belong to the session and change only through
    slash commands. Chat lines are sent to the backend one turn at a time;
    the session keeps no conversation transcript.
    """

    def __init__(self, backend: GenerationBackend, model: str = 'default',
                 settings: Optional[SessionSettings] = None,
                 parameters: Optional[GenerationParameters] = None,
                 adapter_path: Optional[str] = None,
                 line_editor=None,
                 history_file: Optional[Path] = None,
                 out: Optional[TextIO] = None):
        self.backend = backend
        self.model = model
        self.settings = settings or SessionSettings()
        self.parameters = parameters or GenerationParameters()
        self.adapter_path = adapter_path
        self.line_editor = line_editor or ReadlineEditor()
        self.history_file = Path(history_file) if history_file else DEFAULT_HISTORY_FILE
        self.out = out or sys.stdout
        self.running = False

    def _print(self, text: str = '') -> None:
        print(text, file=self.out, flush=True)

    def start(self) -> None:
        """Prepare the backend and run the loop until end of input.

        Raises:
            AdapterLoadError: the configured adapter could not be loaded
            SystemExit: ``/bye`` was entered
        """
        if self.backend.is_available():
            if self.adapter_path:
                self.backend.load_adapter(self.adapter_path)
                if self.settings.verbose:
                    self._print(f"Loaded adapter from: {self.adapter_path}")
            with loading_animation(self.out):
                self.backend.prewarm()
        else:
            logger.warning("Backend not available; chat turns will be refused")

        if self.settings.history:
            self.line_editor.load_history(self.history_file)
        self.line_editor.set_completer(complete)

        self._print(HINT)
        self.running = True
        while self.running:
            try:
                line = self.read_input()
            except KeyboardInterrupt:
                self._print()
                self._print("Use Ctrl + d or /bye to exit.")
                continue

            if line is None:
                self.running = False
                break
            self.handle_line(line)

        logger.debug("Session exited at end of input")

    def read_input(self) -> Optional[str]:
        """Read one logical input, joining ``\"\"\"``-delimited lines."""
        line = self.line_editor.read_line(PROMPT)
        if line is None:
            return None

        stripped = line.lstrip()
        if not stripped.startswith(MULTILINE_DELIMITER):
            return line

        lines = [stripped[len(MULTILINE_DELIMITER):]]
        while not lines[-1].rstrip().endswith(MULTILINE_DELIMITER):
            more = self.line_editor.read_line(CONTINUATION_PROMPT)
            if more is None:
                break
            lines.append(more)

        text = '\n'.join(lines).rstrip()
        if text.endswith(MULTILINE_DELIMITER):
            text = text[:-len(MULTILINE_DELIMITER)]
        return text.strip('\n')

    def handle_line(self, line: str) -> None:
        if not line.strip():
            return
        if line.startswith('/'):
            self.handle_command(line)
        else:
            self.chat_turn(line)

    # ============================================================================
    # Chat Turns
    # ============================================================================

    def build_prompt(self, text: str) -> str:
        if self.settings.system:
            return f"{self.settings.system}\n\nUser: {text}"
        return text

    def chat_turn(self, text: str) -> None:
        if self.settings.history:
            self.line_editor.add_history(text)

        try:
            if self.backend.is_available():
                self._respond(self.build_prompt(text))
            else:
                self._print(UNAVAILABLE_MESSAGE)
        except KeyboardInterrupt:
            self.out.write(CLEAR_LINE)
            self._print()
            logger.debug("Turn interrupted by user")
        self._print()

    def _respond(self, prompt: str) -> None:
        printer = StreamPrinter(self.out, wordwrap=self.settings.wordwrap)
        spinner = Spinner(self.out)
        spinner.start()
        stream = None
        failure = None
        try:
            stream = self.backend.stream_generate(self.model, prompt, self.parameters)
            for chunk in stream:
                spinner.stop()
                printer.write(chunk)
        except Exception as e:
            failure = e
        finally:
            spinner.stop()
            close = getattr(stream, 'close', None)
            if close is not None:
                close()

        if failure is not None:
            logger.warning(f"Streaming failed, retrying without streaming: {failure}")
            if printer.text:
                printer.finish()
            self._respond_blocking(prompt)
            return

        printer.finish()
        if self.settings.verbose:
            self._print(f"\n[Verbose: Message processed - {len(printer.text)} characters]")

    def _respond_blocking(self, prompt: str) -> None:
        try:
            with loading_animation(self.out):
                response = self.backend.generate(self.model, prompt, self.parameters)
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            self._print(f"Error: {e}")
            return

        self._print(response)
        if self.settings.verbose:
            self._print("\n[Verbose: Message processed (fallback)]")

    # ============================================================================
    # Commands
    # ============================================================================

    def handle_command(self, line: str) -> None:
        command, args = parse_command(line)
        logger.debug(f"Command: {command}, args: {args}")

        if command is None:
            self._print(f"Unknown command: {line}")
            self._print("Type '/?' for help")
        elif command in (Command.HELP, Command.QUESTION_MARK):
            topic = args[0] if args else ''
            if topic == 'set':
                self._print(SET_HELP)
            elif topic == 'shortcuts':
                self._print(SHORTCUTS_HELP)
            else:
                self._print(help_text())
        elif command is Command.SET:
            self.handle_set(' '.join(args))
        elif command is Command.SHOW:
            self.handle_show()
        elif command is Command.CLEAR:
            self.handle_clear()
        elif command is Command.BYE:
            self.handle_bye()
        self._print()

    def handle_set(self, args: str) -> None:
        if not args:
            self._print(SET_HELP)
            return

        parts = args.split(' ', 1)
        name = parts[0].lower()
        value = parts[1] if len(parts) > 1 else ''

        if name == 'parameter':
            if value:
                self.handle_parameter(value)
            else:
                self._print(PARAMETER_HELP)
        elif name == 'system':
            self.settings.system = value
            self._print(f"System message set to: {value}")
        elif name == 'history':
            self.settings.history = True
            self._print("History enabled")
        elif name == 'nohistory':
            self.settings.history = False
            self._print("History disabled")
        elif name == 'wordwrap':
            self.settings.wordwrap = True
            self._print("Wordwrap enabled")
        elif name == 'nowordwrap':
            self.settings.wordwrap = False
            self._print("Wordwrap disabled")
        elif name == 'format':
            if not value:
                self._print("Usage: /set format json")
            elif value.lower() == 'json':
                self.settings.format = True
                self._print("JSON mode enabled")
            else:
                self._print(f"Unknown format: {value}")
        elif name == 'noformat':
            self.settings.format = False
            self._print("Formatting disabled")
        elif name == 'verbose':
            self.settings.verbose = True
            self._print("Verbose mode enabled")
        elif name == 'quiet':
            self.settings.verbose = False
            self._print("Quiet mode enabled")
        else:
            self._print(f"Unknown setting: {name}")

    def handle_parameter(self, args: str) -> None:
        parts = args.split(' ', 1)
        if len(parts) < 2:
            self._print("Usage: /set parameter <name> <value>")
            return

        name, raw = parts[0].lower(), parts[1]
        try:
            field_name, value = GenerationParameters.parse_value(name, raw)
        except KeyError:
            self._print(f"Unknown parameter: {name}")
            self._print(PARAMETER_HELP)
            return
        except ParameterValidationError as e:
            for field_name, message in e.errors.items():
                self._print(f"Invalid {field_name} value. {message}")
            return

        setattr(self.parameters, field_name, value)
        self._print(f"{PARAMETER_LABELS[field_name]} set to: {value}")

    def handle_show(self) -> None:
        settings = self.settings
        system = f'"{settings.system}"' if settings.system else '(none)'
        self._print("Current Configuration:")
        self._print(f"  Model: {self.model}")
        self._print()
        self._print("Settings:")
        self._print(f"  System message: {system}")
        self._print(f"  History: {'enabled' if settings.history else 'disabled'}")
        self._print(f"  Wordwrap: {'enabled' if settings.wordwrap else 'disabled'}")
        self._print(f"  Format: {'json' if settings.format else 'text'}")
        self._print(f"  Verbose: {'enabled' if settings.verbose else 'disabled'}")
        self._print()

        params = self.parameters.to_dict()
        if params:
            self._print("Generation Parameters:")
            for key in sorted(params):
                self._print(f"  {key}: {params[key]}")
        else:
            self._print("Generation Parameters: (using defaults)")

    def handle_clear(self) -> None:
        self.line_editor.clear_history()
        self.parameters = GenerationParameters()
        self.settings.system = ''
        self._print("Session context and history cleared")

    def handle_bye(self) -> None:
        if self.settings.history:
            self.line_editor.save_history(self.history_file)
        self._print("Bye! Have a great day!")
        raise SystemExit(0)
