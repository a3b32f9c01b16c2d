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

"""Slash-command language of the interactive session."""
from enum import Enum
from typing import List, Optional, Tuple

from ..core.schemas import REPL_PARAMETER_NAMES


class Command(Enum):
    """Commands recognised after a leading ``/``."""
    HELP = 'help'
    QUESTION_MARK = '?'
    SET = 'set'
    SHOW = 'show'
    CLEAR = 'clear'
    BYE = 'bye'

    @property
    def help_text(self) -> str:
        return _COMMAND_HELP[self]


_COMMAND_HELP = {
    Command.HELP: 'Show help information',
    Command.QUESTION_MARK: 'Show help information',
    Command.SET: 'Set session variables',
    Command.SHOW: 'Show current settings and parameters',
    Command.CLEAR: 'Clear session context and history',
    Command.BYE: 'Exit the chat session',
}

SET_SETTINGS = ('parameter', 'system', 'history', 'wordwrap', 'format', 'verbose')


def parse_command(line: str) -> Tuple[Optional[Command], List[str]]:
    """Split ``/name arg ...`` into the command and its arguments.

    The command is None when the line is not a known command.
    """
    trimmed = line.strip()
    if not trimmed.startswith('/'):
        return None, []

    parts = trimmed[1:].split()
    if not parts:
        return None, []
    try:
        command = Command(parts[0])
    except ValueError:
        return None, parts
    return command, parts[1:]


def complete(buffer: str) -> List[str]:
    """Completion candidates for the whole input buffer."""
    if buffer.startswith('/set parameter '):
        candidates = [f'/set parameter {name}' for name in REPL_PARAMETER_NAMES]
    elif buffer.startswith('/set '):
        candidates = [f'/set {name}' for name in SET_SETTINGS]
    elif buffer.startswith('/'):
        candidates = [f'/{command.value}' for command in Command]
    else:
        return []
    return [candidate for candidate in candidates if candidate.startswith(buffer)]


def help_text() -> str:
    lines = ['Available Commands:']
    for command in Command:
        lines.append(f'  {"/" + command.value:<15}{command.help_text}')
    lines.extend([
        '',
        'For detailed help on setting values, use: /help set',
        '',
        'Multi-line input:',
        '  Use """ to begin a multi-line message and """ to end it.',
        '',
        'History and completion:',
        '  Use Up/Down arrows to navigate command history.',
        '  Use Tab to auto-complete commands.',
    ])
    return '\n'.join(lines)


SET_HELP = '\n'.join([
    'Available Settings:',
    '  /set parameter ...     Set a parameter',
    '  /set system <string>   Set system message',
    '  /set history           Enable history',
    '  /set nohistory         Disable history',
    '  /set wordwrap          Enable wordwrap',
    '  /set nowordwrap        Disable wordwrap',
    '  /set format json       Enable JSON mode',
    '  /set noformat          Disable formatting',
    '  /set verbose           Show LLM stats',
    '  /set quiet             Disable LLM stats',
])

PARAMETER_HELP = '\n'.join([
    'Available Parameters:',
    '  /set parameter seed <int>           Random number seed',
    '  /set parameter temperature <float>  Sampling temperature (0.0-2.0)',
    '  /set parameter top-p <float>        Nucleus sampling probability (0.0-1.0)',
    '  /set parameter max-tokens <int>     Maximum tokens to generate',
    '  /set parameter stop <string>        Stop sequences',
])

SHORTCUTS_HELP = '\n'.join([
    'Keyboard shortcuts:',
    '  Ctrl+C          Interrupt current operation',
    '  Ctrl+D          Exit (EOF)',
    '  Up/Down arrows  Navigate command history',
    '  Tab             Auto-complete commands',
    '  Ctrl+A          Move to beginning of line',
    '  Ctrl+E          Move to end of line',
    '  Ctrl+L          Clear screen',
    '  """             Begin multi-line message',
])

# Confirmation labels for ``/set parameter``, keyed by field name.
PARAMETER_LABELS = {
    'seed': 'Seed',
    'temperature': 'Temperature',
    'top_p': 'Top-p',
    'max_tokens': 'Max tokens',
    'stop': 'Stop sequence',
}
