"""Shared test fixtures for olleh tests."""

import io

import pytest

from olleh.backends import StaticBackend
from olleh.config import BackendConfig, ServerConfig
from olleh.core.schemas import SessionSettings
from olleh.main import create_app
from olleh.repl.session import ChatSession


# ─────────────────────────────────────────────────────────────────────
# FAKES
# ─────────────────────────────────────────────────────────────────────

class FakeLineEditor:
    """Scripted line editor.

    Each scripted entry is returned by ``read_line`` in order; exception
    classes or instances are raised instead. ``None`` is returned once the
    script is exhausted (end of input).
    """

    def __init__(self, lines=()):
        self.lines = list(lines)
        self.prompts = []
        self.history = []
        self.loaded = []
        self.saved = []
        self.cleared = 0
        self.completer = None

    def read_line(self, prompt):
        self.prompts.append(prompt)
        if not self.lines:
            return None
        line = self.lines.pop(0)
        if isinstance(line, BaseException) or (isinstance(line, type) and issubclass(line, BaseException)):
            raise line
        return line

    def add_history(self, line):
        self.history.append(line)

    def load_history(self, path):
        self.loaded.append(path)

    def save_history(self, path):
        self.saved.append(path)

    def clear_history(self):
        self.cleared += 1
        self.history.clear()

    def set_completer(self, candidates):
        self.completer = candidates


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Backends and HTTP
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def backend():
    """Available fixed-response backend with default replies."""
    return StaticBackend()


@pytest.fixture
def server_config():
    return ServerConfig(backend=BackendConfig(kind='static', model_path=None, llama_cpp_dir=None))


@pytest.fixture
def make_client(server_config):
    """Build a Flask test client serving the given backend."""
    def _make(backend):
        app = create_app(server_config, backend)
        app.config['TESTING'] = True
        return app.test_client()
    return _make


@pytest.fixture
def client(make_client, backend):
    return make_client(backend)


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - REPL
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def make_session(out, tmp_path):
    """Build a session with a scripted editor writing to ``out``."""
    def _make(backend=None, lines=(), settings=None, **kwargs):
        editor = FakeLineEditor(lines)
        session = ChatSession(
            backend or StaticBackend(),
            settings=settings or SessionSettings(wordwrap=False),
            line_editor=editor,
            history_file=tmp_path / 'history',
            out=out,
            **kwargs
        )
        return session, editor
    return _make
