"""Tests for olleh.config module."""

from pathlib import Path

import pytest

from olleh.config import (
    DEFAULT_HOST, DEFAULT_PORT, InfoConfig, RunConfig, ServerConfig, parse_arguments
)


class TestServeArguments:
    """Tests for the serve command."""

    def test_defaults(self):
        command, config = parse_arguments(['serve'])
        assert command == 'serve'
        assert isinstance(config, ServerConfig)
        assert config.host == DEFAULT_HOST == '127.0.0.1'
        assert config.port == DEFAULT_PORT == 43110
        assert config.debug is False
        assert config.log_dir is None
        assert config.backend.kind == 'llama-cpp'

    def test_options(self, tmp_path):
        _, config = parse_arguments([
            'serve', '--host', '0.0.0.0', '--port', '11434', '--verbose',
            '--log-dir', str(tmp_path), '--backend', 'static', '--ctx-size', '8192',
        ])
        assert config.host == '0.0.0.0'
        assert config.port == 11434
        assert config.debug is True
        assert config.log_dir == tmp_path
        assert config.backend.kind == 'static'
        assert config.backend.context_size == 8192

    def test_environment_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv('OLLEH_MODEL_PATH', str(tmp_path / 'model.gguf'))
        monkeypatch.setenv('OLLEH_LLAMA_CPP_DIR', str(tmp_path / 'llama.cpp'))
        _, config = parse_arguments(['serve'])
        assert config.backend.model_path == tmp_path / 'model.gguf'
        assert config.backend.llama_cpp_dir == tmp_path / 'llama.cpp'


class TestRunArguments:
    """Tests for the run command."""

    def test_defaults(self):
        command, config = parse_arguments(['run'])
        assert command == 'run'
        assert isinstance(config, RunConfig)
        assert config.model == 'default'
        assert config.settings.history is True
        assert config.settings.wordwrap is True
        assert config.parameters.is_empty()
        assert config.adapter_path is None
        assert config.history_file == Path.home() / '.olleh_history'

    def test_settings_and_parameters(self):
        _, config = parse_arguments([
            'run', 'mymodel', '--system', 'Be brief', '--no-history', '--no-wordwrap',
            '--format', '--verbose', '--seed', '1', '--temperature', '0.5', '--top-p', '0.9',
            '--max-tokens', '100', '--stop', 'END',
        ])
        assert config.model == 'mymodel'
        assert config.settings.system == 'Be brief'
        assert config.settings.history is False
        assert config.settings.wordwrap is False
        assert config.settings.format is True
        assert config.settings.verbose is True
        assert config.parameters.to_dict() == {
            'seed': 1, 'temperature': 0.5, 'top_p': 0.9, 'max_tokens': 100, 'stop': 'END'
        }

    @pytest.mark.parametrize("argv", [
        ['run', '--temperature', '3.5'],
        ['run', '--top-p', '1.5'],
        ['run', '--max-tokens', '0'],
    ])
    def test_out_of_domain_parameters_exit(self, argv):
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(argv)
        assert exc_info.value.code == 2

    def test_missing_adapter_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(['run', '--load', str(tmp_path / 'missing.gguf')])
        assert exc_info.value.code == 2

    def test_adapter_suffix_checked(self, tmp_path):
        adapter = tmp_path / 'adapter.bin'
        adapter.write_bytes(b'')
        with pytest.raises(SystemExit):
            parse_arguments(['run', '--load', str(adapter)])

    def test_valid_adapter(self, tmp_path):
        adapter = tmp_path / 'adapter.gguf'
        adapter.write_bytes(b'')
        _, config = parse_arguments(['run', '--load', str(adapter)])
        assert config.adapter_path == str(adapter)


class TestInfoArguments:
    """Tests for list, show and check."""

    def test_show_requires_model(self):
        with pytest.raises(SystemExit):
            parse_arguments(['show'])

    def test_show(self):
        command, config = parse_arguments(['show', 'default', '--backend', 'static'])
        assert command == 'show'
        assert isinstance(config, InfoConfig)
        assert config.model == 'default'

    @pytest.mark.parametrize("command", ['list', 'check'])
    def test_simple_commands(self, command):
        parsed, config = parse_arguments([command])
        assert parsed == command
        assert config.model is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(['--version'])
        assert exc_info.value.code == 0
        assert '1.0.0' in capsys.readouterr().out
