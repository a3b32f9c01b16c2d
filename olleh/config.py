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

"""Configuration management for the olleh command line."""
import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple

from . import __version__
from .backends.llama_cpp import ADAPTER_SUFFIX
from .core.exceptions import ParameterValidationError
from .core.schemas import GenerationParameters, SessionSettings
from .repl.session import DEFAULT_HISTORY_FILE

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 43110


@dataclass
class BackendConfig:
    """Backend selection and llama.cpp settings."""
    kind: str  # llama-cpp, static
    model_path: Optional[Path]
    llama_cpp_dir: Optional[Path]
    context_size: int = 4096
    threads: Optional[int] = None
    gpu_layers: int = -1


@dataclass
class ServerConfig:
    """Server configuration parameters."""
    backend: BackendConfig
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    debug: bool = False
    log_dir: Optional[Path] = None


@dataclass
class RunConfig:
    """Interactive session configuration."""
    backend: BackendConfig
    model: str
    settings: SessionSettings
    parameters: GenerationParameters
    adapter_path: Optional[str]
    history_file: Path


@dataclass
class InfoConfig:
    """Configuration of the ``list``, ``show`` and ``check`` commands."""
    backend: BackendConfig
    model: Optional[str] = None


def _env_path(name: str) -> Optional[str]:
    value = os.environ.get(name)
    return value or None


def _backend_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    group = parser.add_argument_group('backend')
    group.add_argument('--backend', choices=['llama-cpp', 'static'], default='llama-cpp',
                       help='Generation backend (default: llama-cpp)')
    group.add_argument('--model-path', type=str, default=_env_path('OLLEH_MODEL_PATH'),
                       help='Path to the GGUF model file (default: $OLLEH_MODEL_PATH)')
    group.add_argument('--llama-cpp-dir', type=str, default=_env_path('OLLEH_LLAMA_CPP_DIR'),
                       help='Path to the llama.cpp build directory (default: $OLLEH_LLAMA_CPP_DIR)')
    group.add_argument('--ctx-size', type=int, default=4096,
                       help='Context window passed to llama.cpp (default: 4096)')
    group.add_argument('--threads', type=int, default=None,
                       help='CPU threads for llama.cpp (default: all cores)')
    group.add_argument('--gpu-layers', type=int, default=-1,
                       help='Layers to offload to the GPU, -1 for all (default: -1)')
    return parser


def build_parser() -> argparse.ArgumentParser:
    """Build the ``olleh`` argument parser with its subcommands."""
    backend_parent = _backend_parser()
    parser = argparse.ArgumentParser(
        prog='olleh',
        description='Ollama-compatible server and chat session for a local model')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', metavar='command')
    subparsers.required = True

    serve = subparsers.add_parser('serve', parents=[backend_parent], help='Start the Ollama-compatible server')
    serve.add_argument('--host', type=str, default=DEFAULT_HOST,
                       help=f'Host to listen on (default: {DEFAULT_HOST})')
    serve.add_argument('--port', type=int, default=DEFAULT_PORT,
                       help=f'Port to listen on (default: {DEFAULT_PORT})')
    serve.add_argument('--verbose', '--debug', dest='debug', action='store_true',
                       help='Enable debug logging')
    serve.add_argument('--log-dir', type=str, default=None,
                       help='Directory for server.log (default: console only)')

    run = subparsers.add_parser('run', parents=[backend_parent], help='Run a model interactively')
    run.add_argument('model', nargs='?', default='default', help='Model name to run')
    run.add_argument('--system', type=str, default='',
                     help='Initial system message for the chat session')
    run.add_argument('--history', action=argparse.BooleanOptionalAction, default=True,
                     help='Enable chat history')
    run.add_argument('--wordwrap', action=argparse.BooleanOptionalAction, default=True,
                     help='Enable word wrapping')
    run.add_argument('--format', action='store_true', help='Enable JSON formatting')
    run.add_argument('--verbose', action='store_true', help='Enable verbose output')
    run.add_argument('--seed', type=int, default=None, help='Random number seed for reproducible output')
    run.add_argument('--temperature', type=float, default=None,
                     help='Sampling temperature (0.0-2.0, higher = more creative)')
    run.add_argument('--top-p', type=float, default=None, help='Nucleus sampling probability (0.0-1.0)')
    run.add_argument('--max-tokens', type=int, default=None, help='Maximum tokens to generate')
    run.add_argument('--stop', type=str, default=None, help='Stop sequence')
    run.add_argument('--load', type=str, default=None, metavar='PATH',
                     help=f'Path to a {ADAPTER_SUFFIX} LoRA adapter to load')
    run.add_argument('--history-file', type=str, default=str(DEFAULT_HISTORY_FILE),
                     help=f'History file (default: {DEFAULT_HISTORY_FILE})')

    subparsers.add_parser('list', parents=[backend_parent], help='List models')

    show = subparsers.add_parser('show', parents=[backend_parent], help='Show model information')
    show.add_argument('model', help='Model name to show')

    subparsers.add_parser('check', parents=[backend_parent], help='Check availability')
    return parser


def _backend_config(args: argparse.Namespace) -> BackendConfig:
    return BackendConfig(
        kind=args.backend,
        model_path=Path(args.model_path).expanduser() if args.model_path else None,
        llama_cpp_dir=Path(args.llama_cpp_dir).expanduser() if args.llama_cpp_dir else None,
        context_size=args.ctx_size,
        threads=args.threads,
        gpu_layers=args.gpu_layers,
    )


def _validate_run_arguments(parser: argparse.ArgumentParser, args: argparse.Namespace) -> GenerationParameters:
    parameters = GenerationParameters(
        seed=args.seed,
        temperature=args.temperature,
        top_p=args.top_p,
        max_tokens=args.max_tokens,
        stop=args.stop,
    )
    try:
        parameters.validate()
    except ParameterValidationError as e:
        parser.error(str(e))

    if args.load is not None:
        adapter = Path(args.load).expanduser()
        if not adapter.is_file():
            parser.error(f"Adapter file not found: {args.load}")
        if adapter.suffix != ADAPTER_SUFFIX:
            parser.error(f"Adapter file must have {ADAPTER_SUFFIX} extension")
    return parameters


def parse_arguments(argv: Optional[List[str]] = None) -> Tuple[str, Any]:
    """Parse command line arguments into ``(command, config)``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    backend = _backend_config(args)

    if args.command == 'serve':
        return args.command, ServerConfig(
            backend=backend,
            host=args.host,
            port=args.port,
            debug=args.debug,
            log_dir=Path(args.log_dir) if args.log_dir else None,
        )

    if args.command == 'run':
        parameters = _validate_run_arguments(parser, args)
        return args.command, RunConfig(
            backend=backend,
            model=args.model,
            settings=SessionSettings(
                system=args.system,
                history=args.history,
                wordwrap=args.wordwrap,
                format=args.format,
                verbose=args.verbose,
            ),
            parameters=parameters,
            adapter_path=args.load,
            history_file=Path(args.history_file).expanduser(),
        )

    return args.command, InfoConfig(backend=backend, model=getattr(args, 'model', None))
