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

"""Main entry point for the olleh command line."""
import logging
import shutil
import sys
from typing import List, Optional

from flask import Flask

from .api.routes import create_routes
from .backends import GenerationBackend, LlamaCppBackend, StaticBackend, find_llama_executable
from .config import BackendConfig, InfoConfig, RunConfig, ServerConfig, parse_arguments
from .core.exceptions import AdapterLoadError
from .repl.session import ChatSession
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_backend(config: BackendConfig) -> GenerationBackend:
    """Create the generation backend selected by ``config``."""
    if config.kind == 'static':
        logger.info("Using static backend")
        return StaticBackend()

    if config.llama_cpp_dir is not None:
        llama_cli_path = find_llama_executable(config.llama_cpp_dir)
    else:
        llama_cli_path = shutil.which('llama-cli')
    if config.model_path is None:
        logger.warning("No model file configured; set --model-path or OLLEH_MODEL_PATH")

    backend = LlamaCppBackend(
        llama_cli_path,
        config.model_path,
        context_size=config.context_size,
        threads=config.threads,
        gpu_layers=config.gpu_layers,
    )
    logger.info(f"llama.cpp backend: CLI={llama_cli_path}, model={config.model_path}")
    return backend


def create_app(config: ServerConfig, backend: GenerationBackend) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config['DEBUG'] = config.debug

    app.register_blueprint(create_routes(backend))
    logger.info("API routes registered")
    return app


def serve(config: ServerConfig) -> int:
    setup_logging(config.log_dir, config.debug)
    backend = build_backend(config.backend)

    if backend.is_available():
        backend.prewarm()
    else:
        logger.warning("Model backend not available; generation requests will receive 503")

    app = create_app(config, backend)

    logger.info("=" * 60)
    logger.info(f"Starting Olleh server on http://{config.host}:{config.port}")
    logger.info(f"Health check at http://{config.host}:{config.port}/health")
    logger.info("=" * 60)

    app.run(
        host=config.host,
        port=config.port,
        debug=config.debug,
        threaded=True,
        use_reloader=False
    )
    return 0


def run(config: RunConfig) -> int:
    setup_logging(level=logging.WARNING, stream=sys.stderr)
    session = ChatSession(
        build_backend(config.backend),
        model=config.model,
        settings=config.settings,
        parameters=config.parameters,
        adapter_path=config.adapter_path,
        history_file=config.history_file,
    )
    try:
        session.start()
    except AdapterLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def list_models(config: InfoConfig) -> int:
    setup_logging(level=logging.WARNING, stream=sys.stderr)
    for model in build_backend(config.backend).list_models():
        print(model.name)
    return 0


def show(config: InfoConfig) -> int:
    setup_logging(level=logging.WARNING, stream=sys.stderr)
    model = build_backend(config.backend).get_model_info(config.model)
    if model is None:
        print(f"Error: model '{config.model}' not found")
        return 1

    print("  Model")
    print(f"    architecture        {model.details.family}")
    print(f"    parameters          {model.details.parameter_size}")
    print(f"    context length      {model.context_length}")
    print(f"    embedding length    {model.embedding_length}")
    print(f"    quantization        {model.details.quantization_level}")
    print("")
    print("  Capabilities")
    for capability in model.capabilities:
        print(f"    {capability}")
    print("")
    print("  Parameters")
    print(f"    temperature    {model.temperature}")
    print("")
    print("  License")
    print(f"    {model.license}")
    return 0


def check(config: InfoConfig) -> int:
    setup_logging(level=logging.WARNING, stream=sys.stderr)
    available = build_backend(config.backend).is_available()
    print("Model backend available" if available else "Model backend not available")
    return 0


COMMANDS = {
    'serve': serve,
    'run': run,
    'list': list_models,
    'show': show,
    'check': check,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    command, config = parse_arguments(argv)
    try:
        return COMMANDS[command](config)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0
    except Exception as e:
        logger.critical(f"Failed to run '{command}': {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
