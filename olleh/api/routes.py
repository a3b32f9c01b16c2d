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

"""Flask routes for the Ollama-compatible server."""
import logging
from datetime import datetime

from flask import Blueprint, request, jsonify

from ..adapters import OllamaChatAdapter, OllamaGenerateAdapter
from ..backends.base import GenerationBackend
from ..utils.api_metrics import APIMetricsTracker
from .handlers import RequestHandler

logger = logging.getLogger(__name__)


def create_routes(backend: GenerationBackend) -> Blueprint:
    """Create the blueprint serving the Ollama endpoints for ``backend``."""
    api_bp = Blueprint('api', __name__)
    api_metrics = APIMetricsTracker()
    handler = RequestHandler(backend, api_metrics)

    generate_adapter = OllamaGenerateAdapter(backend)
    chat_adapter = OllamaChatAdapter(backend)

    # ============================================================================
    # Generation Endpoints
    # ============================================================================

    @api_bp.route('/api/generate', methods=['POST'])
    @api_bp.route('/generate', methods=['POST'])
    def ollama_generate():
        """Ollama generate endpoint."""
        return handler.handle_generation(generate_adapter)

    @api_bp.route('/api/chat', methods=['POST'])
    @api_bp.route('/chat', methods=['POST'])
    def ollama_chat():
        """Ollama chat endpoint."""
        return handler.handle_generation(chat_adapter)

    # ============================================================================
    # Model Endpoints
    # ============================================================================

    @api_bp.route('/api/tags', methods=['GET'])
    @api_bp.route('/tags', methods=['GET'])
    def ollama_models():
        """List the models served by the backend."""
        return jsonify(handler.handle_models_list())

    @api_bp.route('/api/show', methods=['GET', 'POST'])
    @api_bp.route('/show', methods=['GET', 'POST'])
    def ollama_show():
        """Show model details."""
        model_name = request.args.get('name', '')
        if request.method == 'POST':
            data = request.get_json(silent=True) or {}
            if isinstance(data, dict):
                model_name = data.get('name') or data.get('model') or model_name
        return handler.handle_show(model_name)

    # ============================================================================
    # Service Endpoints
    # ============================================================================

    @api_bp.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        available = backend.is_available()
        model_count = len(backend.list_models())
        return jsonify({
            'status': 'healthy' if available and model_count > 0 else 'degraded',
            'timestamp': datetime.now().isoformat(),
            'components': {
                'backend': 'available' if available else 'unavailable',
                'models': f'{model_count} available',
            },
            'endpoints': api_metrics.get_metrics_summary(),
        })

    @api_bp.route('/', methods=['GET'])
    def root():
        return jsonify({
            'service': 'olleh',
            'status': 'running',
            'endpoints': {
                'generate': '/api/generate',
                'chat': '/api/chat',
                'tags': '/api/tags',
                'show': '/api/show',
                'health': '/health',
            }
        })

    return api_bp
