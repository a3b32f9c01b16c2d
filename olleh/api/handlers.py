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

"""Request handlers for the API endpoints."""
import json
import logging
import time
from typing import Dict, Any, Optional

from flask import Response, jsonify, request, stream_with_context

from ..adapters.base import RequestAdapter
from ..adapters.ollama import OllamaModelAdapter
from ..backends.base import GenerationBackend
from ..core.exceptions import BackendUnavailableError, ParameterValidationError, RequestDecodeError
from ..core.schemas import GenerationStats, InternalRequest
from ..utils.api_metrics import APIMetricsTracker

logger = logging.getLogger(__name__)


class RequestHandler:
    """Turns adapter output into JSON and NDJSON responses."""

    def __init__(self, backend: GenerationBackend, api_metrics: Optional[APIMetricsTracker] = None):
        self.backend = backend
        self.api_metrics = api_metrics or APIMetricsTracker()

    @staticmethod
    def read_json_body() -> Any:
        """Buffer the whole request body and decode it as JSON."""
        raw = request.get_data(cache=True)
        if not raw.strip():
            raise RequestDecodeError("missing request body")
        try:
            return json.loads(raw)
        except ValueError as e:
            raise RequestDecodeError(f"invalid JSON body: {e}")

    def _record(self, api_format: str, start_time: float, success: bool) -> None:
        response_time = (time.time() - start_time) * 1000
        self.api_metrics.record_request(api_format, response_time, success)

    def handle_generation(self, adapter: RequestAdapter):
        """Decode a generate/chat request and dispatch it to the streaming or blocking path."""
        start_time = time.time()
        api_format = adapter.api_format
        logger.info(f"Received {api_format} request on {request.path} ({request.content_length or 0} bytes)")

        try:
            data = self.read_json_body()
        except RequestDecodeError as e:
            logger.warning(f"Rejected {api_format} request: {e}")
            self._record(api_format, start_time, success=False)
            return jsonify({'error': str(e)}), 400

        if not self.backend.is_available():
            logger.error(f"Backend unavailable, rejecting {api_format} request")
            self._record(api_format, start_time, success=False)
            return jsonify({'error': str(BackendUnavailableError())}), 503

        try:
            request_obj = adapter.parse_request(data)
        except (RequestDecodeError, ParameterValidationError) as e:
            logger.warning(f"Failed to decode {api_format} parameters: {e}")
            self._record(api_format, start_time, success=False)
            return jsonify({'error': str(e)}), 400

        logger.info(
            f"[{request_obj.request_id}] API: {api_format}, Model: {request_obj.model_name}, "
            f"Stream: {request_obj.stream}, Prompt tokens (approx): {request_obj.prompt_tokens}, "
            f"Parameters: {request_obj.parameters.to_dict()}"
        )

        if request_obj.stream:
            return self.create_streaming_response(adapter, request_obj)
        return self.handle_non_streaming_request(adapter, request_obj)

    def create_streaming_response(self, adapter: RequestAdapter, request_obj: InternalRequest) -> Response:
        """Create an NDJSON streaming response for the request.

        Once the first line is written the status is committed, so a failing
        stream ends with an in-band error line marked ``done``.
        """
        req_id = request_obj.request_id
        stats = GenerationStats(prompt_tokens=request_obj.prompt_tokens)

        def generate_stream_content():
            try:
                for chunk in adapter.stream(request_obj):
                    stats.record(chunk)
                    yield json.dumps(adapter.format_chunk(chunk, request_obj)) + '\n'
            except Exception as e:
                logger.error(f"[{req_id}] Stream failed after {len(stats.output)} chars: {e}")
                self._record(adapter.api_format, stats.start_time, success=False)
                yield json.dumps(adapter.format_error(str(e), request_obj)) + '\n'
                return

            stats.finish()
            logger.info(
                f"[{req_id}] Streaming completed in {stats.duration:.3f}s. "
                f"Output len: {len(stats.output)}, Generated tokens (approx): {stats.eval_count}"
            )
            self._record(adapter.api_format, stats.start_time, success=True)
            yield json.dumps(adapter.format_response('', request_obj, stats)) + '\n'

        return Response(stream_with_context(generate_stream_content()),
                        mimetype='application/x-ndjson',
                        headers={'X-Request-ID': req_id})

    def handle_non_streaming_request(self, adapter: RequestAdapter, request_obj: InternalRequest):
        """Run the request to completion and return a single JSON response."""
        req_id = request_obj.request_id
        stats = GenerationStats(prompt_tokens=request_obj.prompt_tokens)

        try:
            output = adapter.invoke(request_obj)
        except BackendUnavailableError as e:
            logger.error(f"[{req_id}] Backend became unavailable: {e}")
            self._record(adapter.api_format, stats.start_time, success=False)
            return jsonify({'error': str(e)}), 503
        except Exception as e:
            logger.exception(f"[{req_id}] Non-streaming generation failed")
            self._record(adapter.api_format, stats.start_time, success=False)
            return jsonify({'error': str(e)}), 500

        stats.finish(output)
        logger.info(
            f"[{req_id}] Non-streaming completed in {stats.duration:.3f}s. "
            f"Output len: {len(output)}, Generated tokens (approx): {stats.eval_count}"
        )
        self._record(adapter.api_format, stats.start_time, success=True)

        resp = jsonify(adapter.format_response(output, request_obj, stats))
        resp.headers['X-Request-ID'] = req_id
        return resp

    def handle_models_list(self) -> Dict[str, Any]:
        """Handle model listing requests."""
        return OllamaModelAdapter.format_models_list(self.backend.list_models())

    def handle_show(self, model_name: str):
        """Describe the backend's model.

        The backend serves a single model, so ``model_name`` does not select
        among models.
        """
        models = self.backend.list_models()
        if not models:
            return jsonify({'error': 'no models available'}), 404
        logger.debug(f"Show requested for '{model_name}', describing '{models[0].name}'")
        return jsonify(OllamaModelAdapter.format_show_response(models[0]))
