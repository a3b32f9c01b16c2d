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

"""Base adapter for request/response format conversion."""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, Iterator, Tuple

from ..backends.base import GenerationBackend
from ..core.exceptions import RequestDecodeError
from ..core.schemas import InternalRequest, GenerationParameters, GenerationStats

DEFAULT_MODEL = 'default'


class RequestAdapter(ABC):
    """Base class for converting between a wire format and backend calls.

    Adapters hold no per-request state; one instance may serve concurrent
    requests.
    """

    api_format = 'unknown'

    def __init__(self, backend: GenerationBackend):
        """Initialize adapter with the generation backend."""
        self.backend = backend

    @staticmethod
    def new_request_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    def parse_common_fields(self, data: Any) -> Tuple[str, bool, GenerationParameters]:
        """Decode the model, stream flag and parameters shared by all requests.

        Raises:
            RequestDecodeError: the body is not a JSON object or a field has the wrong type
            ParameterValidationError: a parameter lies outside its domain
        """
        if not isinstance(data, dict):
            raise RequestDecodeError("Request body must be a JSON object")

        model_name = data.get('model')
        if not isinstance(model_name, str) or not model_name:
            model_name = DEFAULT_MODEL
        stream = data.get('stream')
        if not isinstance(stream, bool):
            stream = False
        return model_name, stream, GenerationParameters.from_dict(data)

    def base_fields(self, request: InternalRequest) -> Dict[str, Any]:
        return {
            'model': request.model_name,
            'created_at': self.timestamp(),
        }

    @abstractmethod
    def parse_request(self, data: Any) -> InternalRequest:
        """Parse an external API request into internal format."""
        pass

    @abstractmethod
    def invoke(self, request: InternalRequest) -> str:
        """Run the request to completion on the backend."""
        pass

    @abstractmethod
    def stream(self, request: InternalRequest) -> Iterator[str]:
        """Run the request on the backend, yielding text deltas."""
        pass

    @abstractmethod
    def format_response(self, output: str, request: InternalRequest, stats: GenerationStats) -> Dict[str, Any]:
        """Format the terminal (``done=true``) response carrying timing fields."""
        pass

    @abstractmethod
    def format_chunk(self, chunk: str, request: InternalRequest) -> Dict[str, Any]:
        """Format one intermediate streamed response."""
        pass

    @abstractmethod
    def format_error(self, message: str, request: InternalRequest) -> Dict[str, Any]:
        """Format the terminal response of a stream that failed mid-way."""
        pass
