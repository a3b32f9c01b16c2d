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

"""Fixed-response backend for tests and offline demos."""
import logging
import re
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence

from .base import GenerationBackend
from ..core.exceptions import AdapterLoadError, BackendUnavailableError
from ..core.schemas import GenerationParameters, ModelDescriptor, ModelDetails

logger = logging.getLogger(__name__)

STATIC_MODEL = ModelDescriptor(
    name='default',
    digest='',
    size=0,
    modified_at=datetime(2025, 1, 1, tzinfo=timezone.utc).isoformat(),
    details=ModelDetails(
        format='static',
        family='static',
        families=('static',),
        parameter_size='unknown',
        quantization_level='unknown',
    ),
    capabilities=('completion',),
    license='Apache 2.0',
    temperature=0.8,
    context_length=4096,
    embedding_length=0,
)


class StaticBackend(GenerationBackend):
    """Backend that answers every prompt with canned text.

    Args:
        available: value reported by ``is_available``
        response: full text returned by ``generate``; defaults to
            ``"Test response for: <prompt>"``
        chunks: chunks yielded by ``stream_generate``; defaults to ``response``
            split at word boundaries, or the canned four-chunk reply when no
            response is configured
        stream_error: raised by the stream after all chunks are yielded
    """

    def __init__(self, available: bool = True, response: Optional[str] = None,
                 chunks: Optional[Sequence[str]] = None, stream_error: Optional[Exception] = None):
        self.available = available
        self.response = response
        self.chunks = list(chunks) if chunks is not None else None
        self.stream_error = stream_error
        self.prewarmed = False
        self.adapter_path: Optional[str] = None
        self.prompts: List[str] = []

    def is_available(self) -> bool:
        return self.available

    def prewarm(self) -> None:
        self.prewarmed = True

    def list_models(self) -> List[ModelDescriptor]:
        return [STATIC_MODEL]

    def _check_availability(self) -> None:
        if not self.available:
            raise BackendUnavailableError()

    def generate(self, model: str, prompt: str, parameters: GenerationParameters) -> str:
        self._check_availability()
        self.prompts.append(prompt)
        if self.response is not None:
            return self.response
        return f"Test response for: {prompt}"

    def stream_generate(self, model: str, prompt: str, parameters: GenerationParameters) -> Iterator[str]:
        self._check_availability()
        self.prompts.append(prompt)
        return self._iter_chunks(self._chunks_for(prompt))

    def _chunks_for(self, prompt: str) -> List[str]:
        if self.chunks is not None:
            return list(self.chunks)
        if self.response is not None:
            return re.findall(r'\s*\S+|\s+$', self.response)
        return ["Test", " streaming", " response", f" for: {prompt}"]

    def _iter_chunks(self, chunks: List[str]) -> Iterator[str]:
        for chunk in chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    def load_adapter(self, path: str) -> None:
        if not path:
            raise AdapterLoadError("Adapter path is empty")
        self.adapter_path = path
        logger.info(f"Static backend recorded adapter: {path}")
