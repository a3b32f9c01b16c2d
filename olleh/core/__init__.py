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

"""Core data structures and errors."""

from .exceptions import (
    OllehError, BackendUnavailableError, GenerationError,
    RequestDecodeError, ParameterValidationError, AdapterLoadError
)
from .schemas import (
    approximate_tokens, GenerationParameters, ChatMessage, ModelDetails,
    ModelDescriptor, SessionSettings, InternalRequest, GenerationStats
)

__all__ = [
    'OllehError',
    'BackendUnavailableError',
    'GenerationError',
    'RequestDecodeError',
    'ParameterValidationError',
    'AdapterLoadError',
    'approximate_tokens',
    'GenerationParameters',
    'ChatMessage',
    'ModelDetails',
    'ModelDescriptor',
    'SessionSettings',
    'InternalRequest',
    'GenerationStats',
]
