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

"""Exceptions raised by the backend, translator and session layers."""
from typing import Dict


class OllehError(Exception):
    """Base exception for olleh errors."""
    pass


class BackendUnavailableError(OllehError):
    """Raised when the generation backend cannot serve requests."""

    def __init__(self, message: str = "Model backend is not available on this system."):
        super().__init__(message)


class GenerationError(OllehError):
    """Raised when the backend fails while producing text."""
    pass


class RequestDecodeError(OllehError):
    """Raised when a request body or one of its sub-documents cannot be decoded."""
    pass


class ParameterValidationError(OllehError):
    """Raised when one or more generation parameters lie outside their domain.

    ``errors`` maps each offending field name to a human readable message.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"Invalid generation parameters ({detail})")


class AdapterLoadError(OllehError):
    """Raised when a fine-tune adapter file is missing or invalid."""
    pass
