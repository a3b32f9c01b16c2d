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

"""Base interface for text generation backends."""
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Sequence

from ..core.schemas import ChatMessage, GenerationParameters, ModelDescriptor


def messages_to_prompt(messages: Sequence[ChatMessage]) -> str:
    """Flatten a conversation into a single role-tagged prompt.

    Each message becomes a ``"Role: content"`` block; blocks are joined by a
    blank line in conversation order.
    """
    return "\n\n".join(f"{message.role.capitalize()}: {message.content}" for message in messages)


class GenerationBackend(ABC):
    """Capability interface over an opaque text generation backend.

    Generation methods raise ``BackendUnavailableError`` when the backend
    cannot serve requests; callers should check ``is_available`` first.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Side-effect free availability check."""
        pass

    @abstractmethod
    def prewarm(self) -> None:
        """Best-effort warm up. Never raises."""
        pass

    @abstractmethod
    def list_models(self) -> List[ModelDescriptor]:
        pass

    def model_exists(self, name: str) -> bool:
        return self.get_model_info(name) is not None

    def get_model_info(self, name: str) -> Optional[ModelDescriptor]:
        for model in self.list_models():
            if model.name == name:
                return model
        return None

    @abstractmethod
    def generate(self, model: str, prompt: str, parameters: GenerationParameters) -> str:
        """Generate the full completion for ``prompt``."""
        pass

    @abstractmethod
    def stream_generate(self, model: str, prompt: str, parameters: GenerationParameters) -> Iterator[str]:
        """Yield completion text deltas for ``prompt`` as they are produced.

        The iterator is finite and cannot be restarted. A failure raises from
        the iterator and ends it.
        """
        pass

    def chat(self, model: str, messages: Sequence[ChatMessage], parameters: GenerationParameters) -> str:
        return self.generate(model, messages_to_prompt(messages), parameters)

    def stream_chat(self, model: str, messages: Sequence[ChatMessage],
                    parameters: GenerationParameters) -> Iterator[str]:
        return self.stream_generate(model, messages_to_prompt(messages), parameters)

    @abstractmethod
    def load_adapter(self, path: str) -> None:
        """Load a fine-tune adapter.

        Raises:
            AdapterLoadError: the adapter file is missing or invalid
        """
        pass
