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

"""Ollama API format adapters."""
from typing import Dict, List, Any, Iterator, Optional

from .base import RequestAdapter
from ..backends.base import messages_to_prompt
from ..core.exceptions import RequestDecodeError
from ..core.schemas import (
    approximate_tokens, ChatMessage, GenerationStats, InternalRequest,
    ModelDescriptor, ModelDetails
)

PROMPT_TEMPLATE = '{{ .Prompt }}'


class OllamaGenerateAdapter(RequestAdapter):
    """Adapter for Ollama generate API format."""

    api_format = 'ollama_generate'

    def parse_request(self, data: Any) -> InternalRequest:
        """Parse Ollama generate request."""
        model_name, stream, parameters = self.parse_common_fields(data)
        prompt = data.get('prompt')
        if not isinstance(prompt, str):
            prompt = ''

        return InternalRequest(
            request_id=self.new_request_id(),
            api_format=self.api_format,
            model_name=model_name,
            prompt=prompt,
            stream=stream,
            parameters=parameters,
            prompt_tokens=approximate_tokens(prompt),
        )

    def invoke(self, request: InternalRequest) -> str:
        return self.backend.generate(request.model_name, request.prompt, request.parameters)

    def stream(self, request: InternalRequest) -> Iterator[str]:
        return self.backend.stream_generate(request.model_name, request.prompt, request.parameters)

    def format_response(self, output: str, request: InternalRequest, stats: GenerationStats) -> Dict[str, Any]:
        """Format response in Ollama generate format."""
        resp_dict = self.base_fields(request)
        resp_dict.update({
            'response': output,
            'done': True,
            'done_reason': 'stop',
        })
        resp_dict.update(stats.timing_fields())
        return resp_dict

    def format_chunk(self, chunk: str, request: InternalRequest) -> Dict[str, Any]:
        resp_dict = self.base_fields(request)
        resp_dict.update({'response': chunk, 'done': False})
        return resp_dict

    def format_error(self, message: str, request: InternalRequest) -> Dict[str, Any]:
        resp_dict = self.base_fields(request)
        resp_dict.update({'response': f"Error: {message}", 'done': True, 'error': message})
        return resp_dict


class OllamaChatAdapter(RequestAdapter):
    """Adapter for Ollama chat API format."""

    api_format = 'ollama_chat'

    def parse_request(self, data: Any) -> InternalRequest:
        """Parse Ollama chat request."""
        model_name, stream, parameters = self.parse_common_fields(data)

        raw_messages = data.get('messages')
        if raw_messages is None:
            raw_messages = []
        if not isinstance(raw_messages, list):
            raise RequestDecodeError("'messages' must be a JSON array")
        messages = [ChatMessage.from_dict(message) for message in raw_messages]

        return InternalRequest(
            request_id=self.new_request_id(),
            api_format=self.api_format,
            model_name=model_name,
            prompt=messages_to_prompt(messages),
            stream=stream,
            parameters=parameters,
            messages=messages,
            prompt_tokens=approximate_tokens('\n'.join(message.content for message in messages)),
        )

    def invoke(self, request: InternalRequest) -> str:
        return self.backend.chat(request.model_name, request.messages, request.parameters)

    def stream(self, request: InternalRequest) -> Iterator[str]:
        return self.backend.stream_chat(request.model_name, request.messages, request.parameters)

    @staticmethod
    def _assistant(content: str) -> Dict[str, str]:
        return ChatMessage(role='assistant', content=content).to_dict()

    def format_response(self, output: str, request: InternalRequest, stats: GenerationStats) -> Dict[str, Any]:
        """Format response in Ollama chat format."""
        resp_dict = self.base_fields(request)
        resp_dict.update({
            'message': self._assistant(output),
            'done': True,
            'done_reason': 'stop',
        })
        resp_dict.update(stats.timing_fields())
        return resp_dict

    def format_chunk(self, chunk: str, request: InternalRequest) -> Dict[str, Any]:
        resp_dict = self.base_fields(request)
        resp_dict.update({'message': self._assistant(chunk), 'done': False})
        return resp_dict

    def format_error(self, message: str, request: InternalRequest) -> Dict[str, Any]:
        resp_dict = self.base_fields(request)
        resp_dict.update({'message': self._assistant(f"Error: {message}"), 'done': True, 'error': message})
        return resp_dict


class OllamaModelAdapter:
    """Maps model descriptors to and from the Ollama tags/show formats."""

    @staticmethod
    def format_model_entry(model: ModelDescriptor) -> Dict[str, Any]:
        return {
            'name': model.name,
            'model': model.name,
            'modified_at': model.modified_at,
            'size': model.size,
            'digest': model.digest,
            'details': model.details.to_dict(),
        }

    @classmethod
    def format_models_list(cls, models: List[ModelDescriptor]) -> Dict[str, Any]:
        return {'models': [cls.format_model_entry(model) for model in models]}

    @staticmethod
    def format_show_response(model: ModelDescriptor) -> Dict[str, Any]:
        family = model.details.family
        return {
            'license': model.license,
            'modelfile': (
                '# Modelfile generated by "olleh show"\n'
                '# To build a new Modelfile based on this, replace FROM with:\n'
                f'# FROM {model.name}\n\n'
                f'FROM {model.name}\n'
                f'TEMPLATE """{PROMPT_TEMPLATE}"""\n'
                f'PARAMETER temperature {model.temperature}\n'
            ),
            'parameters': f'{"temperature":<30} {model.temperature}',
            'template': PROMPT_TEMPLATE,
            'details': model.details.to_dict(),
            'model_info': {
                'general.architecture': family,
                'general.basename': model.name,
                f'{family}.context_length': model.context_length,
                f'{family}.embedding_length': model.embedding_length,
            },
            'capabilities': list(model.capabilities),
            'modified_at': model.modified_at,
        }

    @staticmethod
    def parse_model(entry: Dict[str, Any], show: Optional[Dict[str, Any]] = None) -> ModelDescriptor:
        """Rebuild a descriptor from a tags entry and, optionally, a show response."""
        show = show or {}
        details = ModelDetails.from_dict(entry.get('details') or show.get('details') or {})
        model_info = show.get('model_info') or {}

        temperature = 0.0
        for line in (show.get('parameters') or '').splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[0] == 'temperature':
                temperature = float(parts[1])

        return ModelDescriptor(
            name=entry.get('name') or entry.get('model', ''),
            digest=entry.get('digest', ''),
            size=entry.get('size', 0),
            modified_at=entry.get('modified_at') or show.get('modified_at', ''),
            details=details,
            capabilities=tuple(show.get('capabilities') or ()),
            license=show.get('license', ''),
            temperature=temperature,
            context_length=model_info.get(f'{details.family}.context_length', 0),
            embedding_length=model_info.get(f'{details.family}.embedding_length', 0),
        )
