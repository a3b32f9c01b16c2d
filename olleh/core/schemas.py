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

"""Core data structures shared by the HTTP service and the REPL."""
import math
import time
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Tuple

from .exceptions import ParameterValidationError, RequestDecodeError


def approximate_tokens(text: str) -> int:
    """Approximate a token count as one token per four characters.

    No tokenizer is exposed by the backend, so clients only ever see this
    heuristic. Non-empty text always counts as at least one token.
    """
    if not text:
        return 0
    return max(1, len(text) // 4)


# Wire names of the generation parameters, in serialization order.
PARAMETER_FIELDS = ('seed', 'temperature', 'top_p', 'max_tokens', 'stop')

# Ollama ``options`` keys mapped onto parameter fields.
OPTION_KEYS = {
    'seed': 'seed',
    'temperature': 'temperature',
    'top_p': 'top_p',
    'num_predict': 'max_tokens',
    'stop': 'stop',
}

# Names accepted by ``/set parameter`` in the REPL.
REPL_PARAMETER_NAMES = {
    'seed': 'seed',
    'temperature': 'temperature',
    'top-p': 'top_p',
    'max-tokens': 'max_tokens',
    'stop': 'stop',
}

_DOMAIN_MESSAGES = {
    'seed': 'Must be an integer.',
    'temperature': 'Must be between 0.0 and 2.0.',
    'top_p': 'Must be between 0.0 and 1.0.',
    'max_tokens': 'Must be a positive integer.',
}


@dataclass
class GenerationParameters:
    """Generation parameter bag. ``None`` means "use the backend default"."""
    seed: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[str] = None

    def validate(self) -> None:
        """Check every set field against its domain.

        Raises:
            ParameterValidationError: naming every out-of-domain field
        """
        errors = {}
        if self.temperature is not None and not _in_range(self.temperature, 0.0, 2.0):
            errors['temperature'] = _DOMAIN_MESSAGES['temperature']
        if self.top_p is not None and not _in_range(self.top_p, 0.0, 1.0):
            errors['top_p'] = _DOMAIN_MESSAGES['top_p']
        if self.max_tokens is not None and self.max_tokens <= 0:
            errors['max_tokens'] = _DOMAIN_MESSAGES['max_tokens']
        if errors:
            raise ParameterValidationError(errors)

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize only the fields that are set."""
        return {name: getattr(self, name) for name in PARAMETER_FIELDS if getattr(self, name) is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationParameters':
        """Decode parameters from a request body.

        Top-level keys win over the Ollama ``options`` sub-document.

        Raises:
            RequestDecodeError: a field has the wrong JSON type
            ParameterValidationError: a field lies outside its domain
        """
        options = data.get('options')
        if options is None:
            options = {}
        if not isinstance(options, dict):
            raise RequestDecodeError("'options' must be a JSON object")

        raw: Dict[str, Any] = {}
        for option_key, name in OPTION_KEYS.items():
            if options.get(option_key) is not None:
                raw[name] = options[option_key]
        if isinstance(raw.get('stop'), list):
            # Ollama clients send a list of stop strings; only the first is used.
            stops = raw.pop('stop')
            if not all(isinstance(s, str) for s in stops):
                raise RequestDecodeError("'options.stop' must be a list of strings")
            if stops:
                raw['stop'] = stops[0]
        for name in PARAMETER_FIELDS:
            if data.get(name) is not None:
                raw[name] = data[name]

        values: Dict[str, Any] = {}
        for name, value in raw.items():
            if name in ('seed', 'max_tokens'):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise RequestDecodeError(f"'{name}' must be an integer")
                values[name] = value
            elif name in ('temperature', 'top_p'):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise RequestDecodeError(f"'{name}' must be a number")
                values[name] = float(value)
            elif name == 'stop':
                if not isinstance(value, str):
                    raise RequestDecodeError("'stop' must be a string")
                values[name] = value

        params = cls(**values)
        params.validate()
        return params

    @staticmethod
    def parse_value(name: str, raw: str) -> Tuple[str, Any]:
        """Convert REPL text for parameter ``name`` into ``(field, value)``.

        Raises:
            KeyError: ``name`` is not a known parameter
            ParameterValidationError: the value is malformed or out of domain
        """
        field_name = REPL_PARAMETER_NAMES[name]
        if field_name == 'stop':
            return field_name, raw

        try:
            if field_name in ('seed', 'max_tokens'):
                value = int(raw)
            else:
                value = float(raw)
        except ValueError:
            raise ParameterValidationError({field_name: _DOMAIN_MESSAGES[field_name]})

        GenerationParameters(**{field_name: value}).validate()
        return field_name, value


def _in_range(value: float, low: float, high: float) -> bool:
    return not math.isnan(value) and low <= value <= high


ROLES = ('system', 'user', 'assistant', 'tool')


@dataclass
class ChatMessage:
    """A single conversation message."""
    role: str
    content: str

    @classmethod
    def from_dict(cls, data: Any) -> 'ChatMessage':
        if not isinstance(data, dict):
            raise RequestDecodeError("each message must be a JSON object")
        role = data.get('role')
        if role not in ROLES:
            raise RequestDecodeError(f"invalid message role: {role!r}")
        content = data.get('content', '')
        if content is None:
            content = ''
        if not isinstance(content, str):
            raise RequestDecodeError("message content must be a string")
        return cls(role=role, content=content)

    def to_dict(self) -> Dict[str, str]:
        return {'role': self.role, 'content': self.content}


@dataclass(frozen=True)
class ModelDetails:
    """Structural details of a model as reported on the wire."""
    format: str
    family: str
    families: Tuple[str, ...]
    parameter_size: str
    quantization_level: str
    parent_model: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'parent_model': self.parent_model,
            'format': self.format,
            'family': self.family,
            'families': list(self.families),
            'parameter_size': self.parameter_size,
            'quantization_level': self.quantization_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelDetails':
        return cls(
            format=data.get('format', ''),
            family=data.get('family', ''),
            families=tuple(data.get('families') or ()),
            parameter_size=data.get('parameter_size', ''),
            quantization_level=data.get('quantization_level', ''),
            parent_model=data.get('parent_model') or '',
        )


@dataclass(frozen=True)
class ModelDescriptor:
    """Backend-supplied description of a model."""
    name: str
    digest: str
    size: int
    modified_at: str
    details: ModelDetails
    capabilities: Tuple[str, ...]
    license: str
    temperature: float
    context_length: int
    embedding_length: int


@dataclass
class SessionSettings:
    """Mutable settings owned by one REPL session."""
    system: str = ''
    history: bool = True
    wordwrap: bool = True
    format: bool = False
    verbose: bool = False


@dataclass
class InternalRequest:
    """Unified internal request format"""
    request_id: str
    api_format: str  # ollama_generate, ollama_chat
    model_name: str
    prompt: str
    stream: bool
    parameters: GenerationParameters
    messages: List[ChatMessage] = field(default_factory=list)
    prompt_tokens: int = 0


@dataclass
class GenerationStats:
    """Wall-clock and token accounting for a single request.

    The backend reports no timings, so the Ollama duration fields are
    synthesized from the wall-clock total: 10% load, 10% prompt evaluation
    and 80% generation.
    """
    prompt_tokens: int
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    output: str = ''

    def record(self, chunk: str) -> None:
        self.output += chunk

    def finish(self, output: Optional[str] = None) -> None:
        if output is not None:
            self.output = output
        self.end_time = time.time()

    @property
    def duration(self) -> float:
        """Seconds elapsed, live until ``finish`` is called."""
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def eval_count(self) -> int:
        return approximate_tokens(self.output)

    def timing_fields(self) -> Dict[str, int]:
        total_duration_ns = int(self.duration * 1e9)
        return {
            'total_duration': total_duration_ns,
            'load_duration': int(total_duration_ns * 0.1),
            'prompt_eval_count': self.prompt_tokens,
            'prompt_eval_duration': int(total_duration_ns * 0.1),
            'eval_count': self.eval_count,
            'eval_duration': int(total_duration_ns * 0.8),
        }
