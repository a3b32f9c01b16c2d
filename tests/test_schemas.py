"""Tests for olleh.core.schemas module."""

import math
import time

import pytest

from olleh.core.exceptions import ParameterValidationError, RequestDecodeError
from olleh.core.schemas import (
    approximate_tokens, ChatMessage, GenerationParameters, GenerationStats, SessionSettings
)


class TestApproximateTokens:
    """Tests for the four-characters-per-token heuristic."""

    def test_empty_text_is_zero(self):
        assert approximate_tokens("") == 0

    def test_short_text_counts_one(self):
        assert approximate_tokens("hi") == 1
        assert approximate_tokens("hello") == 1

    def test_longer_text(self):
        assert approximate_tokens("x" * 40) == 10
        assert approximate_tokens("x" * 43) == 10


class TestGenerationParametersValidation:
    """Tests for domain validation."""

    def test_unset_parameters_are_valid(self):
        params = GenerationParameters()
        params.validate()
        assert params.is_empty()

    def test_boundaries_accepted(self):
        GenerationParameters(temperature=0.0, top_p=1.0, max_tokens=1, seed=-5).validate()
        GenerationParameters(temperature=2.0, top_p=0.0).validate()

    def test_every_offending_field_is_named(self):
        params = GenerationParameters(temperature=3.5, top_p=1.5, max_tokens=0)
        with pytest.raises(ParameterValidationError) as exc_info:
            params.validate()
        assert set(exc_info.value.errors) == {'temperature', 'top_p', 'max_tokens'}
        assert 'temperature' in str(exc_info.value)

    def test_valid_fields_are_not_reported(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            GenerationParameters(temperature=0.5, top_p=-0.1).validate()
        assert list(exc_info.value.errors) == ['top_p']

    def test_nan_rejected(self):
        with pytest.raises(ParameterValidationError):
            GenerationParameters(temperature=math.nan).validate()

    def test_to_dict_only_set_fields(self):
        params = GenerationParameters(temperature=0.7, stop="\n")
        assert params.to_dict() == {'temperature': 0.7, 'stop': "\n"}


class TestGenerationParametersFromDict:
    """Tests for decoding parameters from request bodies."""

    def test_top_level_fields(self):
        params = GenerationParameters.from_dict({'temperature': 1, 'top_p': 0.9, 'max_tokens': 12, 'seed': 3})
        assert params.temperature == 1.0
        assert isinstance(params.temperature, float)
        assert params.top_p == 0.9
        assert params.max_tokens == 12
        assert params.seed == 3

    def test_options_document(self):
        params = GenerationParameters.from_dict({'options': {'num_predict': 64, 'temperature': 0.2}})
        assert params.max_tokens == 64
        assert params.temperature == 0.2

    def test_top_level_wins_over_options(self):
        params = GenerationParameters.from_dict({'temperature': 0.5, 'options': {'temperature': 1.5}})
        assert params.temperature == 0.5

    def test_options_stop_list_uses_first_entry(self):
        params = GenerationParameters.from_dict({'options': {'stop': ['\n', 'User:']}})
        assert params.stop == '\n'

    def test_options_empty_stop_list_is_unset(self):
        params = GenerationParameters.from_dict({'options': {'stop': []}})
        assert params.stop is None

    def test_top_level_stop_wins_over_options_list(self):
        params = GenerationParameters.from_dict({'stop': 'END', 'options': {'stop': ['\n']}})
        assert params.stop == 'END'

    def test_null_values_mean_unset(self):
        params = GenerationParameters.from_dict({'temperature': None, 'options': None})
        assert params.is_empty()

    @pytest.mark.parametrize("body", [
        {'temperature': 'hot'},
        {'seed': True},
        {'max_tokens': 1.5},
        {'stop': ['a', 'b']},
        {'options': 'fast'},
        {'options': {'stop': ['a', 1]}},
    ])
    def test_wrong_types_are_decode_errors(self, body):
        with pytest.raises(RequestDecodeError):
            GenerationParameters.from_dict(body)

    def test_out_of_domain_is_validation_error(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            GenerationParameters.from_dict({'options': {'top_p': 2}})
        assert 'top_p' in exc_info.value.errors


class TestParseValue:
    """Tests for converting REPL text to parameter values."""

    def test_repl_names_map_to_fields(self):
        assert GenerationParameters.parse_value('top-p', '0.5') == ('top_p', 0.5)
        assert GenerationParameters.parse_value('max-tokens', '100') == ('max_tokens', 100)
        assert GenerationParameters.parse_value('seed', '-1') == ('seed', -1)
        assert GenerationParameters.parse_value('stop', 'END') == ('stop', 'END')

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            GenerationParameters.parse_value('mirostat', '1')

    def test_malformed_number(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            GenerationParameters.parse_value('seed', 'abc')
        assert exc_info.value.errors == {'seed': 'Must be an integer.'}

    def test_out_of_domain(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            GenerationParameters.parse_value('temperature', '3.5')
        assert exc_info.value.errors == {'temperature': 'Must be between 0.0 and 2.0.'}


class TestChatMessage:
    """Tests for ChatMessage decoding."""

    def test_from_dict(self):
        msg = ChatMessage.from_dict({'role': 'user', 'content': 'Hello'})
        assert msg == ChatMessage(role='user', content='Hello')
        assert msg.to_dict() == {'role': 'user', 'content': 'Hello'}

    def test_unknown_role_rejected(self):
        with pytest.raises(RequestDecodeError):
            ChatMessage.from_dict({'role': 'narrator', 'content': 'x'})

    def test_non_string_content_rejected(self):
        with pytest.raises(RequestDecodeError):
            ChatMessage.from_dict({'role': 'user', 'content': 42})


class TestGenerationStats:
    """Tests for synthesized timing fields."""

    def test_timing_split(self):
        stats = GenerationStats(prompt_tokens=3, start_time=100.0)
        stats.end_time = 102.0
        stats.output = "x" * 20

        fields = stats.timing_fields()
        assert fields['total_duration'] == 2_000_000_000
        assert fields['load_duration'] == 200_000_000
        assert fields['prompt_eval_duration'] == 200_000_000
        assert fields['eval_duration'] == 1_600_000_000
        assert fields['prompt_eval_count'] == 3
        assert fields['eval_count'] == 5

    def test_record_accumulates_output(self):
        stats = GenerationStats(prompt_tokens=0)
        stats.record("he")
        stats.record("llo")
        stats.finish()
        assert stats.output == "hello"
        assert stats.end_time is not None
        assert stats.end_time <= time.time()

    def test_finish_with_output_replaces_text(self):
        stats = GenerationStats(prompt_tokens=0)
        stats.finish("complete")
        assert stats.eval_count == 2


def test_session_settings_defaults():
    settings = SessionSettings()
    assert settings.system == ''
    assert settings.history is True
    assert settings.wordwrap is True
    assert settings.format is False
    assert settings.verbose is False
