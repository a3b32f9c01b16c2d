"""Tests for the HTTP endpoints, driven through Flask's test client."""

import json
import time

import pytest
from flask import Flask

from olleh.api import create_routes
from olleh.backends import StaticBackend
from olleh.core.exceptions import GenerationError


# ─────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────

def ndjson_lines(response):
    return [json.loads(line) for line in response.get_data(as_text=True).splitlines() if line]


def post_json(client, path, body):
    return client.post(path, data=json.dumps(body), content_type='application/json')


TIMING_FIELDS = ('total_duration', 'load_duration', 'prompt_eval_count',
                 'prompt_eval_duration', 'eval_count', 'eval_duration')


# ─────────────────────────────────────────────────────────────────────
# GENERATE
# ─────────────────────────────────────────────────────────────────────

class TestGenerateNonStreaming:
    """Tests for /api/generate with stream=false."""

    def test_single_json_response(self, make_client):
        client = make_client(StaticBackend(response="hello"))
        resp = post_json(client, '/api/generate', {'model': 'default', 'prompt': 'hi', 'stream': False})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['model'] == 'default'
        assert data['response'] == 'hello'
        assert data['done'] is True
        assert data['done_reason'] == 'stop'
        assert data['prompt_eval_count'] == 1
        assert data['eval_count'] == 1
        for key in TIMING_FIELDS:
            assert isinstance(data[key], int)
        assert data['load_duration'] + data['prompt_eval_duration'] + data['eval_duration'] <= data['total_duration']

    def test_stream_defaults_to_false(self, client):
        resp = post_json(client, '/api/generate', {'prompt': 'hi'})
        assert resp.status_code == 200
        assert resp.get_json()['response'] == 'Test response for: hi'

    def test_parameters_reach_backend(self, make_client):
        backend = StaticBackend()
        client = make_client(backend)
        post_json(client, '/api/generate', {'prompt': 'hi', 'options': {'temperature': 0.1}})
        assert backend.prompts == ['hi']

    def test_options_stop_list_accepted(self, client):
        body = {'prompt': 'hi', 'options': {'stop': ['\n', 'User:']}}
        resp = post_json(client, '/api/generate', body)
        assert resp.status_code == 200
        assert resp.get_json()['response'] == 'Test response for: hi'

    def test_backend_failure_is_500(self, make_client):
        class FailingBackend(StaticBackend):
            def generate(self, model, prompt, parameters):
                raise GenerationError("llama.cpp exited with code 1")

        resp = post_json(make_client(FailingBackend()), '/api/generate', {'prompt': 'hi'})
        assert resp.status_code == 500
        assert 'code 1' in resp.get_json()['error']

    def test_bare_path_alias(self, client):
        resp = post_json(client, '/generate', {'prompt': 'hi'})
        assert resp.status_code == 200


class TestGenerateStreaming:
    """Tests for /api/generate with stream=true."""

    def test_chunks_then_terminal_line(self, make_client):
        client = make_client(StaticBackend(chunks=["he", "llo"]))
        resp = post_json(client, '/api/generate', {'prompt': 'hi', 'stream': True})

        assert resp.status_code == 200
        assert resp.mimetype == 'application/x-ndjson'
        lines = ndjson_lines(resp)
        assert len(lines) == 3
        assert [(line['response'], line['done']) for line in lines[:2]] == [("he", False), ("llo", False)]

        terminal = lines[-1]
        assert terminal['response'] == ''
        assert terminal['done'] is True
        assert terminal['done_reason'] == 'stop'
        assert terminal['eval_count'] == 1
        for key in TIMING_FIELDS:
            assert key in terminal

    def test_exactly_one_done_line_last(self, client):
        lines = ndjson_lines(post_json(client, '/api/generate', {'prompt': 'hi', 'stream': True}))
        done_flags = [line['done'] for line in lines]
        assert done_flags.count(True) == 1
        assert done_flags[-1] is True

    def test_concatenation_matches_non_streaming(self, make_client):
        client = make_client(StaticBackend(response="Paris is the capital of France."))
        streamed = ndjson_lines(post_json(client, '/api/generate', {'prompt': 'q', 'stream': True}))
        single = post_json(client, '/api/generate', {'prompt': 'q'}).get_json()
        assert ''.join(line['response'] for line in streamed) == single['response']

    def test_mid_stream_failure_ends_with_error_line(self, make_client):
        backend = StaticBackend(chunks=["partial"], stream_error=GenerationError("boom"))
        resp = post_json(make_client(backend), '/api/generate', {'prompt': 'hi', 'stream': True})

        assert resp.status_code == 200
        lines = ndjson_lines(resp)
        assert lines[0]['response'] == 'partial'
        assert lines[-1]['response'] == 'Error: boom'
        assert lines[-1]['done'] is True
        assert lines[-1]['error'] == 'boom'
        assert [line['done'] for line in lines].count(True) == 1


# ─────────────────────────────────────────────────────────────────────
# CHAT
# ─────────────────────────────────────────────────────────────────────

class TestChat:
    """Tests for /api/chat."""

    def test_non_streaming_message(self, make_client):
        backend = StaticBackend(response="Hi there")
        resp = post_json(make_client(backend), '/api/chat', {
            'messages': [{'role': 'system', 'content': 'Be kind.'}, {'role': 'user', 'content': 'hi'}]
        })

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['message'] == {'role': 'assistant', 'content': 'Hi there'}
        assert data['done'] is True
        assert backend.prompts == ["System: Be kind.\n\nUser: hi"]

    def test_streaming_messages(self, make_client):
        client = make_client(StaticBackend(chunks=["A", "B"]))
        lines = ndjson_lines(post_json(client, '/chat', {
            'messages': [{'role': 'user', 'content': 'hi'}], 'stream': True
        }))
        assert [line['message']['content'] for line in lines] == ["A", "B", ""]
        assert lines[-1]['done'] is True

    def test_invalid_role_is_400(self, client):
        resp = post_json(client, '/api/chat', {'messages': [{'role': 'robot', 'content': 'x'}]})
        assert resp.status_code == 400


# ─────────────────────────────────────────────────────────────────────
# REQUEST ERRORS
# ─────────────────────────────────────────────────────────────────────

class TestRequestErrors:
    """Tests for rejected requests."""

    def test_invalid_json(self, client):
        resp = client.post('/api/generate', data='{not json', content_type='application/json')
        assert resp.status_code == 400
        assert 'error' in resp.get_json()

    def test_empty_body(self, client):
        resp = client.post('/api/generate', data='', content_type='application/json')
        assert resp.status_code == 400

    def test_non_object_body(self, client):
        resp = post_json(client, '/api/generate', [1, 2, 3])
        assert resp.status_code == 400

    def test_out_of_domain_parameter_names_field(self, client):
        resp = post_json(client, '/api/generate', {'prompt': 'hi', 'temperature': 3.5})
        assert resp.status_code == 400
        assert 'temperature' in resp.get_json()['error']

    def test_wrong_parameter_type(self, client):
        resp = post_json(client, '/api/generate', {'prompt': 'hi', 'seed': 'abc'})
        assert resp.status_code == 400

    @pytest.mark.parametrize("path", ['/api/generate', '/api/chat'])
    def test_unavailable_backend_is_503(self, make_client, path):
        resp = post_json(make_client(StaticBackend(available=False)), path, {'prompt': 'hi', 'messages': []})
        assert resp.status_code == 503
        assert 'not available' in resp.get_json()['error']


# ─────────────────────────────────────────────────────────────────────
# MODELS AND HEALTH
# ─────────────────────────────────────────────────────────────────────

class TestModelEndpoints:
    """Tests for /api/tags and /api/show."""

    def test_tags(self, client):
        resp = client.get('/api/tags')
        assert resp.status_code == 200
        models = resp.get_json()['models']
        assert [m['name'] for m in models] == ['default']
        assert client.get('/tags').get_json() == resp.get_json()

    def test_show_by_query(self, client):
        resp = client.get('/api/show?name=default')
        assert resp.status_code == 200
        data = resp.get_json()
        for key in ('license', 'modelfile', 'parameters', 'template', 'details',
                    'model_info', 'capabilities', 'modified_at'):
            assert key in data

    def test_show_ignores_name(self, client):
        by_query = client.get('/api/show?name=anything').get_json()
        by_body = post_json(client, '/api/show', {'name': 'other'}).get_json()
        assert by_query == by_body


class TestHealth:
    """Tests for /health."""

    def test_healthy_backend(self, client):
        data = client.get('/health').get_json()
        assert data['status'] == 'healthy'
        assert data['components']['backend'] == 'available'

    def test_degraded_backend(self, make_client):
        data = make_client(StaticBackend(available=False)).get('/health').get_json()
        assert data['status'] == 'degraded'

    def test_request_metrics(self, client):
        post_json(client, '/api/generate', {'prompt': 'hi'})
        post_json(client, '/api/generate', {'prompt': 'hi', 'temperature': 9})
        metrics = client.get('/health').get_json()['endpoints']['ollama_generate']
        assert metrics['total_requests'] == 2
        assert metrics['success_rate'] == 50.0

    def test_streaming_metrics_cover_whole_stream(self, make_client):
        class SlowBackend(StaticBackend):
            def stream_generate(self, model, prompt, parameters):
                for chunk in ("slow", " reply"):
                    time.sleep(0.05)
                    yield chunk

        client = make_client(SlowBackend())
        lines = ndjson_lines(post_json(client, '/api/generate', {'prompt': 'hi', 'stream': True}))
        assert lines[-1]['done'] is True
        assert lines[-1]['total_duration'] >= 100_000_000

        metrics = client.get('/health').get_json()['endpoints']['ollama_generate']
        assert metrics['total_requests'] == 1
        assert metrics['success_rate'] == 100.0
        assert metrics['avg_response_time'] >= 100.0

    def test_blueprint_needs_only_backend(self):
        app = Flask(__name__)
        app.register_blueprint(create_routes(StaticBackend()))
        assert app.test_client().get('/health').status_code == 200
