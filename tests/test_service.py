# tests/test_service.py
import copy
import json
import threading

import httpx
import pytest

from sims4_translator.ai.exceptions import AbortError, BackendError, TranslationError
from sims4_translator.ai.service import AIService, validate_ai_config
from sims4_translator.config import DEFAULT_CONFIG
from sims4_translator.translation.cancellation import AbortReason, CancelToken


def make_config(**provider_overrides):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["openai"]["api_key"] = "sk-test-1234"
    config["openai"].update(provider_overrides)
    return config


def completion(content, prompt_tokens=11, completion_tokens=7):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    })


def make_service(handler, config=None, **kwargs):
    return AIService(
        config=config or make_config(),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# ------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------

class TestTranslateBatch:

    def test_sends_bearer_token_and_prompt(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return completion('{"0x1": "你好"}')

        service = make_service(handler)
        text = service.translate_batch({"0x1": "Hello {0.SimFirstName}"}, instruction="Keep it casual")

        assert text == '{"0x1": "你好"}'
        assert seen["auth"] == "Bearer sk-test-1234"
        assert seen["url"] == DEFAULT_CONFIG["openai"]["api_url"]
        body = seen["body"]
        assert body["model"] == "gpt-4o-mini"
        assert body["messages"][0]["role"] == "system"
        prompt = body["messages"][1]["content"]
        assert '"0x1": "Hello {0.SimFirstName}"' in prompt
        assert "Chinese (Simplified)" in prompt
        assert "CHS_CN" in prompt
        assert "Keep it casual" in prompt

    def test_model_override_and_token_usage(self):
        models = []

        def handler(request):
            models.append(json.loads(request.content)["model"])
            return completion("{}", prompt_tokens=5, completion_tokens=3)

        service = make_service(handler, model_override="gpt-4o")
        service.translate_batch({"A": "a"})
        service.translate_batch({"B": "b"})

        assert models == ["gpt-4o", "gpt-4o"]
        assert service.get_last_token_usage() == {"prompt_tokens": 5, "completion_tokens": 3}
        assert service.get_total_token_usage() == {"prompt_tokens": 10, "completion_tokens": 6}

    def test_empty_batch_sends_nothing(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert make_service(handler).translate_batch({}) == "{}"

    def test_custom_provider(self):
        config = make_config()
        config["my-llm"] = {
            "api_key": "local-key",
            "models": ["llama3"],
            "api_url": "http://localhost:11434/v1/chat/completions",
        }

        def handler(request):
            assert request.headers["Authorization"] == "Bearer local-key"
            return completion('{"A": "a"}')

        service = make_service(handler, config=config, provider_override="my-llm")
        assert service.provider_display_name() == "My Llm"
        assert service.translate_batch({"A": "x"}) == '{"A": "a"}'


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------

class TestBackendErrors:

    def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "overloaded"}})

        with pytest.raises(BackendError) as exc_info:
            make_service(handler).translate_batch({"A": "a"})

        assert exc_info.value.status_code == 500
        assert "overloaded" in str(exc_info.value)

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(BackendError) as exc_info:
            make_service(handler).translate_batch({"A": "a"})

        assert exc_info.value.code == "timeout"

    def test_invalid_json_body(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>gateway</html>")

        with pytest.raises(BackendError):
            make_service(handler).translate_batch({"A": "a"})

    def test_missing_content(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(BackendError):
            make_service(handler).translate_batch({"A": "a"})

    def test_missing_api_key(self):
        config = copy.deepcopy(DEFAULT_CONFIG)

        with pytest.raises(BackendError) as exc_info:
            make_service(lambda request: completion("{}"), config=config).translate_batch({"A": "a"})

        assert exc_info.value.code == "ai_config_missing"


# ------------------------------------------------------------------
# Cancellation
# ------------------------------------------------------------------

def test_cancel_abandons_in_flight_request():
    release = threading.Event()

    def handler(request):
        release.wait(5)
        return completion('{"A": "late"}')

    token = CancelToken()
    timer = threading.Timer(0.05, token.cancel, args=(AbortReason.PAUSE,))
    timer.start()
    try:
        with pytest.raises(AbortError) as exc_info:
            make_service(handler).translate_batch({"A": "a"}, token=token)
    finally:
        release.set()
        timer.cancel()

    assert exc_info.value.reason == AbortReason.PAUSE


def test_already_cancelled_token_aborts():
    token = CancelToken()
    token.cancel(AbortReason.CANCEL)

    with pytest.raises(AbortError):
        make_service(lambda request: completion("{}")).translate_batch({"A": "a"}, token=token)


# ------------------------------------------------------------------
# Configuration checks
# ------------------------------------------------------------------

class TestValidateConfig:

    def test_valid(self):
        validate_ai_config(make_config())

    def test_placeholder_key(self):
        with pytest.raises(TranslationError) as exc_info:
            validate_ai_config(copy.deepcopy(DEFAULT_CONFIG))
        assert exc_info.value.code == "ai_config_missing"
        assert exc_info.value.details["missing_field"] == "api_key"

    def test_unknown_provider(self):
        with pytest.raises(TranslationError):
            validate_ai_config(make_config(), provider_override="nope")

    def test_missing_models(self):
        with pytest.raises(TranslationError) as exc_info:
            validate_ai_config(make_config(models=[]))
        assert exc_info.value.details["missing_field"] == "models"
