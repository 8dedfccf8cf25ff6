"""
AI Provider API Implementations

Every supported provider speaks the OpenAI-compatible chat completions
protocol over HTTPS with a bearer token:
- OpenAI
- DeepSeek
- Gemini (through its OpenAI-compatible endpoint)
- Custom providers

Each function takes an AIService instance and a prompt, returns the text response.
"""

import threading
from typing import Any, Dict, Optional

import httpx

from sims4_translator.logger import get_logger
from sims4_translator.ai.exceptions import BackendError

logger = get_logger(__name__)


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout), None (no read timeout)
            or a dict with connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    else:
        timeout_value = float(timeout_config) if timeout_config else None
        return httpx.Timeout(
            connect=10.0,
            write=60.0,
            read=timeout_value,
            pool=10.0,
        )


def handle_http_error(e: httpx.HTTPStatusError, provider: str):
    """Raise a BackendError carrying the status code and the error body."""
    status_code = e.response.status_code
    error_text = "Unknown error"

    try:
        error_json = e.response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_detail = error_json["error"]
            if isinstance(error_detail, dict):
                error_text = error_detail.get("message", str(error_detail))
            else:
                error_text = str(error_detail)
        else:
            error_text = e.response.text[:500]
    except ValueError:
        error_text = e.response.text[:500] if e.response.text else "No details"

    raise BackendError(
        f"{provider} API error ({status_code}): {error_text}",
        status_code=status_code,
        details={"provider": provider, "body": e.response.text[:500]},
    ) from e


def post_cancellable(client: httpx.Client, url: str, token=None, **kwargs) -> httpx.Response:
    """
    POST with ``client``, returning early with AbortError if ``token`` trips.

    The request runs on a helper thread while the caller waits for either the
    response or the cancellation; an abandoned request is left to finish in
    the background and its result is dropped.
    """
    if token is None:
        return client.post(url, **kwargs)

    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def worker():
        try:
            outcome['response'] = client.post(url, **kwargs)
        except Exception as exc:
            outcome['error'] = exc
        finally:
            done.set()

    def on_cancel(reason):
        done.set()

    token.add_callback(on_cancel)
    thread = threading.Thread(target=worker, name="backend-request", daemon=True)
    thread.start()
    try:
        done.wait()
    finally:
        token.remove_callback(on_cancel)

    token.raise_if_cancelled()
    if 'error' in outcome:
        raise outcome['error']
    return outcome['response']


def call_chat_completions_api(service, prompt: str, token=None) -> str:
    """
    Call an OpenAI-compatible chat completions endpoint and return the message text.

    Raises:
        BackendError: configuration missing, HTTP error, timeout or unexpected body.
        AbortError: ``token`` was cancelled while the request was in flight.
    """
    provider = service.provider
    provider_config = service.config.get(provider, {})
    display_name = service.provider_display_name()
    api_key = provider_config.get('api_key', '')
    model = service._get_model(provider_config)
    timeout = provider_config.get('timeout', 120)
    api_url = provider_config.get('api_url', '')

    if not api_key or api_key == "YOUR_API_KEY_HERE":
        raise BackendError(f"{display_name} API key not configured", code="ai_config_missing")
    if not api_url:
        raise BackendError(f"{display_name} API URL not configured", code="ai_config_missing")
    if not model:
        raise BackendError(f"{display_name} model not configured", code="ai_config_missing")

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json"
    }

    body = {
        "model": model,
        "messages": [
            {"role": "system", "content": service._get_system_message()},
            {"role": "user", "content": prompt},
        ],
    }

    logger.debug(f"  Calling {display_name} API (model: {model}, url: {api_url})...")

    try:
        with httpx.Client(timeout=get_httpx_timeout(timeout), transport=service.transport) as client:
            response = post_cancellable(client, api_url, token, headers=headers, json=body)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"{display_name} API HTTP error: {e.response.status_code} - {e.response.text[:500]}")
        handle_http_error(e, display_name)
    except httpx.TimeoutException as e:
        raise BackendError(f"{display_name} API request timeout", code="timeout") from e
    except httpx.HTTPError as e:
        raise BackendError(f"{display_name} API request failed: {e}") from e
    except ValueError as e:
        raise BackendError(f"{display_name} API returned invalid JSON: {e}") from e

    usage = (result.get('usage') if isinstance(result, dict) else None) or {}
    service.record_token_usage(
        prompt_tokens=usage.get('prompt_tokens', 0),
        completion_tokens=usage.get('completion_tokens', 0),
    )

    content = _extract_message_content(result)
    if content is None:
        raise BackendError(f"No content in {display_name} response")
    logger.debug(f"  Received {len(content)} chars from {display_name} (tokens: {service.get_last_token_usage()})")
    return content


def _extract_message_content(result: Any) -> Optional[str]:
    if not isinstance(result, dict):
        return None
    choices = result.get('choices') or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get('message') or {}
    content = message.get('content')
    return content if isinstance(content, str) else None
