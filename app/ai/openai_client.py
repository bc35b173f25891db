from __future__ import annotations

import json
import logging
import time
from typing import Any

import requests

from app.ai.prompt import DEV_PROMPT
from app.ai.schema import MATCH_SCHEMA
from app.settings import decrypt_api_key

logger = logging.getLogger(__name__)

OPENAI_RESPONSES_URL = "https://api.openai.com/v1/responses"
MAX_ERROR_SNIPPET = 2000
OPENAI_CONNECT_TIMEOUT_SECONDS = 15
OPENAI_READ_TIMEOUT_SECONDS = 90
OPENAI_MAX_ATTEMPTS = 3


class OpenAIClientError(RuntimeError):
    pass


def _truncate(value: str, limit: int = MAX_ERROR_SNIPPET) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "...<truncated>"


def _response_debug_summary(response_json: dict[str, Any]) -> str:
    parts: list[str] = []

    status = response_json.get("status")
    if status:
        parts.append(f"status={status}")

    incomplete_details = response_json.get("incomplete_details")
    if isinstance(incomplete_details, dict) and incomplete_details.get("reason"):
        parts.append(f"incomplete_reason={incomplete_details['reason']}")

    error = response_json.get("error")
    if isinstance(error, dict):
        if error.get("message"):
            parts.append(f"error_message={error['message']}")
        if error.get("code"):
            parts.append(f"error_code={error['code']}")

    if not parts:
        parts.append("no_debug_fields")
    parts.append("response_json=" + _truncate(json.dumps(response_json, ensure_ascii=False)))
    return "; ".join(parts)


def _build_response_payload(model: str, reasoning_effort: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": model,
        "reasoning": {"effort": reasoning_effort},
        "input": [
            {
                "role": "developer",
                "content": [{"type": "input_text", "text": DEV_PROMPT}],
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "input_text",
                        "text": json.dumps(payload, ensure_ascii=False),
                    }
                ],
            },
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": MATCH_SCHEMA["name"],
                "schema": MATCH_SCHEMA["schema"],
                "strict": True,
            }
        },
    }


def _extract_output_text(response_json: dict[str, Any]) -> str:
    if response_json.get("output_text"):
        return response_json["output_text"]
    for item in response_json.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("type") == "output_text":
                return content.get("text", "")
    return ""


def _post_with_retries(body: dict[str, Any], headers: dict[str, str]) -> requests.Response:
    last_exception: requests.Timeout | None = None
    for attempt in range(1, OPENAI_MAX_ATTEMPTS + 1):
        try:
            return requests.post(
                OPENAI_RESPONSES_URL,
                headers=headers,
                json=body,
                timeout=(OPENAI_CONNECT_TIMEOUT_SECONDS, OPENAI_READ_TIMEOUT_SECONDS),
            )
        except requests.Timeout as exc:
            last_exception = exc
            logger.warning("OpenAI request timed out (attempt %s/%s)", attempt, OPENAI_MAX_ATTEMPTS)
            if attempt < OPENAI_MAX_ATTEMPTS:
                time.sleep(attempt)
        except requests.RequestException as exc:
            raise OpenAIClientError(f"OpenAI request failed: {exc}") from exc
    raise OpenAIClientError(
        f"OpenAI request failed after retries due to timeout. Last error: {last_exception}"
    ) from last_exception


def request_game_matches(payload: dict[str, Any], settings) -> dict[str, Any]:
    """Send one batch of unmatched records and return the parsed verdicts."""
    api_key = decrypt_api_key(settings.openai_api_key_enc)
    if not api_key:
        raise OpenAIClientError("Missing OpenAI API key")

    body = _build_response_payload(
        settings.openai_model,
        settings.openai_reasoning_effort,
        payload,
    )
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    response = _post_with_retries(body, headers)

    try:
        response_json = response.json()
    except ValueError as exc:
        raise OpenAIClientError(
            f"OpenAI API error {response.status_code}: non-JSON response={_truncate(response.text)}"
        ) from exc

    if response.status_code >= 400:
        raise OpenAIClientError(
            f"OpenAI API error {response.status_code}: {_response_debug_summary(response_json)}"
        )
    output_text = _extract_output_text(response_json)
    if not output_text:
        raise OpenAIClientError(
            "OpenAI response missing output_text: " + _response_debug_summary(response_json)
        )
    try:
        parsed = json.loads(output_text)
    except json.JSONDecodeError as exc:
        raise OpenAIClientError(
            "OpenAI response was not valid JSON; output_text=" + _truncate(output_text)
        ) from exc
    if not isinstance(parsed, dict) or not isinstance(parsed.get("matches"), list):
        raise OpenAIClientError("OpenAI response has no 'matches' list: " + _truncate(output_text))
    return parsed
