"""Helpers for turning a code-generation stream into source code and metadata.

The generator speaks Server-Sent Events whose ``data:`` lines carry JSON events
of type ``status``, ``token``, ``text``, ``result``, ``error`` or ``usage``. The
final text may embed a JSON metadata block between ``---METADATA---`` and
``---END-METADATA---`` markers.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from mini_server.exceptions import GenerationError
from mini_server.models.generation import AppMetadata, TokenUsage

logger = logging.getLogger(__name__)

METADATA_START = "---METADATA---"
METADATA_END = "---END-METADATA---"
DONE_SENTINEL = "[DONE]"

_METADATA_BLOCK = re.compile(re.escape(METADATA_START) + r"(.*?)" + re.escape(METADATA_END), re.DOTALL)


def parse_sse_lines(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Yield the JSON events carried by ``data:`` lines until ``[DONE]``.

    Lines without the ``data:`` prefix and payloads that are not JSON objects are skipped.
    """
    for line in lines:
        line = line.strip()
        if not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if payload == DONE_SENTINEL:
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug(f"Skipping non-JSON stream payload: {payload[:80]}")
            continue
        if isinstance(event, dict):
            yield event


def fold_stream_events(events: Iterable[Dict[str, Any]]) -> Tuple[str, Optional[TokenUsage]]:
    """Fold generation events into the final text and the last reported token usage.

    Raises:
        GenerationError: When the stream reports an ``error`` event.
    """
    text = ""
    usage: Optional[TokenUsage] = None

    for event in events:
        event_type = event.get("type")
        if event_type == "token" and event.get("text"):
            text += event["text"]
        elif event_type == "text" and event.get("text"):
            text = event["text"]
        elif event_type == "result":
            text = event.get("data") or ""
        elif event_type == "error":
            raise GenerationError(event.get("data") or "Unknown error", {"event": event})
        elif event_type == "usage" and event.get("input_tokens") and event.get("output_tokens"):
            usage = TokenUsage(input_tokens=event["input_tokens"], output_tokens=event["output_tokens"])
        # status events are progress messages only

    return text, usage


def split_generation_output(text: str) -> Tuple[str, AppMetadata]:
    """Separate generated source code from its embedded metadata block.

    Missing or malformed metadata falls back to defaults; every metadata block
    is removed from the returned source code.
    """
    fields: Dict[str, Any] = {}
    match = _METADATA_BLOCK.search(text)
    if match:
        try:
            parsed = json.loads(match.group(1).strip())
            if isinstance(parsed, dict):
                fields = {k: v for k, v in parsed.items() if k in AppMetadata.model_fields and v is not None}
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse generated metadata, using defaults: {e}")

    try:
        metadata = AppMetadata(**fields)
    except ValueError as e:
        logger.warning(f"Generated metadata has invalid values, using defaults: {e}")
        metadata = AppMetadata()

    source_code = _METADATA_BLOCK.sub("", text).strip()
    return source_code, metadata
