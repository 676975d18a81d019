"""Queue message decoding.

Messages are storage event notifications. Two shapes are understood:

* Event Grid style, ``{"data": {"url": "https://<account>/<container>/<path>"}}``
* S3 event notifications, ``{"Records": [{"s3": {"bucket": {"name": ...},
  "object": {"key": ...}}}]}``

Nothing in here raises for bad input: a message that cannot name a blob is
returned as a DecodeFailure so the caller can drop it instead of letting the
queue redeliver it forever.
"""

import json
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, unquote_plus, urlsplit

from .models import BlobEvent, DecodeFailure, DecodeResult

SNIPPET_LENGTH = 200


def _snippet(raw: Any) -> str:
    if isinstance(raw, bytes):
        text = raw[:SNIPPET_LENGTH].decode("utf-8", errors="replace")
    elif isinstance(raw, str):
        text = raw
    else:
        try:
            text = json.dumps(raw, default=str)
        except (TypeError, ValueError):
            text = repr(raw)
    return text[:SNIPPET_LENGTH]


def _parse_payload(raw: Union[str, bytes, Dict[str, Any]]) -> Union[Dict[str, Any], DecodeFailure]:
    if isinstance(raw, dict):
        return raw

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            return DecodeFailure(reason="message is not valid UTF-8", raw_snippet=_snippet(raw))

    if not isinstance(raw, str):
        return DecodeFailure(
            reason=f"unsupported message type {type(raw).__name__}", raw_snippet=_snippet(raw)
        )

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        return DecodeFailure(reason=f"invalid JSON: {exc.msg}", raw_snippet=_snippet(raw))

    if not isinstance(payload, dict):
        return DecodeFailure(reason="message is not a JSON object", raw_snippet=_snippet(raw))
    return payload


def event_from_url(url: str) -> Optional[BlobEvent]:
    """Split ``https://host/<container>/<blob path>`` into a BlobEvent."""
    try:
        path = urlsplit(url.strip()).path
    except ValueError:
        return None
    segments = path.split("/")
    while segments and not segments[0]:
        segments.pop(0)

    if len(segments) < 2:
        return None

    container = unquote(segments[0])
    blob_path = unquote("/".join(segments[1:]))
    if not blob_path.strip("/"):
        return None
    return BlobEvent(container_name=container, blob_path=blob_path)


def _event_from_s3_record(payload: Dict[str, Any]) -> Optional[BlobEvent]:
    records = payload.get("Records")
    if not isinstance(records, list) or not records or not isinstance(records[0], dict):
        return None

    s3 = records[0].get("s3")
    if not isinstance(s3, dict):
        return None
    bucket_info, object_info = s3.get("bucket"), s3.get("object")
    if not isinstance(bucket_info, dict) or not isinstance(object_info, dict):
        return None

    bucket = bucket_info.get("name")
    key = object_info.get("key")
    if not isinstance(bucket, str) or not isinstance(key, str) or not bucket or not key:
        return None
    return BlobEvent(container_name=bucket, blob_path=unquote_plus(key))


def decode_message(raw: Union[str, bytes, Dict[str, Any]]) -> DecodeResult:
    """Turn a raw queue payload into a BlobEvent, or a DecodeFailure."""
    payload = _parse_payload(raw)
    if isinstance(payload, DecodeFailure):
        return payload

    data = payload.get("data")
    url = data.get("url") if isinstance(data, dict) else None

    if url is None:
        event = _event_from_s3_record(payload)
        if event is not None:
            return event
        return DecodeFailure(reason="missing source url", raw_snippet=_snippet(raw))

    if not isinstance(url, str) or not url.strip():
        return DecodeFailure(reason="missing source url", raw_snippet=_snippet(raw))

    event = event_from_url(url)
    if event is None:
        return DecodeFailure(
            reason="source url does not name a container and blob", raw_snippet=_snippet(raw)
        )
    return event
