"""
Pull a JSON object out of whatever a model sent back.

Models wrap JSON in markdown fences, add prose around it, or get cut off at
the token limit. Try the cheap strategies first, then repair truncation.
"""

import json
import re
from typing import Any


def _strip_code_fences(text: str) -> str:
    fenced = re.findall(r"```(?:json)?\s*(.*?)```", text, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        return fenced[0].strip()
    return text


def _try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def repair_truncated_json(text: str) -> str:
    """
    Close whatever a truncated reply left open.

    Walks the text tracking string state so brackets inside strings are
    ignored, then appends the missing quote and closers in nesting order.
    """
    stack = []
    in_string = False
    escape_next = False

    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack:
            stack.pop()

    repaired = text
    if in_string:
        repaired += '"'
    repaired = re.sub(r",\s*$", "", repaired)
    while stack:
        repaired += stack.pop()
    return repaired


def extract_json(raw_text: str) -> dict:
    """
    Parse the first JSON object in a model reply.

    Raises ValueError with a short preview when nothing usable is found.
    """
    parsed = _try_parse(raw_text)
    if isinstance(parsed, dict):
        return parsed

    text = _strip_code_fences(raw_text)
    start = text.find("{")
    if start != -1:
        tail = text[start:]

        # Outermost braces, then the first complete object
        end = tail.rfind("}")
        if end != -1:
            parsed = _try_parse(tail[:end + 1])
            if isinstance(parsed, dict):
                return parsed
        try:
            parsed, _ = json.JSONDecoder().raw_decode(tail)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        # Unterminated fence from a cut-off reply
        tail = re.sub(r"```\s*$", "", tail.rstrip())
        parsed = _try_parse(repair_truncated_json(tail))
        if isinstance(parsed, dict):
            print("[parse] Repaired truncated JSON response")
            return parsed

    snippet = raw_text.strip().replace("\n", " ")
    snippet = (snippet[:200] + "...") if len(snippet) > 200 else snippet
    raise ValueError(f"No JSON object found in response. Snippet: {snippet}")


def split_data_url(data_url: str) -> tuple[str, str]:
    """Split 'data:image/png;base64,AAAA' into (mime_type, base64_data)."""
    match = re.match(r"^data:([^;,]+);base64,(.+)$", data_url, flags=re.DOTALL)
    if not match:
        raise ValueError("Invalid base64 image format")
    return match.group(1), match.group(2)
