"""Document parse/print for the supported text formats."""

from __future__ import annotations

import json
from enum import Enum

from jnode.errors import FormatParseError, FormatPrintError


class FormatTag(Enum):
    JSON = "json"
    JSONL = "jsonl"


def detect_format(file_path: str) -> FormatTag:
    """파일 확장자로 포맷 결정. .jsonl 외에는 JSON."""
    return FormatTag.JSONL if file_path.lower().endswith(".jsonl") else FormatTag.JSON


def _parse_json(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatParseError(f"JSON error: {e.msg} (line {e.lineno})") from e


def _parse_jsonl(text: str) -> list[object]:
    """JSONL을 레코드 리스트로 변환. 빈 줄은 무시."""
    records: list[object] = []
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        try:
            records.append(json.loads(stripped))
        except json.JSONDecodeError as e:
            raise FormatParseError(
                f"JSONL error: record {len(records) + 1}: {e.msg}"
            ) from e
    return records


def parse_document(text: str, fmt: FormatTag) -> object:
    """텍스트를 문서 트리로 파싱. 실패 시 FormatParseError."""
    if fmt is FormatTag.JSONL:
        return _parse_jsonl(text)
    return _parse_json(text)


def print_document(document: object, fmt: FormatTag) -> str:
    """문서 트리를 텍스트로 출력. JSON은 indent=4, JSONL은 레코드당 한 줄."""
    try:
        if fmt is FormatTag.JSONL:
            if not isinstance(document, list):
                raise FormatPrintError("JSONL document must be a list of records")
            return "\n".join(
                json.dumps(record, ensure_ascii=False, allow_nan=False)
                for record in document
            )
        return json.dumps(document, indent=4, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise FormatPrintError(f"Cannot print as {fmt.value}: {e}") from e


class Converter:
    """Awaitable parse/print pair used by edit sessions.

    Subclasses may override either coroutine, e.g. to convert from another
    format or to run a slow conversion off the event loop.
    """

    async def parse(self, text: str, fmt: FormatTag) -> object:
        return parse_document(text, fmt)

    async def print(self, document: object, fmt: FormatTag) -> str:
        return print_document(document, fmt)
