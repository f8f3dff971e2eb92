"""Lenient parsing of classifier text output."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping, Optional

import yaml

from .errors import ClassificationError
from .models import ClassificationResult

_FENCE_RE = re.compile(r"```[A-Za-z]*\s*(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

_TITLE_KEYS = ("title", "file_title", "internal_file_title")
_CATEGORY_KEYS = ("category", "file_category", "file_category_1", "internal_file_category")
_SUMMARY_KEYS = ("summary", "file_summary", "internal_file_summary")
_TAG_KEYS = ("tags", "file_tags", "internal_file_tags")
_TEMPLATE_KEYS = ("selected_template_id", "selectedTemplateId", "template_id", "templateId")
_FOLDER_KEYS = (
    "selected_folder_path",
    "selectedFolderPath",
    "folder_path",
    "folderPath",
    "folder",
)
_SUBCATEGORY_KEY_RE = re.compile(r"^(?:internal_)?file_category_(\d+)$")


def _extract_payload(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end > start:
        candidate = candidate[start : end + 1]
    return candidate.strip()


def _load_mapping(payload: str) -> Optional[Mapping[str, Any]]:
    for loader in (json.loads, yaml.safe_load):
        for candidate in (payload, _TRAILING_COMMA_RE.sub(r"\1", payload)):
            try:
                data = loader(candidate)
            except (ValueError, yaml.YAMLError):
                continue
            if isinstance(data, Mapping):
                return data
    return None


def _first(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return text


def _tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, Iterable):
        items = value
    else:
        items = [value]
    tags = [_text(item) for item in items]
    return list(dict.fromkeys(tag for tag in tags if tag))


def _subcategories(data: Mapping[str, Any]) -> list[str]:
    explicit = data.get("subcategories")
    if explicit:
        return _tags(explicit)
    numbered: list[tuple[int, str]] = []
    for key, value in data.items():
        match = _SUBCATEGORY_KEY_RE.match(str(key))
        if match and int(match.group(1)) >= 2 and _text(value):
            numbered.append((int(match.group(1)), _text(value)))
    return [value for _, value in sorted(numbered)]


def parse_classifier_output(text: str) -> ClassificationResult:
    """Turn provider text into a :class:`ClassificationResult`.

    Markdown fences and prose around the JSON object are ignored, trailing
    commas are tolerated, and both the plain (``title``) and prefixed
    (``file_title``, ``internal_file_title``) key spellings are accepted.
    Keys that are not recognized are kept in ``extra`` with any ``internal_``
    prefix removed.

    Args:
        text: Raw provider output.

    Returns:
        ClassificationResult: Parsed classification.

    Raises:
        ClassificationError: If no mapping can be parsed or title or category
            is missing.
    """
    if not text or not text.strip():
        raise ClassificationError("Classifier returned an empty response")

    data = _load_mapping(_extract_payload(text))
    if data is None:
        raise ClassificationError("Classifier response did not contain a JSON object")

    title = _text(_first(data, _TITLE_KEYS))
    category = _text(_first(data, _CATEGORY_KEYS))
    if not title or not category:
        missing = [name for name, value in (("title", title), ("category", category)) if not value]
        raise ClassificationError(
            f"Classifier response is missing required field(s): {', '.join(missing)}"
        )

    known = set(
        _TITLE_KEYS + _CATEGORY_KEYS + _SUMMARY_KEYS + _TAG_KEYS + _TEMPLATE_KEYS + _FOLDER_KEYS
    )
    known.add("subcategories")
    extra = {}
    for key, value in data.items():
        name = str(key)
        if name in known or _SUBCATEGORY_KEY_RE.match(name):
            continue
        extra[name.removeprefix("internal_")] = value

    template_id = _text(_first(data, _TEMPLATE_KEYS)) or None
    folder = _text(_first(data, _FOLDER_KEYS)) or None
    return ClassificationResult(
        category=category,
        title=title,
        tags=_tags(_first(data, _TAG_KEYS)),
        summary=_text(_first(data, _SUMMARY_KEYS)),
        subcategories=_subcategories(data),
        selected_template_id=template_id,
        selected_folder_path=folder,
        extra=extra,
        raw_output=text,
    )


__all__ = ["parse_classifier_output"]
