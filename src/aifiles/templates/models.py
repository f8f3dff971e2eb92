"""Template data models."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CaseStyle(str, Enum):
    """Supported filename case styles."""

    SNAKE = "snake"
    KEBAB = "kebab"
    CAMEL = "camel"
    PASCAL = "pascal"
    UPPER_SNAKE = "upper_snake"
    LOWER_SNAKE = "lower_snake"


def normalize_folder(value: str) -> str:
    """Return a whitelist entry in canonical ``A/B`` form.

    ``./Reports/Financial/`` and ``Reports\\Financial`` both become
    ``Reports/Financial``.
    """
    cleaned = value.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    parts = [part for part in cleaned.split("/") if part and part != "."]
    return "/".join(parts)


class Template(BaseModel):
    """User-defined organization rule set.

    Attributes:
        id: Unique identifier.
        name: Display name.
        description: Free-text description.
        base_path: Root directory; ``~`` is expanded when resolved.
        naming_pattern: Pattern with ``{token}`` placeholders relative to the base.
        case_style: Case style applied to generated filenames.
        auto_organize: Whether the daemon moves files without review.
        watch: Whether the daemon monitors ``base_path``.
        folder_whitelist: Permitted relative destination folders; empty means
            any folder is acceptable.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    description: str = ""
    base_path: str = Field(validation_alias=AliasChoices("base_path", "basePath"))
    naming_pattern: str = Field(
        default="{category}/{title}",
        validation_alias=AliasChoices("naming_pattern", "namingStructure", "namingPattern"),
    )
    case_style: CaseStyle = Field(
        default=CaseStyle.SNAKE,
        validation_alias=AliasChoices("case_style", "fileNameCase", "caseStyle"),
    )
    auto_organize: bool = Field(
        default=False, validation_alias=AliasChoices("auto_organize", "autoOrganize")
    )
    watch: bool = Field(
        default=False, validation_alias=AliasChoices("watch", "watchForChanges")
    )
    folder_whitelist: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("folder_whitelist", "folderStructure", "folderWhitelist"),
    )

    @field_validator("case_style", mode="before")
    @classmethod
    def _default_case(cls, value: object) -> object:
        return CaseStyle.SNAKE if value in (None, "") else value

    @field_validator("folder_whitelist")
    @classmethod
    def _normalize_whitelist(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        normalized = [normalize_folder(entry) for entry in value]
        return list(dict.fromkeys(entry for entry in normalized if entry))

    @property
    def has_whitelist(self) -> bool:
        """Return whether placement is restricted to :attr:`folder_whitelist`."""
        return bool(self.folder_whitelist)


__all__ = ["CaseStyle", "Template", "normalize_folder"]
