"""Persistence for user templates in ``templates.json``."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from .defaults import default_templates
from .engine import expand_path
from .errors import TemplateError, TemplateNotFoundError
from .models import Template

LOGGER = logging.getLogger(__name__)

TEMPLATES_FILENAME = "templates.json"


def parse_folder_structure(text: str) -> list[str]:
    """Parse a plain-text folder list.

    One folder per line. Blank lines and ``#`` comments are skipped; entries
    already starting with ``.`` are kept as written and plain names are
    prefixed with ``./``.

    Args:
        text: Contents of a folder structure file.

    Returns:
        list[str]: Folder entries in file order.
    """
    folders: list[str] = []
    for line in text.splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        folders.append(entry if entry.startswith(".") else f"./{entry}")
    return folders


class TemplateStore:
    """Load, modify, and persist the template list."""

    def __init__(self, config_dir: Path) -> None:
        """Bind the store to a configuration directory.

        Args:
            config_dir: Directory holding ``templates.json``.
        """
        self._path = config_dir.expanduser() / TEMPLATES_FILENAME
        self._templates: list[Template] = []
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        """Return the location of ``templates.json``."""
        return self._path

    def load(self) -> list[Template]:
        """Read templates from disk, writing the defaults on first use.

        Returns:
            list[Template]: Templates in file order.

        Raises:
            TemplateError: If the file cannot be parsed.
        """
        with self._lock:
            if not self._path.exists():
                LOGGER.info("Creating default templates at %s", self._path)
                self._templates = default_templates()
                self._loaded = True
                self.save()
                return list(self._templates)

            try:
                data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
            except json.JSONDecodeError as exc:
                raise TemplateError(f"Invalid templates file {self._path}: {exc}") from exc
            if not isinstance(data, list):
                raise TemplateError(f"Templates file {self._path} must contain a JSON array")

            if not data:
                self._templates = default_templates()
                self._loaded = True
                self.save()
                return list(self._templates)

            templates = [self._parse(entry) for entry in data]
            seen: set[str] = set()
            for template in templates:
                if template.id in seen:
                    raise TemplateError(
                        f"Duplicate template id '{template.id}' in {self._path}",
                        hint="Give every template in templates.json a unique id.",
                    )
                seen.add(template.id)
            self._templates = templates
            self._loaded = True
            return list(self._templates)

    def save(self) -> None:
        """Write the in-memory templates back to disk."""
        with self._lock:
            payload = [template.model_dump(mode="json") for template in self._templates]
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)

    def all(self) -> list[Template]:
        """Return every template."""
        self._ensure_loaded()
        return list(self._templates)

    def get(self, template_id: str) -> Optional[Template]:
        """Return the template with ``template_id`` or ``None``."""
        self._ensure_loaded()
        for template in self._templates:
            if template.id == template_id:
                return template
        return None

    def require(self, template_id: str) -> Template:
        """Return the template with ``template_id``.

        Raises:
            TemplateNotFoundError: If no template has that id.
        """
        template = self.get(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template '{template_id}' not found")
        return template

    def watched(self) -> list[Template]:
        """Return templates with watching enabled."""
        return [template for template in self.all() if template.watch]

    def add(self, template: Template) -> Template:
        """Append ``template`` and persist.

        Raises:
            TemplateError: If a template with the same id exists.
        """
        with self._lock:
            if self.get(template.id) is not None:
                raise TemplateError(f"Template with id '{template.id}' already exists")
            self._templates.append(template)
            self.save()
            return template

    def update(self, template_id: str, changes: dict[str, Any]) -> Template:
        """Apply ``changes`` to an existing template and persist.

        Args:
            template_id: Template to modify.
            changes: Field values to replace; the id itself cannot change.

        Returns:
            Template: Updated template.

        Raises:
            TemplateNotFoundError: If no template has that id.
            TemplateError: If the updated template is invalid.
        """
        with self._lock:
            current = self.require(template_id)
            merged = current.model_dump()
            merged.update({key: value for key, value in changes.items() if key != "id"})
            updated = self._parse(merged)
            index = self._templates.index(current)
            self._templates[index] = updated
            self.save()
            return updated

    def delete(self, template_id: str) -> None:
        """Remove a template and persist.

        Raises:
            TemplateNotFoundError: If no template has that id.
        """
        with self._lock:
            template = self.require(template_id)
            self._templates.remove(template)
            self.save()

    def create_folders(self, template_id: str) -> list[Path]:
        """Create the base directory and every whitelisted folder.

        Returns:
            list[Path]: Directories that exist afterwards, base first.
        """
        template = self.require(template_id)
        base = expand_path(template.base_path)
        created = [base]
        base.mkdir(parents=True, exist_ok=True)
        for folder in template.folder_whitelist or []:
            target = base.joinpath(*folder.split("/"))
            target.mkdir(parents=True, exist_ok=True)
            created.append(target)
        LOGGER.info("Created %d folders for template %s", len(created), template_id)
        return created

    def import_folder_structure(self, template_id: str, path: Path) -> Template:
        """Replace a template whitelist with folders read from ``path``."""
        try:
            text = path.expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"Unable to read folder structure {path}: {exc}") from exc
        return self.update(template_id, {"folder_whitelist": parse_folder_structure(text)})

    def export_template(self, template_id: str, path: Path) -> Path:
        """Write a single template to ``path`` as JSON."""
        template = self.require(template_id)
        destination = path.expanduser()
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(
            json.dumps(template.model_dump(mode="json"), indent=2), encoding="utf-8"
        )
        return destination

    def import_template(self, path: Path) -> Template:
        """Load a template from ``path``, replacing any template with the same id."""
        try:
            data = json.loads(path.expanduser().read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TemplateError(f"Unable to import template from {path}: {exc}") from exc
        template = self._parse(data)
        with self._lock:
            self._ensure_loaded()
            for index, existing in enumerate(self._templates):
                if existing.id == template.id:
                    self._templates[index] = template
                    break
            else:
                self._templates.append(template)
            self.save()
        return template

    def replace_all(self, templates: Iterable[Template]) -> None:
        """Overwrite the stored template list."""
        with self._lock:
            self._templates = list(templates)
            self._loaded = True
            self.save()

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _parse(self, entry: Any) -> Template:
        try:
            return Template.model_validate(entry)
        except ValidationError as exc:
            raise TemplateError(f"Invalid template in {self._path}: {exc}") from exc


__all__ = ["TEMPLATES_FILENAME", "TemplateStore", "parse_folder_structure"]
