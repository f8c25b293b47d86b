"""
Typed expectations manifest for the configuration validation group.

The manifest is treated as an API contract:
  - `manifest_version` for forward compatibility
  - strict required fields with clear validation errors
  - deployed paths are absolute, template/expected paths are relative
"""

from __future__ import annotations

import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

SUPPORTED_MANIFEST_VERSION = 1
_MODE_RE = re.compile(r"^[0-7]{3,4}$")


def _non_blank(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("must be a string")
    value = value.strip()
    if not value:
        raise ValueError("must be a non-empty string")
    return value


class PermissionExpectation(BaseModel):
    owner: str
    mode: str

    @field_validator("owner")
    @classmethod
    def owner_has_group(cls, value: str) -> str:
        value = _non_blank(value)
        user, sep, group = value.partition(":")
        if not sep or not user or not group:
            raise ValueError(f"owner must be '<user>:<group>', got '{value}'")
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def octal_mode(cls, value: object) -> str:
        value = _non_blank(str(value))
        if not _MODE_RE.match(value):
            raise ValueError(f"mode must be octal like 644, got '{value}'")
        return value


class TemplateExpectation(BaseModel):
    """A deployed file rendered from a %%TOKEN%% template."""

    description: str
    template: str
    deployed: str

    @field_validator("description", "template", mode="before")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _non_blank(value)

    @field_validator("deployed")
    @classmethod
    def absolute_deployed(cls, value: str) -> str:
        value = _non_blank(value)
        if not value.startswith("/"):
            raise ValueError(f"deployed path must be absolute, got '{value}'")
        return value


class CommandExpectation(BaseModel):
    """A command that must exit 0 (e.g. `nginx -t`)."""

    description: str
    command: list[str] = Field(..., min_length=1)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value: str) -> str:
        return _non_blank(value)

    @field_validator("command")
    @classmethod
    def non_blank_argv(cls, value: list[str]) -> list[str]:
        return [_non_blank(str(arg)) for arg in value]


class DiffExpectation(BaseModel):
    """A deployed file compared line-by-line with its expected copy."""

    description: str
    expected: str
    deployed: str
    required: bool = False
    permissions: PermissionExpectation | None = None

    @field_validator("description", "expected", mode="before")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _non_blank(value)

    @field_validator("deployed")
    @classmethod
    def absolute_deployed(cls, value: str) -> str:
        value = _non_blank(value)
        if not value.startswith("/"):
            raise ValueError(f"deployed path must be absolute, got '{value}'")
        return value

    @property
    def is_glob(self) -> bool:
        return any(ch in self.expected for ch in "*?[")

    def expand(self, base_dir: Path) -> list[tuple[str, Path, str]]:
        """Return (description, expected_path, deployed) for each match.

        A non-glob entry always yields exactly one item, even if the expected
        file is missing; the caller decides whether that is skippable.
        """
        if not self.is_glob:
            return [(self.description, base_dir / self.expected, self.deployed)]
        items = []
        for path in sorted(base_dir.glob(self.expected)):
            if path.is_file():
                items.append(
                    (
                        self.description.format(name=path.name),
                        path,
                        self.deployed.format(name=path.name),
                    )
                )
        return items


class PathExpectation(BaseModel):
    """A deployed file or directory that must (or should) exist."""

    description: str
    path: str
    required: bool = True

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value: str) -> str:
        return _non_blank(value)

    @field_validator("path")
    @classmethod
    def absolute_path(cls, value: str) -> str:
        value = _non_blank(value)
        if not value.startswith("/"):
            raise ValueError(f"path must be absolute, got '{value}'")
        return value


class ExpectationsManifest(BaseModel):
    """Versioned contract for config/expectations.yml."""

    manifest_version: int = Field(..., description="Manifest schema version")
    templates: list[TemplateExpectation] = Field(default_factory=list)
    commands: list[CommandExpectation] = Field(default_factory=list)
    diffs: list[DiffExpectation] = Field(default_factory=list)
    paths: list[PathExpectation] = Field(default_factory=list)

    @field_validator("manifest_version")
    @classmethod
    def validate_manifest_version(cls, value: int) -> int:
        if value != SUPPORTED_MANIFEST_VERSION:
            raise ValueError(
                f"unsupported manifest_version={value}; expected {SUPPORTED_MANIFEST_VERSION}"
            )
        return value

    def resolve(self, values: dict[str, str]) -> ExpectationsManifest:
        """Fill `{key}` placeholders (e.g. `{php_version}`) in every path field.

        `{name}` is left alone; diff entries expand it per matched file.
        """

        def fill(text: str) -> str:
            for key, value in values.items():
                text = text.replace("{" + key + "}", value)
            return text

        return self.model_copy(
            update={
                "templates": [
                    t.model_copy(
                        update={"template": fill(t.template), "deployed": fill(t.deployed)}
                    )
                    for t in self.templates
                ],
                "diffs": [
                    d.model_copy(
                        update={"expected": fill(d.expected), "deployed": fill(d.deployed)}
                    )
                    for d in self.diffs
                ],
                "paths": [p.model_copy(update={"path": fill(p.path)}) for p in self.paths],
            }
        )


def load_manifest_yaml(path: Path) -> dict:
    with open(path, encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"manifest is not valid YAML: {path}\n{exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("manifest root must be a YAML mapping/object")
        return payload


def parse_expectations(path: str | Path) -> ExpectationsManifest:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Expectations manifest not found: {path}")
    payload = load_manifest_yaml(path)
    try:
        return ExpectationsManifest.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid expectations manifest {path}:\n{exc}") from exc
