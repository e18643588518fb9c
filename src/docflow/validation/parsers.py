"""Fact extraction from raw artifact text.

Every parser is pure and tolerant of malformed input: it returns an empty
list rather than raising. Keyword categorisation walks an ordered list of
(keywords, category) pairs and the first match wins.
"""

from __future__ import annotations

import json
import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class RequirementCategory(StrEnum):
    AUTHENTICATION = "authentication"
    DATA = "data"
    UI = "ui"
    API = "api"
    SECURITY = "security"
    GENERAL = "general"


class EndpointCategory(StrEnum):
    AUTH = "auth"
    USER = "user"
    DATA = "data"
    ADMIN = "admin"
    GENERAL = "general"


class DependencyCategory(StrEnum):
    FRAMEWORK = "framework"
    DATABASE = "database"
    STYLING = "styling"
    AUTH = "auth"
    BUILD = "build"
    GENERAL = "general"


REQUIREMENT_CATEGORIES: list[tuple[tuple[str, ...], RequirementCategory]] = [
    (("auth", "login", "register", "signin", "password"), RequirementCategory.AUTHENTICATION),
    (("data", "store", "database", "entity", "model"), RequirementCategory.DATA),
    (("interface", "ui", "design", "layout", "component"), RequirementCategory.UI),
    (("api", "endpoint", "service", "integration"), RequirementCategory.API),
    (("security", "permission", "access", "role"), RequirementCategory.SECURITY),
]

ENDPOINT_CATEGORIES: list[tuple[tuple[str, ...], EndpointCategory]] = [
    (("auth", "login", "register", "signin"), EndpointCategory.AUTH),
    (("user", "profile", "account"), EndpointCategory.USER),
    (("data", "entity", "record"), EndpointCategory.DATA),
    (("admin", "manage"), EndpointCategory.ADMIN),
]

DEPENDENCY_CATEGORIES: list[tuple[tuple[str, ...], DependencyCategory]] = [
    (("next", "react", "vue", "angular"), DependencyCategory.FRAMEWORK),
    (("drizzle", "prisma", "mongoose", "sequelize"), DependencyCategory.DATABASE),
    (("tailwind", "styled-components", "emotion"), DependencyCategory.STYLING),
    (("next-auth", "auth0", "clerk"), DependencyCategory.AUTH),
    (("typescript", "eslint", "prettier", "vite"), DependencyCategory.BUILD),
]

# Checked lowest level first; the first bucket with a keyword hit decides.
COMPLEXITY_BUCKETS: list[tuple[tuple[str, ...], int]] = [
    (("simple", "basic", "minimal"), 1),
    (("style", "layout", "config", "setup"), 2),
    (("interface", "form", "validation", "filter"), 3),
    (("database", "api", "component", "service"), 4),
    (("integration", "authentication", "security", "performance"), 5),
]
DEFAULT_COMPLEXITY = 3

STACK_VOCABULARY: list[str] = [
    "Next.js",
    "React",
    "TypeScript",
    "Tailwind",
    "Neon",
    "Drizzle",
    "PostgreSQL",
]


class Requirement(BaseModel):
    id: str
    title: str
    description: str
    category: RequirementCategory = RequirementCategory.GENERAL


class Endpoint(BaseModel):
    path: str
    method: str
    description: str = ""
    category: EndpointCategory = EndpointCategory.GENERAL


class DataEntity(BaseModel):
    name: str
    description: str = ""
    fields: list[str] = Field(default_factory=list)


class Task(BaseModel):
    title: str
    description: str
    id: str | None = None
    complexity: int = Field(default=DEFAULT_COMPLEXITY, ge=1, le=5)


class Dependency(BaseModel):
    name: str
    version: str | None = None
    category: DependencyCategory = DependencyCategory.GENERAL


def categorize(text: str, table: list[tuple[tuple[str, ...], Any]], default: Any) -> Any:
    lowered = text.lower()
    for keywords, category in table:
        if any(k in lowered for k in keywords):
            return category
    return default


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------

_REQUIREMENT_RE = re.compile(r"^(REQ-[A-Z]+-\d+):\s*(.+)")


def extract_requirements(content: str | None) -> list[Requirement]:
    if not content:
        return []
    requirements: list[Requirement] = []
    for line in content.splitlines():
        m = _REQUIREMENT_RE.match(line)
        if not m:
            continue
        title = m.group(2).strip()
        if not title:
            continue
        requirements.append(
            Requirement(
                id=m.group(1),
                title=title,
                description=line,
                category=categorize(title, REQUIREMENT_CATEGORIES, RequirementCategory.GENERAL),
            )
        )
    return requirements


# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------


def extract_api_endpoints(content: str | None) -> list[Endpoint]:
    """Parse {"paths": {path: {method: {summary|description}}}}; bad JSON yields []."""
    if not content:
        return []
    try:
        spec = json.loads(content)
    except (json.JSONDecodeError, TypeError, ValueError):
        return []
    if not isinstance(spec, dict) or not isinstance(spec.get("paths"), dict):
        return []

    endpoints: list[Endpoint] = []
    for path, methods in spec["paths"].items():
        if not isinstance(methods, dict):
            continue
        for method, details in methods.items():
            if not isinstance(details, dict):
                continue
            description = details.get("summary") or details.get("description") or ""
            endpoints.append(
                Endpoint(
                    path=str(path),
                    method=str(method).upper(),
                    description=str(description),
                    category=categorize(str(path), ENDPOINT_CATEGORIES, EndpointCategory.GENERAL),
                )
            )
    return endpoints


# ---------------------------------------------------------------------------
# Data entities
# ---------------------------------------------------------------------------

_ENTITY_HEADING_RE = re.compile(r"^#{1,4}\s*(\w+)\s+(?:Table|Entity|Schema)\b", re.IGNORECASE)
_ENTITY_BLOCK_RE = re.compile(r"^(\w+)\s*\{")
_FIELD_RE = re.compile(r"^\s*[-*]?\s*`?(\w+)`?\s*:\s*`?(\w+)")


def extract_data_entities(content: str | None) -> list[DataEntity]:
    if not content:
        return []
    lines = content.splitlines()
    entities: list[DataEntity] = []
    for idx, line in enumerate(lines):
        m = _ENTITY_HEADING_RE.match(line) or _ENTITY_BLOCK_RE.match(line)
        if not m:
            continue
        name = m.group(1)
        fields = _extract_fields(lines, idx, name)
        entities.append(DataEntity(name=name, description=line.strip(), fields=fields))
    return entities


def _extract_fields(lines: list[str], start: int, entity_name: str) -> list[str]:
    """Scan lines after a declaration until the next heading naming another entity."""
    fields: list[str] = []
    for line in lines[start + 1 :]:
        stripped = line.strip()
        if stripped.startswith("#") and entity_name not in stripped:
            break
        if _ENTITY_BLOCK_RE.match(line):
            break
        if stripped == "}":
            break
        m = _FIELD_RE.match(line)
        if m:
            fields.append(m.group(1))
    return fields


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

_CHECKLIST_RE = re.compile(r"^\s*[-*]\s*\[(.*?)\]\s*(.*)")
_NUMBERED_RE = re.compile(r"^\s*(?:\*\s*)?\d+\.\s+(.*)")


def estimate_complexity(task: str) -> int:
    return categorize(task, COMPLEXITY_BUCKETS, DEFAULT_COMPLEXITY)


def extract_tasks(content: str | None) -> list[Task]:
    if not content:
        return []
    tasks: list[Task] = []
    for line in content.splitlines():
        task_id: str | None = None
        if m := _CHECKLIST_RE.match(line):
            marker = m.group(1).strip()
            task_id = marker if marker and marker.lower() != "x" else None
            text = m.group(2).strip()
        elif m := _NUMBERED_RE.match(line):
            text = m.group(1).strip()
        else:
            continue
        if not text:
            continue
        tasks.append(
            Task(title=text, description=text, id=task_id, complexity=estimate_complexity(text))
        )
    return tasks


# ---------------------------------------------------------------------------
# Dependencies and stack
# ---------------------------------------------------------------------------

_MANIFEST_RE = re.compile(r'"dependencies"\s*:\s*\{([^}]+)\}')
_MANIFEST_ENTRY_RE = re.compile(r'"([^"]+)"\s*:\s*"([^"]+)"')
_INLINE_DEP_RE = re.compile(r"(?<![\w@/.-])(@?[a-z0-9][a-z0-9._-]*(?:/[a-z0-9._-]+)?)@(\d[\w.-]*)")


def extract_dependencies(content: str | None) -> list[Dependency]:
    if not content:
        return []
    deps: list[Dependency] = []
    if manifest := _MANIFEST_RE.search(content):
        for name, version in _MANIFEST_ENTRY_RE.findall(manifest.group(1)):
            deps.append(_dependency(name, version))
    for name, version in _INLINE_DEP_RE.findall(content):
        deps.append(_dependency(name, version.rstrip(".")))
    return deps


def _dependency(name: str, version: str | None) -> Dependency:
    return Dependency(
        name=name,
        version=version,
        category=categorize(name, DEPENDENCY_CATEGORIES, DependencyCategory.GENERAL),
    )


def extract_stack(content: str | None) -> list[str]:
    if not content:
        return []
    lowered = content.lower()
    return [tech for tech in STACK_VOCABULARY if tech.lower() in lowered]
