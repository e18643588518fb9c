"""Tests for validation/parsers.py: tolerant fact extraction."""

from __future__ import annotations

import json

import pytest

from docflow.validation.parsers import (
    DEFAULT_COMPLEXITY,
    DependencyCategory,
    EndpointCategory,
    RequirementCategory,
    estimate_complexity,
    extract_api_endpoints,
    extract_data_entities,
    extract_dependencies,
    extract_requirements,
    extract_stack,
    extract_tasks,
)
from tests.conftest import API_SPEC, DATA_MODEL, DEPENDENCIES, PRD, STACK_PROPOSAL, TASKS


class TestRequirements:
    def test_extracts_ids_and_titles(self):
        reqs = extract_requirements(PRD)
        assert [r.id for r in reqs] == ["REQ-AUTH-001", "REQ-DATA-001", "REQ-UI-001"]
        assert reqs[0].title == "User login"
        assert reqs[0].description == "REQ-AUTH-001: User login"

    def test_categories_first_match_wins(self):
        reqs = extract_requirements(PRD)
        assert [r.category for r in reqs] == [
            RequirementCategory.AUTHENTICATION,
            RequirementCategory.DATA,
            RequirementCategory.UI,
        ]

    def test_general_fallback(self):
        reqs = extract_requirements("REQ-MISC-001: Send weekly digest emails")
        assert reqs[0].category == RequirementCategory.GENERAL

    def test_ignores_non_matching_lines(self):
        text = "Intro\n  REQ-AUTH-001: indented is ignored\nreq-auth-002: lowercase\n"
        assert extract_requirements(text) == []

    @pytest.mark.parametrize("content", [None, "", "no requirements here"])
    def test_empty_input(self, content):
        assert extract_requirements(content) == []


class TestApiEndpoints:
    def test_extracts_paths_and_methods(self):
        endpoints = extract_api_endpoints(API_SPEC)
        assert [(e.method, e.path) for e in endpoints] == [
            ("POST", "/api/auth/login"),
            ("GET", "/api/users/profile"),
            ("GET", "/api/dashboard"),
        ]

    def test_summary_then_description(self):
        endpoints = extract_api_endpoints(API_SPEC)
        assert endpoints[0].description == "User login"
        assert endpoints[2].description == "Dashboard layout"

    def test_categories(self):
        endpoints = extract_api_endpoints(API_SPEC)
        assert [e.category for e in endpoints] == [
            EndpointCategory.AUTH,
            EndpointCategory.USER,
            EndpointCategory.GENERAL,
        ]

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[1, 2, 3]",
            json.dumps({"openapi": "3.0.0"}),
            json.dumps({"paths": ["/a"]}),
            json.dumps({"paths": {"/a": "get"}}),
            json.dumps({"paths": {"/a": {"get": "summary"}}}),
        ],
    )
    def test_malformed_input_yields_no_endpoints(self, content):
        assert extract_api_endpoints(content) == []


class TestDataEntities:
    def test_headings_and_fields(self):
        entities = extract_data_entities(DATA_MODEL)
        assert [e.name for e in entities] == ["Users", "Profiles"]
        assert entities[0].fields == ["id", "email", "name"]
        assert entities[1].fields == ["user_id", "bio"]

    def test_entity_and_schema_headings(self):
        text = "### Order Entity\n- total: decimal\n#### Invoice schema\n- number: text\n"
        entities = extract_data_entities(text)
        assert [e.name for e in entities] == ["Order", "Invoice"]
        assert entities[0].fields == ["total"]

    def test_block_declarations(self):
        text = "User {\n  id: uuid\n  email: text\n}\nnote: not a field\n"
        entities = extract_data_entities(text)
        assert entities[0].name == "User"
        assert entities[0].fields == ["id", "email"]

    def test_plain_headings_are_not_entities(self):
        assert extract_data_entities("# Data Model\n## Overview\n") == []


class TestTasks:
    def test_checklist_and_numbered(self):
        tasks = extract_tasks(TASKS)
        assert [t.title for t in tasks] == [
            "Implement user login",
            "Store user profile",
            "Build dashboard layout",
        ]

    def test_checklist_marker_as_id(self):
        tasks = extract_tasks("- [T-12] Configure CI\n- [ ] Write docs\n")
        assert tasks[0].id == "T-12"
        assert tasks[1].id is None

    def test_complexity(self):
        tasks = extract_tasks(TASKS)
        assert [t.complexity for t in tasks] == [DEFAULT_COMPLEXITY, DEFAULT_COMPLEXITY, 2]

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Add basic logging", 1),
            ("Setup project config", 2),
            ("Build signup form", 3),
            ("Create database migrations", 4),
            ("Payment provider integration", 5),
            ("Write release notes", DEFAULT_COMPLEXITY),
        ],
    )
    def test_complexity_buckets(self, text, expected):
        assert estimate_complexity(text) == expected

    def test_lowest_bucket_checked_first(self):
        assert estimate_complexity("Simple security review") == 1


class TestDependencies:
    def test_manifest_block(self):
        deps = extract_dependencies(DEPENDENCIES)
        assert [(d.name, d.version) for d in deps] == [
            ("next", "14.0.0"),
            ("react", "18.2.0"),
            ("typescript", "5.3.0"),
            ("tailwindcss", "3.4.0"),
        ]
        assert deps[0].category == DependencyCategory.FRAMEWORK
        assert deps[2].category == DependencyCategory.BUILD
        assert deps[3].category == DependencyCategory.STYLING

    def test_inline_tokens(self):
        deps = extract_dependencies("Install next@14.1.0 and @tanstack/react-query@5.0.0.")
        assert [(d.name, d.version) for d in deps] == [
            ("next", "14.1.0"),
            ("@tanstack/react-query", "5.0.0"),
        ]

    def test_email_addresses_are_not_dependencies(self):
        assert extract_dependencies("Contact ops@example.com") == []

    def test_empty(self):
        assert extract_dependencies(None) == []


class TestStack:
    def test_vocabulary_hits(self):
        assert extract_stack(STACK_PROPOSAL) == [
            "Next.js",
            "React",
            "TypeScript",
            "Tailwind",
            "Neon",
        ]

    def test_no_hits(self):
        assert extract_stack("A Django monolith") == []
