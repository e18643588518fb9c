"""Artifact bundle: logical-name normalisation and tolerant content lookup."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

PRD = "PRD.md"
API_SPEC = "api-spec.json"
DATA_MODEL = "data-model.md"
TASKS = "tasks.md"
STACK_PROPOSAL = "stack-proposal.md"
DEPENDENCIES = "DEPENDENCIES.md"

# Display names some agents emit instead of file names.
DISPLAY_NAMES: dict[str, str] = {
    "Project Requirements Document": PRD,
    "API Specification": API_SPEC,
    "Data Model": DATA_MODEL,
    "Task Breakdown": TASKS,
    "Stack Proposal": STACK_PROPOSAL,
    "Dependencies": DEPENDENCIES,
}


def normalize_name(name: str) -> str:
    return DISPLAY_NAMES.get(name, name)


def _fold(name: str) -> str:
    return name.lower().replace("_", "-")


class ArtifactBundle:
    """Read-only map of logical artifact name -> content.

    Lookups accept case and separator variants of the same file name, so
    "prd.md" and "api_spec.json" resolve to PRD.md and api-spec.json.
    """

    def __init__(self, contents: Mapping[str, str]) -> None:
        self._contents: dict[str, str] = {}
        for name, content in contents.items():
            self._contents[normalize_name(name)] = content or ""
        self._folded = {_fold(name): name for name in self._contents}

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> ArtifactBundle:
        return cls(dict(pairs))

    def get(self, name: str) -> str:
        if name in self._contents:
            return self._contents[name]
        actual = self._folded.get(_fold(name))
        return self._contents[actual] if actual is not None else ""

    def has(self, name: str) -> bool:
        return bool(self.get(name))

    def names(self) -> list[str]:
        return list(self._contents)

    def items(self) -> list[tuple[str, str]]:
        return list(self._contents.items())

    def __len__(self) -> int:
        return len(self._contents)
