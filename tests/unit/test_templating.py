"""Unit tests for step argument templating."""

import pytest

from mcp_orchestrator.exceptions import PlaceholderResolutionError
from mcp_orchestrator.execution import resolve_arguments, resolve_placeholder

RESULTS = {
    "fetch": {"items": [{"id": 7, "name": "Casa Azul"}], "count": 1},
    "plain": "done",
}
METADATA = {"projectId": "p-42", "owner": {"email": "ops@example.com"}}


class TestResolvePlaceholder:
    """Test suite for single placeholder resolution."""

    def test_whole_step_result(self):
        assert resolve_placeholder("results.plain", RESULTS, METADATA) == "done"

    def test_nested_path_with_list_index(self):
        assert resolve_placeholder("results.fetch.items.0.name", RESULTS, METADATA) == "Casa Azul"

    def test_metadata(self):
        assert resolve_placeholder("metadata.owner.email", RESULTS, METADATA) == "ops@example.com"

    @pytest.mark.parametrize(
        "placeholder",
        [
            "results.missing",
            "results.fetch.nope",
            "results.fetch.items.5",
            "results.fetch.items.first",
            "results.plain.length",
            "results",
            "metadata.unknown",
            "env.HOME",
        ],
    )
    def test_unresolvable_raises(self, placeholder):
        with pytest.raises(PlaceholderResolutionError) as exc_info:
            resolve_placeholder(placeholder, RESULTS, METADATA)
        assert exc_info.value.placeholder == placeholder


class TestResolveArguments:
    """Test suite for argument resolution."""

    def test_exact_placeholder_keeps_type(self):
        resolved = resolve_arguments({"items": "${results.fetch.items}", "n": "${results.fetch.count}"}, RESULTS, METADATA)
        assert resolved == {"items": [{"id": 7, "name": "Casa Azul"}], "n": 1}

    def test_embedded_placeholders_interpolate(self):
        resolved = resolve_arguments(
            {"title": "Report for ${metadata.projectId} (${results.fetch.count} items)"}, RESULTS, METADATA
        )
        assert resolved == {"title": "Report for p-42 (1 items)"}

    def test_embedded_container_becomes_json(self):
        resolved = resolve_arguments({"text": "owner=${metadata.owner}"}, RESULTS, METADATA)
        assert resolved == {"text": 'owner={"email": "ops@example.com"}'}

    def test_recurses_into_containers(self):
        resolved = resolve_arguments(
            {"filters": {"project": "${metadata.projectId}"}, "ids": ["${results.fetch.items.0.id}", 3]},
            RESULTS,
            METADATA,
        )
        assert resolved == {"filters": {"project": "p-42"}, "ids": [7, 3]}

    def test_non_placeholder_values_untouched(self):
        arguments = {"sql": "select 1", "limit": 10, "dry": False, "env": "$HOME"}
        assert resolve_arguments(arguments, RESULTS, METADATA) == arguments

    def test_input_not_mutated(self):
        arguments = {"project": "${metadata.projectId}"}
        resolve_arguments(arguments, RESULTS, METADATA)
        assert arguments == {"project": "${metadata.projectId}"}

    def test_unresolved_placeholder_fails_loudly(self):
        with pytest.raises(PlaceholderResolutionError):
            resolve_arguments({"x": "prefix ${results.never_ran.value}"}, RESULTS, METADATA)
