"""Tests for tool alias generation."""

import pytest

from agentdesk.services.tool_aliases import (
    MAX_ALIAS_LENGTH,
    create_tool_display_name,
    generate_tool_alias,
    get_tool_description,
    unique_tool_alias,
    validate_tool_alias,
)


class TestGenerateToolAlias:
    """Test display name to alias conversion."""

    @pytest.mark.parametrize("display_name,expected", [
        ("CEO Calendar", "ceo_calendar"),
        ("Sales Team's HubSpot!", "sales_teams_hubspot"),
        ("  Support   Calendar  ", "support_calendar"),
        ("Q4 Pipeline 2024", "q4_pipeline_2024"),
        ("!!!", ""),
    ])
    def test_examples(self, display_name, expected):
        assert generate_tool_alias(display_name) == expected

    def test_truncates_to_max_length(self):
        alias = generate_tool_alias("word " * 30)
        assert len(alias) == MAX_ALIAS_LENGTH
        assert validate_tool_alias(alias)

    def test_punctuation_between_words_is_dropped_not_replaced(self):
        assert generate_tool_alias("Sales-Team") == "salesteam"

    def test_output_always_valid_when_non_empty(self):
        for name in ["Calendar #1", "Über Kalender", "a", "Team_Calendar"]:
            alias = generate_tool_alias(name)
            assert alias == "" or validate_tool_alias(alias)


class TestValidateToolAlias:
    """Test alias validation."""

    def test_valid(self):
        assert validate_tool_alias("ceo_calendar")
        assert validate_tool_alias("a" * MAX_ALIAS_LENGTH)

    def test_invalid(self):
        assert not validate_tool_alias("")
        assert not validate_tool_alias("CEO")
        assert not validate_tool_alias("ceo-calendar")
        assert not validate_tool_alias("a" * (MAX_ALIAS_LENGTH + 1))


class TestUniqueToolAlias:
    """Test collision handling for aliases within one agent."""

    def test_no_collision(self):
        assert unique_tool_alias("CEO Calendar", "google_calendar", []) == "ceo_calendar"

    def test_collision_gets_suffix(self):
        assert unique_tool_alias("CEO Calendar", "google_calendar", ["ceo_calendar"]) == "ceo_calendar_2"
        assert unique_tool_alias(
            "CEO Calendar", "google_calendar", ["ceo_calendar", "ceo_calendar_2"]
        ) == "ceo_calendar_3"

    def test_reserved_search_alias(self):
        assert unique_tool_alias("Search Docs", "hubspot", []) == "search_docs_2"

    def test_empty_name_falls_back_to_provider(self):
        assert unique_tool_alias("!!!", "hubspot", []) == "hubspot"

    def test_suffix_stays_within_max_length(self):
        base = "a" * MAX_ALIAS_LENGTH
        alias = unique_tool_alias(base, "hubspot", [base])
        assert len(alias) == MAX_ALIAS_LENGTH
        assert alias.endswith("_2")


class TestToolLabels:
    """Test display names and descriptions."""

    def test_display_name(self):
        assert create_tool_display_name("google_calendar", "CEO Calendar") == "CEO Calendar (Google Calendar)"
        assert create_tool_display_name("hubspot", "Sales CRM") == "Sales CRM (HubSpot CRM)"
        assert create_tool_display_name("slack", "Team Chat") == "Team Chat (slack)"

    def test_description(self):
        assert get_tool_description("google_calendar", "CEO Calendar") == (
            "Book meetings and manage calendar events for CEO Calendar"
        )
        assert get_tool_description("hubspot", "Sales CRM") == (
            "Manage contacts, leads, and CRM operations for Sales CRM"
        )
        assert get_tool_description("slack", "Team Chat") == "Use Team Chat for slack operations"
