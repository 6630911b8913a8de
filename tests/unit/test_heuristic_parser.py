"""Tests for the keyword fallback parser."""

from dinequery.routing.heuristic import (
    extract_city,
    extract_item,
    extract_near_me,
    extract_perk,
    extract_restaurant_name,
    parse_heuristic,
)


class TestExtractors:
    """Tests for the individual extractors."""

    def test_restaurant_after_marker(self):
        """Test a capitalized name introduced by "restoran"."""
        match = extract_restaurant_name("ima li restoran Marabu lazanje?")

        assert match.name == "Marabu"
        assert match.explicit is True

    def test_quoted_restaurant(self):
        """Test a quoted multi-word name."""
        match = extract_restaurant_name("Je li „Stara Kuća“ otvorena?")

        assert match.name == "Stara Kuća"

    def test_sentence_initial_capital_is_not_a_name(self):
        """Test that the first word of a sentence is not taken as a name."""
        assert extract_restaurant_name("Koji restoran blizu mene ima lignje?") is None

    def test_place_is_not_a_name(self):
        """Test that a capitalized city is skipped."""
        assert extract_restaurant_name("Gdje ima terasa u Splitu?") is None

    def test_item_synonym(self):
        """Test that inflected dishes are recognized."""
        assert extract_item("ima li restoran Marabu lazanje?", exclude="Marabu") == "lazanje"

    def test_item_after_ima(self):
        """Test an unlisted dish after "ima li"."""
        assert extract_item("ima li sataras") == "sataras"

    def test_perk_is_not_an_item(self):
        """Test that an amenity after "ima" is not taken as a dish."""
        assert extract_item("gdje ima terasa") is None
        assert extract_perk("gdje ima terasa") == "terasa"

    def test_longest_perk_phrase(self):
        """Test that a multi-word perk phrase is returned whole."""
        assert extract_perk("treba mi stolica za djecu") == "stolica za djecu"

    def test_near_me(self):
        """Test near-me markers in both languages."""
        assert extract_near_me("Najbliži restoran s pizzom")
        assert extract_near_me("pizza near me")
        assert not extract_near_me("pizza u Zagrebu")

    def test_city(self):
        """Test locative place phrases."""
        assert extract_city("Tražim pizzu na Trnju") == "Trnje"
        assert extract_city("lignje u Splitu") == "Split"
        assert extract_city("lignje u blizini") is None


class TestParseHeuristic:
    """Tests for intent precedence."""

    def test_restaurant_and_item(self):
        """Test a restaurant-scoped item check."""
        result = parse_heuristic("ima li restoran Marabu lazanje?")

        assert result.intent == "check_item_in_restaurant"
        assert result.args == {"restaurant_name": "Marabu", "item_name": "lazanje"}

    def test_item_near_me(self):
        """Test a nearby item search."""
        result = parse_heuristic("Koji restoran blizu mene ima lignje?")

        assert result.intent == "find_items_nearby"
        assert result.args == {"item_name": "lignje"}

    def test_perk_in_city(self):
        """Test a perk search around a named city."""
        result = parse_heuristic("Gdje ima terasa u Splitu?")

        assert result.intent == "find_perk_nearby"
        assert result.args == {"perk_name": "terasa", "city": "Split"}

    def test_item_and_perk(self):
        """Test a combined item and perk search."""
        result = parse_heuristic("Ima li u blizini pizza s terasom?")

        assert result.intent == "find_by_item_and_perk_nearby"
        assert result.args == {"item_name": "pizza", "perk_name": "terasom"}

    def test_name_that_is_also_a_dish_is_ambiguous(self):
        """Test that an unmarked capitalized dish word is not guessed."""
        result = parse_heuristic("Ima li Burger lignje?")

        assert result.intent == "unknown"
        assert result.ambiguous is True

    def test_unrelated_text(self):
        """Test that small talk is unknown but not ambiguous."""
        result = parse_heuristic("Dobar dan")

        assert result.intent == "unknown"
        assert result.ambiguous is False
