"""Tests for answer templates and LLM phrasing."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from dinequery.formatter import AnswerFormatter, answer_facts, template_answer
from dinequery.models.domain import CandidateResult, OpenState
from dinequery.models.state import ExecutionResult, SuggestedAction


@pytest.fixture
def marabu(restaurants):
    """The claimed restaurant with full contact details."""
    return restaurants[0]


@pytest.fixture
def nearby_result(restaurants):
    """Two nearby candidates, nearest first."""
    return ExecutionResult(
        kind="restaurants",
        candidates=[
            CandidateResult(restaurant=restaurants[0], distance_km=0.06),
            CandidateResult(restaurant=restaurants[1], distance_km=0.84),
        ],
        facts={"radius_km": 3.0, "latitude": 45.815, "longitude": 15.9819, "count": 2},
    )


class TestTemplateAnswer:
    """Tests for deterministic answers."""

    def test_no_results_with_suggestion(self):
        """Test the radius message and the widening offer."""
        result = ExecutionResult(kind="restaurants", code="NO_RESULTS", facts={"radius_km": 3.0})

        answer = template_answer(
            "find_items_nearby", "NO_RESULTS", result, suggested_action=SuggestedAction(to_km=6.0)
        )

        assert answer == (
            "Nažalost, nisam našao rezultate u krugu od 3 km. "
            "Želiš li proširiti pretragu na 6 km?"
        )

    def test_no_results_at_widest_radius(self):
        """Test that an empty search at the radius cap says it cannot widen further."""
        result = ExecutionResult(kind="restaurants", code="NO_RESULTS", facts={"radius_km": 10.0})

        answer = template_answer("find_items_nearby", "NO_RESULTS", result, max_radius_km=10)

        assert answer == (
            "Nažalost, nisam našao rezultate u krugu od 10 km. "
            "Već sam pretražio najveći mogući radijus od 10 km."
        )

    def test_widest_radius_in_english(self):
        """Test the English wording at the radius cap."""
        result = ExecutionResult(kind="restaurants", code="NO_RESULTS", facts={"radius_km": 10.0})

        answer = template_answer("find_items_nearby", "NO_RESULTS", result, language="en", max_radius_km=10)

        assert answer.endswith(" That is already the widest search radius (10 km).")

    def test_not_partner_names_restaurant(self, restaurants):
        """Test the non-partner message."""
        result = ExecutionResult(kind="error", code="NOT_PARTNER", restaurant=restaurants[3])

        answer = template_answer("check_item_in_restaurant", "NOT_PARTNER", result)

        assert answer.startswith("Stara Kuća trenutno nije naš partner")

    def test_restaurant_not_found(self):
        """Test the not-found message in English."""
        answer = template_answer("get_restaurant_info", "RESTAURANT_NOT_FOUND", None, language="en")

        assert answer == "We couldn't find that restaurant."

    def test_unknown_gets_help(self):
        """Test the help text for out-of-scope questions."""
        result = ExecutionResult(kind="answer")

        assert template_answer("unknown", None, result).startswith("Mogu ti pomoći")

    def test_open_now(self, marabu, now):
        """Test an open-now answer with closing time."""
        result = ExecutionResult(
            kind="answer",
            restaurant=marabu,
            open_state=OpenState(state="open", closes_at="22:00"),
            at=now,
        )

        answer = template_answer("is_restaurant_open", None, result, now=now, text="Radi li Marabu?")

        assert answer == "Da, Marabu je trenutno otvoren i radi do 22:00."

    def test_closed_tomorrow_morning(self, marabu, now):
        """Test a closed answer for a future time with the next opening."""
        at = (now + timedelta(days=1)).replace(hour=7)
        result = ExecutionResult(
            kind="answer",
            restaurant=marabu,
            open_state=OpenState(state="closed", opens_at="08:00", closes_at="22:00"),
            at=at,
        )

        answer = template_answer("is_restaurant_open", None, result, now=now)

        assert answer == "Ne, Marabu ne radi sutra u 07:00. Otvara se u 08:00."

    def test_closing_time_question(self, marabu, now):
        """Test that "do kada" questions get the closing time."""
        result = ExecutionResult(
            kind="answer",
            restaurant=marabu,
            open_state=OpenState(state="open", closes_at="22:00"),
            at=now,
        )

        answer = template_answer("is_restaurant_open", None, result, now=now, text="Do kada radi Marabu?")

        assert answer == "Marabu danas radi do 22:00."

    def test_hours_unknown(self, restaurants, now):
        """Test that unknown hours are not reported as closed."""
        result = ExecutionResult(
            kind="answer", restaurant=restaurants[4], open_state=OpenState(state="undefined")
        )

        answer = template_answer("is_restaurant_open", None, result, now=now)

        assert answer == "Radno vrijeme za Daleki Bistro nije dostupno."

    def test_reservation(self, marabu):
        """Test both reservation answers."""
        yes = ExecutionResult(kind="answer", restaurant=marabu, facts={"reservation_enabled": True})
        no = ExecutionResult(kind="answer", restaurant=marabu, facts={"reservation_enabled": False})

        assert template_answer("can_i_reserve_restaurant", None, yes) == (
            "Da, u restoranu Marabu moguće je rezervirati."
        )
        assert template_answer("can_i_reserve_restaurant", None, no, language="en") == (
            "Marabu does not take reservations."
        )

    def test_item_found_lists_prices(self, marabu, menu_items):
        """Test the item answer with prices."""
        result = ExecutionResult(
            kind="menu", restaurant=marabu, items=[menu_items[4]], facts={"item_name": "lazanje", "found": True}
        )

        answer = template_answer("check_item_in_restaurant", None, result)

        assert answer == "Da, Marabu ima lazanje: Lazanje (10.00 €)."

    def test_item_missing(self, marabu):
        """Test the item-missing answer."""
        result = ExecutionResult(kind="menu", code="NO_RESULTS", restaurant=marabu, facts={"item_name": "sushi"})

        answer = template_answer("check_item_in_restaurant", "NO_RESULTS", result)

        assert answer == "Marabu nema sushi na jelovniku."

    def test_restaurant_info(self, marabu):
        """Test the info answer with phone."""
        result = ExecutionResult(kind="restaurant_info", restaurant=marabu)

        answer = template_answer("get_restaurant_info", None, result)

        assert answer == "Marabu, Ilica 1, Zagreb. Telefon: +385 1 111 111."

    def test_restaurant_list(self, nearby_result):
        """Test the count and nearest restaurant."""
        answer = template_answer(
            "find_items_nearby", None, nearby_result, page_items=nearby_result.candidates, total=2
        )

        assert answer == "Pronašao sam 2 restorana. Najbliži je Marabu (0.06 km)."


class TestAnswerFacts:
    """Tests for the facts given to the model."""

    def test_coordinates_are_dropped(self, nearby_result):
        """Test that caller coordinates are not passed on."""
        facts = answer_facts(nearby_result, nearby_result.candidates, "hr")

        assert "latitude" not in facts
        assert facts["radius_km"] == 3.0
        assert [r["name"] for r in facts["restaurants"]] == ["Marabu", "Konoba Lignja"]


class TestAnswerFormatter:
    """Tests for AnswerFormatter."""

    @pytest.fixture
    def mock_llm(self):
        """Create a mock chat model."""
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=MagicMock(content="Najbliži je Marabu, 60 m od tebe."))
        return llm

    @pytest.mark.asyncio
    async def test_uses_llm_for_lists(self, mock_llm, nearby_result):
        """Test that list answers are phrased by the model."""
        formatter = AnswerFormatter(mock_llm, enabled=True)

        answer = await formatter.format(
            "find_items_nearby", None, nearby_result, text="lignje blizu mene",
            page_items=nearby_result.candidates, total=2,
        )

        assert answer == "Najbliži je Marabu, 60 m od tebe."
        prompt = mock_llm.ainvoke.call_args[0][0]
        assert "Croatian" in prompt
        assert "Konoba Lignja" in prompt

    @pytest.mark.asyncio
    async def test_falls_back_on_error(self, mock_llm, nearby_result):
        """Test that a model failure returns the template."""
        mock_llm.ainvoke.side_effect = Exception("rate limited")
        formatter = AnswerFormatter(mock_llm, enabled=True)

        answer = await formatter.format(
            "find_items_nearby", None, nearby_result, page_items=nearby_result.candidates, total=2
        )

        assert answer.startswith("Pronašao sam 2 restorana.")

    @pytest.mark.asyncio
    async def test_falls_back_on_empty_answer(self, mock_llm, nearby_result):
        """Test that a blank model reply returns the template."""
        mock_llm.ainvoke.return_value = MagicMock(content="   ")
        formatter = AnswerFormatter(mock_llm, enabled=True)

        answer = await formatter.format("find_items_nearby", None, nearby_result, total=2)

        assert answer.startswith("Pronašao sam 2 restorana.")

    @pytest.mark.asyncio
    async def test_template_only_intents_skip_llm(self, mock_llm, marabu):
        """Test that yes/no answers never go through the model."""
        formatter = AnswerFormatter(mock_llm, enabled=True)
        result = ExecutionResult(kind="answer", restaurant=marabu, facts={"reservation_enabled": True})

        await formatter.format("can_i_reserve_restaurant", None, result)

        mock_llm.ainvoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_outcome_codes_skip_llm(self, mock_llm):
        """Test that error outcomes use templates."""
        formatter = AnswerFormatter(mock_llm, enabled=True)

        answer = await formatter.format("find_items_nearby", "MISSING_LOCATION", None)

        assert answer == "Za pretragu u blizini trebam tvoju lokaciju ili naziv grada."
        mock_llm.ainvoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled(self, mock_llm, nearby_result):
        """Test that a disabled formatter never calls the model."""
        formatter = AnswerFormatter(mock_llm, enabled=False)

        await formatter.format("find_items_nearby", None, nearby_result, total=2)

        mock_llm.ainvoke.assert_not_called()
