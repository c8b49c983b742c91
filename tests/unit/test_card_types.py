"""
Unit tests for per card-type entry rewriting.

Each test parses a small drill entry, runs the transformer and checks the
resulting anki-editor field layout.
"""

import pytest

from drill2anki.convert.card_types import (
    CARD_TYPES,
    ConversionError,
    is_supported,
    transform_entry,
)
from drill2anki.org.document import parse_org


def entry(text):
    """Parse *text* and return its first heading."""
    return parse_org(text).headings[0]


def fields_of(heading):
    return {child.title: child.content_text() for child in heading.children}


class TestRegistry:
    """Tests for the card type registry."""

    @pytest.mark.parametrize("card_type", [
        "simple",
        "twosided",
        "multisided",
        "hide1cloze",
        "hide1_firstmore",
        "hide2cloze",
        "show1cloze",
        "show1_lastmore",
        "show1_firstless",
        "show2cloze",
    ])
    def test_org_drill_types_supported(self, card_type):
        assert is_supported(card_type)
        assert card_type in CARD_TYPES

    def test_unknown_type(self, settings):
        heading = entry("* Q :drill:\n")

        assert not is_supported("conjugate")
        with pytest.raises(ConversionError, match="Unsupported card type"):
            transform_entry(heading, "conjugate", settings)


class TestSimple:
    """Tests for simple cards."""

    def test_question_and_answer(self, settings):
        heading = entry("* Greeting :drill:\nHow do you say hello?\n** Answer\nBonjour\n")
        layout = transform_entry(heading, "simple", settings)

        assert layout.note_type == "Basic"
        assert layout.field_names == ["Front", "Back"]
        assert fields_of(heading) == {"Front": "How do you say hello?", "Back": "Bonjour"}
        assert heading.body == []
        assert [c.level for c in heading.children] == [2, 2]

    def test_title_is_question_without_body(self, settings):
        heading = entry("* What is 2+2? :drill:\n** Answer\n4\n")
        transform_entry(heading, "simple", settings)

        assert fields_of(heading)["Front"] == "What is 2+2?"

    def test_several_answers_grouped(self, settings):
        heading = entry("* Q :drill:\nQuestion\n** Meaning\nM\n** Example\nE\n")
        transform_entry(heading, "simple", settings)

        back = heading.children[1]
        assert back.title == "Back"
        assert [(c.title, c.level) for c in back.children] == [("Meaning", 3), ("Example", 3)]

    def test_no_answer_gives_empty_back(self, settings):
        heading = entry("* Lonely :drill:\nJust a question\n")
        transform_entry(heading, "simple", settings)

        assert fields_of(heading) == {"Front": "Just a question", "Back": ""}

    def test_deletions_make_a_cloze_note(self, settings):
        heading = entry("* Capital :drill:\nThe capital of [France] is [Paris].\n")
        layout = transform_entry(heading, "simple", settings)

        assert layout.note_type == "Cloze"
        assert layout.deletions == 2
        assert fields_of(heading)["Text"] == "The capital of {{c1::France}} is {{c1::Paris}}."

    def test_latex_brackets_stay_basic(self, settings):
        heading = entry("* Einstein :drill:\nEnergy: \\[ E = mc^2 \\]\n** Answer\nrelativity\n")
        layout = transform_entry(heading, "simple", settings)

        assert layout.note_type == "Basic"
        assert fields_of(heading) == {"Front": "Energy: \\[ E = mc^2 \\]", "Back": "relativity"}

    def test_adjacent_deletions_hide1(self, settings):
        heading = entry("* Cat :drill:\nSpell it: [c][a][t]\n")
        layout = transform_entry(heading, "hide1cloze", settings)

        assert layout.deletions == 3
        assert fields_of(heading)["Text"] == "Spell it: {{c1::c}}{{c2::a}}{{c3::t}}"

    def test_custom_field_names(self, settings):
        custom = settings.model_copy(update={"front_field": "Question", "back_field": "Answer"})
        heading = entry("* Q :drill:\nQuestion\n** A\nAnswer\n")
        transform_entry(heading, "simple", custom)

        assert [c.title for c in heading.children] == ["Question", "Answer"]


class TestCloze:
    """Tests for the hide/show cloze types."""

    def test_hide1cloze(self, settings):
        heading = entry(
            "* Capital :drill:\nThe capital of [France] is [Paris||city].\n** Notes\nSince 987.\n"
        )
        layout = transform_entry(heading, "hide1cloze", settings)

        assert layout.note_type == "Cloze"
        assert layout.field_names == ["Text", "Back Extra"]
        assert fields_of(heading) == {
            "Text": "The capital of {{c1::France}} is {{c2::Paris::city}}.",
            "Back Extra": "Since 987.",
        }

    def test_hide2cloze(self, settings):
        heading = entry("* Q :drill:\n[a] [b] [c]\n")
        transform_entry(heading, "hide2cloze", settings)

        assert fields_of(heading)["Text"] == "{{c1::a}} {{c1::b}} {{c2::c}}"

    @pytest.mark.parametrize("card_type", ["show1cloze", "show1_lastmore", "show1_firstless"])
    def test_show1_variants(self, settings, card_type):
        heading = entry("* Q :drill:\n[a] [b]\n")
        transform_entry(heading, card_type, settings)

        assert fields_of(heading)["Text"] == "{{c2::a}} {{c1::b}}"

    def test_show2cloze(self, settings):
        heading = entry("* Q :drill:\n[a] [b] [c]\n")
        transform_entry(heading, "show2cloze", settings)

        assert fields_of(heading)["Text"] == "{{c2::a}} {{c3::b}} {{c1::c}}"

    def test_deletions_in_title(self, settings):
        heading = entry("* [Paris] is the capital of France :drill:\nEurope\n")
        transform_entry(heading, "hide1cloze", settings)

        assert heading.title == "Paris is the capital of France"
        assert fields_of(heading)["Text"] == "{{c1::Paris}} is the capital of France\nEurope"

    def test_no_deletions_raises_and_leaves_entry(self, settings):
        text = "* Q :drill:\nNothing hidden\n** Answer\nA\n"
        heading = entry(text)

        with pytest.raises(ConversionError, match="No cloze deletions"):
            transform_entry(heading, "hide1cloze", settings)
        assert heading.body == ["Nothing hidden"]
        assert [c.title for c in heading.children] == ["Answer"]


class TestTwoSided:
    """Tests for twosided and multisided cards."""

    def test_twosided(self, settings):
        heading = entry(
            "* Cat :drill:\nTranslate.\n** English\ncat\n** French\nchat\n** Notes\nMasculine.\n"
        )
        layout = transform_entry(heading, "twosided", settings)

        assert layout.note_type == "Basic (and reversed card)"
        front, back = heading.children
        assert front.title == "Front"
        assert front.body == ["Translate.", "", "cat"]
        assert back.title == "Back"
        assert back.body == ["Translate.", "", "chat"]
        assert [(c.title, c.level) for c in back.children] == [("Notes", 3)]

    def test_empty_side_uses_its_title(self, settings):
        heading = entry("* Dog :drill:\n** dog\n** chien\n")
        transform_entry(heading, "twosided", settings)

        assert fields_of(heading) == {"Front": "dog", "Back": "chien"}

    def test_twosided_needs_two_sides(self, settings):
        heading = entry("* Cat :drill:\n** English\ncat\n")

        with pytest.raises(ConversionError, match="needs two side subheadings"):
            transform_entry(heading, "twosided", settings)

    def test_multisided_with_two_sides(self, settings):
        heading = entry("* Cat :drill:\n** English\ncat\n** French\nchat\n")
        layout = transform_entry(heading, "multisided", settings)

        assert layout.note_type == "Basic (and reversed card)"

    def test_multisided_with_three_sides(self, settings):
        heading = entry("* Red :drill:\n** English\nred\n** French\nrouge\n** German\nrot\n")

        with pytest.raises(ConversionError, match="3 sides"):
            transform_entry(heading, "multisided", settings)
        assert len(heading.children) == 3
