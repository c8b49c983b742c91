"""
Unit tests for the org document model.

Tests parsing of headings, tags, planning lines and property drawers,
tree mutation, and lossless rendering of untouched text.
"""

from datetime import datetime

import pytest

from drill2anki.org.document import OrgDocument, OrgHeading, parse_org, parse_timestamp


class TestParsing:
    """Tests for parse_org."""

    def test_preamble_and_keywords(self, basic_org):
        doc = parse_org(basic_org)

        assert doc.preamble == ["#+TITLE: French", "#+ANKI_DECK: French", ""]
        assert doc.keywords == {"TITLE": "French", "ANKI_DECK": "French"}

    def test_heading_tree(self, basic_org):
        doc = parse_org(basic_org)

        assert len(doc.headings) == 1
        vocabulary = doc.headings[0]
        assert vocabulary.level == 1
        assert vocabulary.title == "Vocabulary"

        greeting = vocabulary.children[0]
        assert greeting.level == 2
        assert greeting.title == "Greeting"
        assert greeting.tags == ["drill"]
        assert greeting.parent is vocabulary
        assert greeting.line_number == 5
        assert greeting.body == ["How do you say /hello/?"]
        assert [c.title for c in greeting.children] == ["Answer"]

    def test_properties_are_case_insensitive(self, basic_org):
        greeting = parse_org(basic_org).headings[0].children[0]

        assert greeting.get_property("ID") == "greet-1"
        assert greeting.get_property("id") == "greet-1"
        assert greeting.get_property("missing", "x") == "x"

    def test_planning_line(self, reviewed_org):
        france = parse_org(reviewed_org).headings[0].children[0]

        assert france.scheduled == "<2024-03-08 Fri>"
        assert france.get_property("DRILL_CARD_TYPE") == "hide1cloze"
        assert france.body == ["The capital of [France] is [Paris||city]."]

    def test_multiple_tags(self):
        doc = parse_org("* Verb  :drill:french:verbs:\n")

        assert doc.headings[0].title == "Verb"
        assert doc.headings[0].tags == ["drill", "french", "verbs"]

    def test_colon_in_title_is_not_a_tag(self):
        doc = parse_org("* Ratio 1:2 explained\n")

        assert doc.headings[0].title == "Ratio 1:2 explained"
        assert doc.headings[0].tags == []

    def test_bold_line_is_not_a_heading(self):
        doc = parse_org("* Entry\n*bold* text\n")

        assert len(doc.headings) == 1
        assert doc.headings[0].body == ["*bold* text"]

    def test_unterminated_drawer_stays_in_body(self):
        doc = parse_org("* Entry\n:PROPERTIES:\n:ID: x\n** Child\n")
        entry = doc.headings[0]

        assert entry.properties == {}
        assert entry.body == [":PROPERTIES:", ":ID: x"]
        assert entry.children[0].title == "Child"

    def test_level_jump(self):
        doc = parse_org("* A\n*** Deep\n** B\n")
        a = doc.headings[0]

        assert [c.title for c in a.children] == ["Deep", "B"]


class TestRendering:
    """Tests for render round-trips and mutation."""

    def test_untouched_document_renders_identically(self, reviewed_org):
        assert parse_org(reviewed_org).render() == reviewed_org

    def test_missing_trailing_newline_preserved(self):
        text = "* A\nbody"
        assert parse_org(text).render() == text

    def test_changed_tags_realign(self):
        doc = parse_org("* Greeting                              :drill:french:\n")
        heading = doc.headings[0]
        heading.remove_tag("drill")

        line = heading.heading_line()
        assert line.startswith("* Greeting ")
        assert line.endswith(":french:")
        assert len(line) == 77

    def test_untagged_heading_renders_without_padding(self):
        doc = parse_org("* Greeting   :drill:\n")
        doc.headings[0].remove_tag("drill")

        assert doc.render() == "* Greeting\n"

    def test_set_and_delete_property(self, basic_org):
        doc = parse_org(basic_org)
        greeting = doc.headings[0].children[0]
        greeting.set_property("ANKI_NOTE_TYPE", "Basic")
        greeting.delete_property("id")

        rendered = doc.render()
        assert ":ANKI_NOTE_TYPE: Basic" in rendered
        assert ":ID:" not in rendered

    def test_set_level_shifts_subtree(self, basic_org):
        greeting = parse_org(basic_org).headings[0].children[0]
        greeting.set_level(4)

        assert greeting.level == 4
        assert greeting.children[0].level == 5

    def test_add_child_demotes_shallow_heading(self):
        parent = OrgHeading(level=2, title="Parent")
        child = parent.add_child(OrgHeading(level=1, title="Child"))

        assert child.level == 3
        assert child.parent is parent

    def test_content_text_includes_subtree(self, basic_org):
        greeting = parse_org(basic_org).headings[0].children[0]

        assert greeting.content_text() == "How do you say /hello/?\n*** Answer\nBonjour"

    def test_content_text_without_drawers(self):
        doc = parse_org(
            "* Word\n"
            "** Meaning\n"
            "SCHEDULED: <2024-03-08 Fri>\n"
            ":PROPERTIES:\n"
            ":ID: m-1\n"
            ":END:\n"
            "M\n"
        )
        word = doc.headings[0]

        assert word.content_text(drawers=False) == "** Meaning\nM"
        assert ":ID: m-1" in word.content_text()


class TestDocumentHelpers:
    """Tests for document-level helpers."""

    def test_find_by_id(self, basic_org):
        doc = parse_org(basic_org)

        assert doc.find_by_id("greet-1").title == "Greeting"
        assert doc.find_by_id("nope") is None

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            OrgDocument.from_file(tmp_path / "missing.org")

    def test_write_and_reload(self, tmp_path, basic_org):
        source = tmp_path / "french.org"
        source.write_text(basic_org, encoding="utf-8")

        doc = OrgDocument.from_file(source)
        assert doc.name == "french.org"

        target = doc.write(tmp_path / "out" / "copy.org")
        assert target.read_text(encoding="utf-8") == basic_org


class TestTimestamps:
    """Tests for parse_timestamp."""

    @pytest.mark.parametrize("stamp,expected", [
        ("<2024-03-10 Sun>", datetime(2024, 3, 10)),
        ("[2024-03-10 Sun 09:30]", datetime(2024, 3, 10, 9, 30)),
        ("<2024-03-10 Sun 9:05 +1w>", datetime(2024, 3, 10, 9, 5)),
        ("2024-03-10", datetime(2024, 3, 10)),
    ])
    def test_valid(self, stamp, expected):
        assert parse_timestamp(stamp) == expected

    @pytest.mark.parametrize("stamp", [None, "", "nil", "<2024-13-40 Xyz>"])
    def test_invalid(self, stamp):
        assert parse_timestamp(stamp) is None
