"""Tests for the front-block codec."""

import datetime

from scenesync.scenes import frontblock


DOC = """---
Link: https://discord.com/channels/1/2/3
Characters:
  - Alice
  - Bob
Replied?: false
Participants: 2
# keep me
Custom: "hand written"
---
Body line one.
---
Not a front-block.
"""


class TestParse:
    def test_parses_keys(self):
        front = frontblock.parse(DOC)
        assert front["Link"] == "https://discord.com/channels/1/2/3"
        assert front["Characters"] == ["Alice", "Bob"]
        assert front["Replied?"] is False
        assert front["Participants"] == 2

    def test_no_front_block(self):
        assert frontblock.parse("Just text\n") is None
        assert frontblock.parse("") is None

    def test_unclosed_block(self):
        assert frontblock.parse("---\nLink: x\nno closing\n") is None

    def test_empty_block(self):
        assert frontblock.parse("---\n---\nbody\n") == {}

    def test_broken_yaml_is_not_present(self):
        assert frontblock.parse("---\nLink: [unclosed\n---\n") is None

    def test_dates_parse(self):
        front = frontblock.parse("---\nCreated: 2024-05-01\n---\n")
        assert front["Created"] == datetime.date(2024, 5, 1)


class TestValueHelpers:
    def test_is_true(self):
        assert frontblock.is_true(True)
        assert frontblock.is_true("true")
        assert frontblock.is_true("True")
        assert not frontblock.is_true("yes")
        assert not frontblock.is_true(None)
        assert not frontblock.is_true(1)

    def test_is_false_is_explicit(self):
        assert frontblock.is_false(False)
        assert frontblock.is_false("false")
        assert not frontblock.is_false(None)
        assert not frontblock.is_false("")

    def test_as_list(self):
        assert frontblock.as_list(["Alice", " Bob "]) == ["Alice", "Bob"]
        assert frontblock.as_list("Alice, Bob") == ["Alice", "Bob"]
        assert frontblock.as_list(None) == []
        assert frontblock.as_list("") == []

    def test_get_on_missing_front(self):
        assert frontblock.get(None, "Link") is None
        assert frontblock.get({}, "Link", "x") == "x"


class TestSetMutations:
    def test_only_target_lines_change(self):
        updated = frontblock.set_mutations(DOC, [("Replied?", True)])
        assert updated == DOC.replace("Replied?: false", "Replied?: true")

    def test_body_and_comments_preserved(self):
        updated = frontblock.set_mutations(DOC, [("Participants", 4)])
        assert "# keep me\n" in updated
        assert 'Custom: "hand written"\n' in updated
        assert updated.endswith("Body line one.\n---\nNot a front-block.\n")

    def test_missing_key_appended_before_closing(self):
        doc = "---\nLink: x\n---\nbody\n"
        updated = frontblock.set_mutations(doc, [("Participants", 3)])
        assert updated == "---\nLink: x\nParticipants: 3\n---\nbody\n"

    def test_block_list_replaced_whole(self):
        updated = frontblock.set_mutations(DOC, [("Characters", ["Carol"])])
        assert "Characters:\n  - Carol\nReplied?" in updated
        assert "Alice" not in updated

    def test_duplicate_keys_all_rewritten(self):
        doc = "---\nReplied?: false\nReplied?: false\n---\n"
        updated = frontblock.set_mutations(doc, [("Replied?", True)])
        assert updated == "---\nReplied?: true\nReplied?: true\n---\n"

    def test_prefix_key_not_matched(self):
        doc = "---\nReplied?ish: false\n---\n"
        updated = frontblock.set_mutations(doc, [("Replied?", True)])
        assert updated == "---\nReplied?ish: false\nReplied?: true\n---\n"

    def test_crlf_preserved(self):
        doc = "---\r\nReplied?: false\r\nLink: x\r\n---\r\nbody\r\n"
        updated = frontblock.set_mutations(doc, [("Replied?", True), ("Participants", 2)])
        assert updated == "---\r\nReplied?: true\r\nLink: x\r\nParticipants: 2\r\n---\r\nbody\r\n"

    def test_no_front_block(self):
        assert frontblock.set_mutations("body only\n", [("Replied?", True)]) is None

    def test_result_parses_back(self):
        updated = frontblock.set_mutations(DOC, [("Replied?", True), ("Participants", 5)])
        front = frontblock.parse(updated)
        assert front["Replied?"] is True
        assert front["Participants"] == 5
        assert front["Characters"] == ["Alice", "Bob"]


class TestRenderDocument:
    def test_render(self):
        text = frontblock.render_document(
            {
                "Link": "https://discord.com/channels/1/2",
                "Characters": ["Alice"],
                "Participants": 2,
                "Replied?": False,
                "Created": datetime.date(2024, 5, 1),
            }
        )
        assert text == (
            "---\n"
            "Link: https://discord.com/channels/1/2\n"
            "Characters:\n"
            "  - Alice\n"
            "Participants: 2\n"
            "Replied?: false\n"
            "Created: 2024-05-01\n"
            "---\n"
        )

    def test_ambiguous_strings_quoted(self):
        text = frontblock.render_document({"Characters": ["true", "Ann: the Bold"]})
        front = frontblock.parse(text)
        assert front["Characters"] == ["true", "Ann: the Bold"]
