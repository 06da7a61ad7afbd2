"""Tests for thread reference resolution and scene classification."""

from scenesync.scenes.matcher import Candidate, Skip, classify, persona_names
from scenesync.scenes.refs import ThreadReference, resolve, thread_url


class TestResolve:
    def test_thread_in_channel(self):
        ref = resolve("https://discord.com/channels/111/222/333")
        assert ref == ThreadReference(thread_id="333", container_id="111", channel_id="222")

    def test_standalone_thread(self):
        ref = resolve("https://discord.com/channels/111/222")
        assert ref.thread_id == "222"
        assert ref.channel_id == "222"
        assert ref.container_id == "111"

    def test_host_variants(self):
        for host in ("discordapp.com", "canary.discord.com", "ptb.discord.com"):
            assert resolve(f"https://{host}/channels/1/2/3").thread_id == "3"

    def test_large_ids_stay_exact(self):
        ref = resolve("https://discord.com/channels/1/2/1234567890123456789")
        assert ref.thread_id == "1234567890123456789"

    def test_unrecognized(self):
        assert resolve("https://example.com/channels/1/2") is None
        assert resolve("not a link") is None
        assert resolve("") is None
        assert resolve(None) is None
        assert resolve(["https://discord.com/channels/1/2"]) is None

    def test_thread_url(self):
        assert thread_url("111", "333") == "https://discord.com/channels/111/333"
        assert thread_url(None, "333") is None
        assert thread_url("0", "333") is None


class TestClassify:
    LINK = "https://discord.com/channels/1/2/3"

    def test_candidate(self):
        decision = classify({"Link": self.LINK, "Characters": ["Alice", " Bob", "Alice"]})
        assert isinstance(decision, Candidate)
        assert decision.ref.thread_id == "3"
        assert decision.personas == ["Alice", "Bob"]

    def test_comma_string_characters(self):
        decision = classify({"Link": self.LINK, "Characters": "Alice, Bob"})
        assert decision.personas == ["Alice", "Bob"]

    def test_skip_reasons(self):
        assert classify(None) == Skip("no front-block")
        assert classify({"Link": self.LINK, "Characters": ["A"], "Is Active?": False}) == Skip(
            "inactive"
        )
        assert classify({"Characters": ["A"]}) == Skip("no link")
        assert classify({"Link": self.LINK, "Characters": []}) == Skip("no characters")
        assert classify({"Link": "elsewhere", "Characters": ["A"]}) == Skip("unrecognized link")

    def test_string_false_is_inactive(self):
        assert classify({"Link": self.LINK, "Characters": ["A"], "Is Active?": "false"}) == Skip(
            "inactive"
        )

    def test_missing_active_flag_means_active(self):
        assert isinstance(classify({"Link": self.LINK, "Characters": ["A"]}), Candidate)

    def test_persona_names_without_front(self):
        assert persona_names(None) == []
