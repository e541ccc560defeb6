"""Unit tests for chat content filtering."""
import logging

from common.content_filter import filter_inappropriate_content, log_inappropriate_content


class TestFilter:
    def test_clean_text_passes_through(self):
        result = filter_inappropriate_content("See you at nine")

        assert result.filtered_text == "See you at nine"
        assert result.was_filtered is False
        assert result.filtered_words == []

    def test_words_are_masked_with_equal_length(self):
        result = filter_inappropriate_content("You Moron, what an IDIOT")

        assert result.filtered_text == "You *****, what an *****"
        assert sorted(result.filtered_words) == ["idiot", "moron"]
        assert result.original_text == "You Moron, what an IDIOT"

    def test_only_whole_words_match(self):
        result = filter_inappropriate_content("idiotic idiots")

        assert result.was_filtered is False

    def test_custom_word_list(self):
        result = filter_inappropriate_content("that drill is junk", words=["junk"])

        assert result.filtered_text == "that drill is ****"


class TestLogging:
    def test_filtered_content_is_logged(self, caplog):
        result = filter_inappropriate_content("hajzl")

        with caplog.at_level(logging.WARNING, logger="common.content_filter"):
            log_inappropriate_content(result, user_id=3, context_type="chat_message", context_id=11)

        assert "user=3" in caplog.text
        assert "hajzl" in caplog.text

    def test_clean_content_is_not_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="common.content_filter"):
            log_inappropriate_content(filter_inappropriate_content("hello"), user_id=3, context_type="chat_message")

        assert caplog.text == ""
