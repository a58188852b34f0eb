import pytest
from pydantic import ValidationError

from shared.exceptions import ConfigurationError
from shared.models.config import RAGSettings


class TestHelperConfig:
    def test_string_value_and_default(self, helper_config, monkeypatch):
        monkeypatch.setenv("SOME_KEY", "  value ")
        assert helper_config.get_string_val("some_key") == "value"
        assert helper_config.get_string_val("MISSING_KEY", default="fallback") == "fallback"

    def test_missing_required_value(self, helper_config, monkeypatch):
        monkeypatch.delenv("MISSING_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            helper_config.get_string_val("MISSING_KEY")

    def test_empty_string_counts_as_unset(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMPTY_KEY", "")
        assert helper_config.get_string_val("EMPTY_KEY", default="x") == "x"

    def test_numbers(self, helper_config, monkeypatch):
        monkeypatch.setenv("INT_KEY", "5")
        monkeypatch.setenv("FLOAT_KEY", "0.25")
        monkeypatch.setenv("BAD_KEY", "five")
        assert helper_config.get_number_val("INT_KEY") == 5
        assert helper_config.get_number_val("FLOAT_KEY") == 0.25
        with pytest.raises(ConfigurationError):
            helper_config.get_number_val("BAD_KEY")

    def test_bools(self, helper_config, monkeypatch):
        monkeypatch.setenv("FLAG_ON", "Yes")
        monkeypatch.setenv("FLAG_OFF", "false")
        assert helper_config.get_bool_val("FLAG_ON") is True
        assert helper_config.get_bool_val("FLAG_OFF") is False

    def test_unrecognised_bool(self, helper_config, monkeypatch):
        monkeypatch.setenv("FLAG_ODD", "maybe")
        with pytest.raises(ConfigurationError):
            helper_config.get_bool_val("FLAG_ODD")

    def test_lists(self, helper_config, monkeypatch):
        monkeypatch.setenv("LIST_KEY", "[1, 2,3]")
        monkeypatch.setenv("BAD_LIST", "1,2")
        assert helper_config.get_list_val("LIST_KEY", element_type=int) == [1, 2, 3]
        with pytest.raises(ConfigurationError):
            helper_config.get_list_val("BAD_LIST")


class TestRAGSettings:
    def test_defaults(self):
        settings = RAGSettings()
        assert (settings.n_queries, settings.n_messages, settings.rrf_k) == (5, 5, 60)
        assert settings.max_tokens_per_chunk == 1024
        assert settings.confidence_cap == 0.95

    def test_reads_environment(self, helper_config, monkeypatch):
        monkeypatch.setenv("FUSION_N_QUERIES", "3")
        monkeypatch.setenv("CONFIDENCE_CAP", "0.9")
        monkeypatch.setenv("RAG_TOKENIZER_ENCODING", "o200k_base")

        settings = RAGSettings.from_helper_config(helper_config)

        assert settings.n_queries == 3
        assert settings.confidence_cap == 0.9
        assert settings.tokenizer_encoding == "o200k_base"
        assert settings.max_messages_per_query == 10

    def test_frozen(self):
        with pytest.raises(ValidationError):
            RAGSettings().n_queries = 2
