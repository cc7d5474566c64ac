"""Tests for size estimation, mode selection and configuration."""

from dataclasses import replace

import pytest

from config import CLAUDE_SONNET_4, GPT4O, ExtractionConfig, get_default_config, get_model_by_name
from documents import Document, DocumentKind
from errors import ConfigurationError
from estimator import HeuristicTokenEstimator, SizeEstimate, build_estimator, estimate_document
from strategy import DocumentStrategy, ProcessingMode, select_mode


class TestHeuristicTokenEstimator:

    def test_text_rounds_up(self):
        estimator = HeuristicTokenEstimator()
        assert estimator.estimate_text("abcd") == 1
        assert estimator.estimate_text("abcde") == 2
        assert estimator.estimate_text("") == 0

    def test_bytes_use_pdf_ratio(self):
        estimator = HeuristicTokenEstimator()
        assert estimator.estimate_bytes(250_000) == 100_000
        assert estimator.estimate_bytes(1) == 1

    def test_pdf_document_sized_from_bytes(self):
        document = Document(raw_bytes=b"%" * 5000, kind=DocumentKind.CASE_FILING)
        estimate = estimate_document(document, "x" * 400, HeuristicTokenEstimator())

        assert estimate.estimated_input_tokens == 2000
        assert estimate.estimated_prompt_tokens == 100
        assert estimate.total == 2100

    def test_text_document_sized_from_characters(self):
        document = Document(raw_bytes=b"a" * 4000, kind="gazette-issue", media_type="text/plain")
        estimate = estimate_document(document, "", HeuristicTokenEstimator())

        assert estimate.estimated_input_tokens == 1000

    def test_build_estimator_rejects_unknown_name(self, config):
        with pytest.raises(ConfigurationError):
            build_estimator(replace(config, estimator="magic"))

    def test_build_estimator_heuristic(self, config):
        estimator = build_estimator(replace(config, chars_per_token=2.0))
        assert estimator.estimate_text("abcd") == 2


class TestModeSelector:

    def test_fits_is_single_pass(self):
        estimate = SizeEstimate(estimated_input_tokens=50_000, estimated_prompt_tokens=3_000)
        assert select_mode(estimate, 180_000, 2_000) is ProcessingMode.SINGLE_PASS

    def test_exact_fit_is_single_pass(self):
        estimate = SizeEstimate(estimated_input_tokens=175_000, estimated_prompt_tokens=3_000)
        assert select_mode(estimate, 180_000, 2_000) is ProcessingMode.SINGLE_PASS

    def test_one_token_over_is_batch(self):
        estimate = SizeEstimate(estimated_input_tokens=175_001, estimated_prompt_tokens=3_000)
        assert select_mode(estimate, 180_000, 2_000) is ProcessingMode.BATCH

    def test_prompt_counts_toward_ceiling(self):
        estimate = SizeEstimate(estimated_input_tokens=170_000, estimated_prompt_tokens=9_000)
        assert select_mode(estimate, 180_000, 2_000) is ProcessingMode.BATCH

    def test_deterministic_over_range(self):
        for tokens in range(0, 400_000, 9_973):
            estimate = SizeEstimate(tokens, 2_500)
            expected = ProcessingMode.SINGLE_PASS if tokens + 2_500 + 2_000 <= 180_000 else ProcessingMode.BATCH
            assert select_mode(estimate, 180_000, 2_000) is expected
            assert select_mode(estimate, 180_000, 2_000) is expected

    def test_strategy_reports_utilization(self):
        strategy = DocumentStrategy.determine(SizeEstimate(88_000, 0), 180_000, 2_000)

        assert strategy.mode is ProcessingMode.SINGLE_PASS
        assert strategy.utilization_ratio == pytest.approx(0.5)
        assert strategy.headroom_tokens == 90_000


class TestConfig:

    def test_defaults(self):
        config = ExtractionConfig(model=CLAUDE_SONNET_4)

        assert config.input_ceiling == 180_000
        assert config.batch_budget == 180_000
        assert config.total_context_window == 200_000
        assert config.output_ceiling == 16_000
        assert config.validate() is config

    def test_small_window_derives_ceilings(self):
        config = ExtractionConfig(model=GPT4O).validate()

        assert config.input_ceiling == 128_000 - 2_000 - 8_000
        assert config.batch_budget == config.input_ceiling

    def test_switching_model_rederives_ceilings(self):
        config = replace(ExtractionConfig(model=CLAUDE_SONNET_4), model=GPT4O)
        assert config.validate().input_ceiling == 118_000

    def test_explicit_batch_budget_wins(self):
        config = ExtractionConfig(model=CLAUDE_SONNET_4, max_batch_tokens=100_000)

        assert config.batch_budget == 100_000
        assert config.input_ceiling == 180_000

    def test_output_ceiling_respects_model_limit(self):
        config = ExtractionConfig(model=replace(GPT4O, max_output_tokens=12_000))
        assert config.output_ceiling == 12_000

    def test_ceiling_above_window_rejected(self):
        with pytest.raises(ConfigurationError):
            ExtractionConfig(model=GPT4O, single_pass_ceiling=180_000).validate()

    @pytest.mark.parametrize("ceiling", [0, -1])
    def test_non_positive_ceiling_rejected(self, ceiling):
        with pytest.raises(ConfigurationError):
            ExtractionConfig(model=CLAUDE_SONNET_4, single_pass_ceiling=ceiling).validate()

    def test_batch_call_must_fit_window(self):
        with pytest.raises(ConfigurationError, match="max_batch_tokens"):
            ExtractionConfig(model=CLAUDE_SONNET_4, max_batch_tokens=195_000).validate()
        with pytest.raises(ConfigurationError):
            ExtractionConfig(model=GPT4O, max_batch_tokens=120_000).validate()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("EXTRACTOR_MODEL", "gpt-4o")
        monkeypatch.setenv("EXTRACTOR_SINGLE_PASS_CEILING", "100000")
        monkeypatch.setenv("EXTRACTOR_MAX_BATCH_TOKENS", "60000")

        config = get_default_config()

        assert config.model is GPT4O
        assert config.input_ceiling == 100_000
        assert config.batch_budget == 60_000

    def test_env_small_model_uses_derived_ceilings(self, monkeypatch):
        monkeypatch.setenv("EXTRACTOR_MODEL", "gpt-4o")
        monkeypatch.delenv("EXTRACTOR_SINGLE_PASS_CEILING", raising=False)
        monkeypatch.delenv("EXTRACTOR_MAX_BATCH_TOKENS", raising=False)

        assert get_default_config().input_ceiling == 118_000

    def test_min_above_max_rejected(self):
        with pytest.raises(ConfigurationError):
            ExtractionConfig(model=CLAUDE_SONNET_4, min_output_tokens=20_000).validate()

    def test_unknown_model(self):
        with pytest.raises(ConfigurationError):
            get_model_by_name("gpt-2")

    def test_model_aliases(self):
        assert get_model_by_name("claude-sonnet-4") is CLAUDE_SONNET_4
