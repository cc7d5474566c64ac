"""Tests for output-allowance computation, response parsing and the extraction client."""

import pytest

from documents import Document, DocumentKind
from errors import ParseError, ProviderCallError
from extractor import (
    ExtractionClient,
    ExtractionRequest,
    ExtractionTarget,
    compute_max_output_tokens,
    extract_json_object,
    parse_structured_response,
)
from providers import ProviderResponse
from result import ExtractionStatus
from schemas import GazettePayload


class TestComputeMaxOutputTokens:

    def test_plenty_of_room_hits_default_max(self):
        assert compute_max_output_tokens(50_000, 200_000, 2_000, 8_000, 16_000) == 16_000

    def test_tight_window_uses_what_is_left(self):
        assert compute_max_output_tokens(185_000, 200_000, 2_000, 8_000, 16_000) == 13_000

    def test_overflowing_input_gets_the_floor(self):
        assert compute_max_output_tokens(195_000, 200_000, 2_000, 8_000, 16_000) == 8_000

    def test_bounds_hold_across_inputs(self):
        for input_tokens in range(0, 260_000, 7_919):
            allowance = compute_max_output_tokens(input_tokens, 200_000, 2_000, 8_000, 16_000)
            assert 8_000 <= allowance <= 16_000
            if input_tokens + 2_000 + 8_000 <= 200_000:
                assert input_tokens + allowance + 2_000 <= 200_000


class TestResponseParsing:

    def test_plain_json(self):
        assert extract_json_object('{"records": []}') == {"records": []}

    def test_fenced_json(self):
        raw = 'Here you go:\n```json\n{"status": "success", "records": []}\n```\nDone.'
        assert extract_json_object(raw)["status"] == "success"

    def test_prose_around_object(self):
        raw = 'I found these notices {"records": [{"entity_name": "ACME LTD"}]} hope that helps'
        assert extract_json_object(raw)["records"][0]["entity_name"] == "ACME LTD"

    def test_trailing_braces_after_object(self):
        raw = '{"records": []} and a stray } brace'
        assert extract_json_object(raw) == {"records": []}

    def test_no_object(self):
        with pytest.raises(ParseError):
            extract_json_object("I could not read the document.")

    def test_array_is_not_an_object(self):
        with pytest.raises(ParseError):
            extract_json_object("[1, 2, 3]")

    def test_validates_against_payload_model(self):
        payload = parse_structured_response(
            '{"metadata": {"issue_number": "Ex84/2025"}, "records": [{"entity_name": "ACME LTD"}]}',
            GazettePayload,
        )
        assert payload.metadata.issue_number == "Ex84/2025"
        assert payload.records[0].notice_kind == "appointment"

    def test_schema_mismatch_is_parse_error(self):
        with pytest.raises(ParseError):
            parse_structured_response('{"records": [{"liquidators": []}]}', GazettePayload)


@pytest.fixture
def pdf_document():
    return Document(raw_bytes=b"%PDF-1.4 fake", kind=DocumentKind.GAZETTE_ISSUE)


def batch_request(max_output_tokens=16_000):
    return ExtractionRequest(
        target=ExtractionTarget.BATCH,
        instruction_template="Extract notices",
        max_output_tokens=max_output_tokens,
        payload_model=GazettePayload,
        estimated_input_tokens=1_000,
        text="Partnership Notices\nDELTA LP",
        batch_index=0,
    )


class TestExtractionClient:

    def test_whole_pdf_is_sent_as_document(self, config, fake_provider_factory, pdf_document, gazette_response, notice):
        provider = fake_provider_factory([gazette_response([notice("ACME LTD")])])
        request = ExtractionRequest(
            target=ExtractionTarget.WHOLE_DOCUMENT,
            instruction_template="Extract notices",
            max_output_tokens=16_000,
            payload_model=GazettePayload,
            document=pdf_document,
        )

        result = ExtractionClient(provider, config).extract(request)

        assert result.success
        assert result.parsed_payload.records[0].entity_name == "ACME LTD"
        assert provider.calls[0]["shape"] == "document"
        assert provider.calls[0]["media_type"] == "application/pdf"
        assert provider.calls[0]["max_output_tokens"] == 16_000
        assert provider.calls[0]["timeout"] == config.request_timeout

    def test_batch_is_sent_as_text(self, config, fake_provider_factory, gazette_response):
        provider = fake_provider_factory([gazette_response([])])

        result = ExtractionClient(provider, config).extract(batch_request(), timeout=12.5)

        assert result.success
        assert provider.calls[0]["shape"] == "text"
        assert "DELTA LP" in provider.calls[0]["text"]
        assert provider.calls[0]["timeout"] == 12.5

    def test_usage_is_recorded(self, config, fake_provider_factory, gazette_response):
        provider = fake_provider_factory([ProviderResponse(gazette_response([]), 1_200, 300, "end_turn")])

        result = ExtractionClient(provider, config).extract(batch_request())

        assert result.usage.input_tokens == 1_200
        assert result.usage.output_tokens == 300
        assert result.stop_reason == "end_turn"

    def test_provider_error_is_returned(self, config, fake_provider_factory):
        provider = fake_provider_factory([ProviderCallError("HTTP 529: overloaded", status_code=529)])

        result = ExtractionClient(provider, config).extract(batch_request())

        assert result.status is ExtractionStatus.PROVIDER_ERROR
        assert "overloaded" in result.error_detail
        assert result.parsed_payload is None

    def test_unparseable_response_is_parse_error(self, config, fake_provider_factory):
        provider = fake_provider_factory(["Sorry, I cannot help with that."])

        result = ExtractionClient(provider, config).extract(batch_request())

        assert result.status is ExtractionStatus.PARSE_ERROR
        assert result.raw_text == "Sorry, I cannot help with that."

    @pytest.mark.parametrize("stop_reason", ["max_tokens", "length"])
    def test_truncated_response_is_parse_error(self, config, fake_provider_factory, gazette_response, stop_reason):
        # Even a parseable body is rejected once the allowance ran out
        provider = fake_provider_factory([ProviderResponse(gazette_response([]), 1_000, 8_000, stop_reason)])

        result = ExtractionClient(provider, config).extract(batch_request(max_output_tokens=8_000))

        assert result.status is ExtractionStatus.PARSE_ERROR
        assert result.error_detail == "Response truncated at max_output_tokens=8000"
        assert result.stop_reason == stop_reason


class TestExtractionRequest:

    def test_whole_document_needs_document(self):
        with pytest.raises(ValueError):
            ExtractionRequest(
                target=ExtractionTarget.WHOLE_DOCUMENT,
                instruction_template="x",
                max_output_tokens=8_000,
                payload_model=GazettePayload,
            )

    def test_batch_needs_text(self):
        with pytest.raises(ValueError):
            ExtractionRequest(
                target=ExtractionTarget.BATCH,
                instruction_template="x",
                max_output_tokens=8_000,
                payload_model=GazettePayload,
                text="",
            )

    def test_label(self):
        assert batch_request().label == "Batch 1"
