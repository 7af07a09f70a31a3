"""
Payment validator tests with a mocked Bedrock runtime client.

Run with: pytest tests/unit/test_validator_service.py -v
"""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from conftest import PNG_BYTES
from models.payment import ExpectedPayment
from services.storage_service import LoadedImage
from services.validator_service import (
    TIMEOUT_DETAILS,
    BedrockPaymentValidator,
    StubPaymentValidator,
    build_validator,
)
from utils.settings import AppSettings


def _converse_response(text: str) -> dict:
    return {"output": {"message": {"role": "assistant", "content": [{"text": text}]}}}


@pytest.fixture
def expected():
    return ExpectedPayment(amount=150.0, reference="4821", bank="Banesco", phone="04145551234")


@pytest.fixture
def image():
    return LoadedImage(content=PNG_BYTES, format="png")


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def validator(client):
    return BedrockPaymentValidator(model_id="test-vision-model", client=client)


class TestBedrockPaymentValidator:
    def test_parses_structured_verdict(self, validator, client, image, expected):
        client.converse.return_value = _converse_response(
            json.dumps({"valid": True, "confidence": 0.92, "details": "amount and reference match"})
        )

        verdict = validator.validate(image, expected)

        assert verdict.valid is True
        assert verdict.confidence == 0.92
        assert verdict.provider == "bedrock:test-vision-model"

    def test_sends_image_and_expected_fields(self, validator, client, image, expected):
        client.converse.return_value = _converse_response('{"valid": false, "confidence": 0.1}')

        validator.validate(image, expected)

        kwargs = client.converse.call_args.kwargs
        assert kwargs["modelId"] == "test-vision-model"
        content = kwargs["messages"][0]["content"]
        assert content[0]["image"] == {"format": "png", "source": {"bytes": PNG_BYTES}}
        prompt = content[1]["text"]
        assert "150.00" in prompt
        assert "4821" in prompt
        assert "Banesco" in prompt

    def test_markdown_fenced_output_is_malformed(self, validator, client, image, expected):
        client.converse.return_value = _converse_response(
            '```json\n{"valid": true, "confidence": 0.9}\n```'
        )

        verdict = validator.validate(image, expected)

        assert verdict.valid is False
        assert verdict.confidence == 0.0
        assert verdict.details == "validator returned malformed output"

    def test_out_of_range_confidence_is_malformed(self, validator, client, image, expected):
        client.converse.return_value = _converse_response('{"valid": true, "confidence": 7}')

        verdict = validator.validate(image, expected)

        assert verdict.valid is False

    def test_empty_content_is_malformed(self, validator, client, image, expected):
        client.converse.return_value = {"output": {"message": {"content": []}}}

        verdict = validator.validate(image, expected)

        assert verdict.details == "validator returned malformed output"

    def test_timeout_becomes_failure_verdict(self, validator, client, image, expected):
        client.converse.side_effect = ReadTimeoutError(endpoint_url="https://bedrock")

        verdict = validator.validate(image, expected)

        assert verdict.valid is False
        assert verdict.confidence == 0.0
        assert verdict.details == TIMEOUT_DETAILS

    def test_client_error_becomes_failure_verdict(self, validator, client, image, expected):
        client.converse.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "Converse"
        )

        verdict = validator.validate(image, expected)

        assert verdict.valid is False
        assert verdict.details == "validator error: ThrottlingException"

    def test_connection_error_becomes_failure_verdict(self, validator, client, image, expected):
        client.converse.side_effect = EndpointConnectionError(endpoint_url="https://bedrock")

        verdict = validator.validate(image, expected)

        assert verdict.details == "validator unavailable"


class TestStubValidator:
    def test_approves_with_medium_confidence(self, expected):
        verdict = StubPaymentValidator().validate(None, expected)

        assert verdict.valid is True
        assert verdict.confidence == 0.7
        assert verdict.provider == "stub"

    def test_does_not_need_image(self):
        assert StubPaymentValidator.requires_image is False


class TestBuildValidator:
    def test_stub_without_model(self):
        assert isinstance(build_validator(AppSettings()), StubPaymentValidator)

    def test_bedrock_with_model(self):
        validator = build_validator(
            AppSettings(validator_model_id="test-vision-model", validator_timeout_seconds=7)
        )

        assert isinstance(validator, BedrockPaymentValidator)
        assert validator.timeout_seconds == 7
        assert validator.region == "us-east-1"
