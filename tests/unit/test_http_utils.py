"""
Request/response helper tests.

Run with: pytest tests/unit/test_http_utils.py -v
"""

import base64
import json

import pytest
from pydantic import ValidationError

from conftest import PNG_BYTES, multipart_event
from models.payment import PaymentProof
from utils.error_handling import (
    ConfigurationError,
    DuplicatePayment,
    InvalidRequest,
    PayloadTooLarge,
)
from utils.http import (
    describe_validation_error,
    error_response,
    get_header,
    parse_json_body,
    parse_multipart,
    run_with_container,
)


def test_get_header_is_case_insensitive():
    assert get_header({"headers": {"Content-Type": "a"}}, "content-type") == "a"
    assert get_header({}, "content-type") is None


def test_parse_json_body_base64():
    event = {"body": base64.b64encode(b'{"a": 1}').decode(), "isBase64Encoded": True}
    assert parse_json_body(event) == {"a": 1}


def test_invalid_base64_body_is_invalid_request():
    with pytest.raises(InvalidRequest, match="base64"):
        parse_json_body({"body": "abc", "isBase64Encoded": True})


def test_run_with_container_turns_setup_failure_into_json_500():
    def unconfigured():
        raise ConfigurationError("DATABASE_URL or DB_SECRET_ARN must be set")

    response = run_with_container(lambda event, container: {"statusCode": 200}, {}, unconfigured)

    assert response["statusCode"] == 500
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    assert "DATABASE_URL" not in response["body"]


def test_parse_json_body_empty_is_empty_dict():
    assert parse_json_body({"body": None}) == {}


@pytest.mark.parametrize("body", ["{not json", "[1, 2]", '"text"'])
def test_parse_json_body_rejects_non_objects(body):
    with pytest.raises(InvalidRequest):
        parse_json_body({"body": body})


def test_parse_multipart_fields_and_file():
    event = multipart_event(
        [
            ("amount", "150.00"),
            ("reference", "4821"),
            ("file", ("proof.png", "image/png", PNG_BYTES)),
        ]
    )

    form = parse_multipart(event)

    assert form.fields == {"amount": "150.00", "reference": "4821"}
    upload = form.files["file"]
    assert upload.filename == "proof.png"
    assert upload.content_type == "image/png"
    assert upload.content == PNG_BYTES


def test_parse_multipart_size_limit():
    event = multipart_event([("file", ("big.png", "image/png", PNG_BYTES))])

    with pytest.raises(PayloadTooLarge):
        parse_multipart(event, max_file_bytes=8)


def test_parse_multipart_requires_multipart_content_type():
    with pytest.raises(InvalidRequest):
        parse_multipart({"headers": {"content-type": "application/json"}, "body": "{}"})


def test_error_response_carries_cors_and_payload():
    response = error_response(DuplicatePayment("4821"))

    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    assert json.loads(response["body"])["success"] is False


def test_describe_validation_error_lists_missing_fields():
    with pytest.raises(ValidationError) as exc_info:
        PaymentProof.model_validate({"name": "Ana", "phone": "0412", "amount": 10})

    message = describe_validation_error(exc_info.value)

    assert message.startswith("Missing required data:")
    assert "quantity" in message
    assert "reference" in message
