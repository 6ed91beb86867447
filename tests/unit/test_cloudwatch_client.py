from __future__ import annotations

from unittest.mock import MagicMock, patch

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError, NoCredentialsError
from botocore.stub import Stubber

from logship.core.errors import RemoteError
from logship.plugins.sinks.cloudwatch import (
    CloudWatchLogsClient,
    translate_error,
)


@pytest.fixture
def stubbed():
    client = boto3.client(
        "logs",
        region_name="us-east-1",
        aws_access_key_id="x",
        aws_secret_access_key="y",
    )
    with Stubber(client) as stubber:
        yield CloudWatchLogsClient(client=client), stubber
        stubber.assert_no_pending_responses()


async def test_create_log_group_reports_creation(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_response("create_log_group", {}, {"logGroupName": "g"})
    assert await client.create_log_group("g") is True


async def test_create_log_group_already_exists_is_success(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_client_error(
        "create_log_group",
        service_error_code="ResourceAlreadyExistsException",
        service_message="The specified log group already exists",
        expected_params={"logGroupName": "g"},
    )
    assert await client.create_log_group("g") is False


async def test_create_log_group_other_error_raises(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_client_error(
        "create_log_group",
        service_error_code="AccessDeniedException",
        service_message="denied",
    )
    with pytest.raises(RemoteError) as excinfo:
        await client.create_log_group("g")
    assert excinfo.value.code == "AccessDeniedException"
    assert excinfo.value.retryable is False


async def test_describe_log_streams_parses_page(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_response(
        "describe_log_streams",
        {
            "logStreams": [
                {"logStreamName": "s", "uploadSequenceToken": "t0"},
                {"logStreamName": "s-2"},
            ],
            "nextToken": "page-2",
        },
        {"logGroupName": "g", "logStreamNamePrefix": "s"},
    )
    stubber.add_response(
        "describe_log_streams",
        {"logStreams": []},
        {"logGroupName": "g", "logStreamNamePrefix": "s", "nextToken": "page-2"},
    )

    first = await client.describe_log_streams("g", "s")
    assert [(i.name, i.upload_sequence_token) for i in first.streams] == [
        ("s", "t0"),
        ("s-2", None),
    ]
    assert first.next_token == "page-2"

    second = await client.describe_log_streams("g", "s", first.next_token)
    assert second.streams == []
    assert second.next_token is None


async def test_create_log_stream(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_response(
        "create_log_stream", {}, {"logGroupName": "g", "logStreamName": "s"}
    )
    await client.create_log_stream("g", "s")


async def test_put_without_token_omits_sequence_token(stubbed) -> None:
    client, stubber = stubbed
    events = [{"timestamp": 1, "message": "a"}]
    stubber.add_response(
        "put_log_events",
        {"nextSequenceToken": "t1"},
        {"logGroupName": "g", "logStreamName": "s", "logEvents": events},
    )
    assert await client.put_log_events("g", "s", events) == "t1"


async def test_put_with_token_sends_it(stubbed) -> None:
    client, stubber = stubbed
    events = [{"timestamp": 1, "message": "a"}, {"timestamp": 2, "message": "b"}]
    stubber.add_response(
        "put_log_events",
        {"nextSequenceToken": "t2"},
        {
            "logGroupName": "g",
            "logStreamName": "s",
            "logEvents": events,
            "sequenceToken": "t1",
        },
    )
    assert await client.put_log_events("g", "s", events, "t1") == "t2"


async def test_put_rejected_events_emit_diagnostic(stubbed, captured_diagnostics) -> None:
    client, stubber = stubbed
    stubber.add_response(
        "put_log_events",
        {"nextSequenceToken": "t1", "rejectedLogEventsInfo": {"tooOldLogEventEndIndex": 0}},
    )
    await client.put_log_events("g", "s", [{"timestamp": 1, "message": "a"}])
    assert any(d["message"] == "log events rejected" for d in captured_diagnostics)


async def test_token_mismatch_carries_expected_token(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_client_error(
        "put_log_events",
        service_error_code="InvalidSequenceTokenException",
        service_message="The given sequenceToken is invalid.",
        modeled_fields={"expectedSequenceToken": "t9"},
    )
    with pytest.raises(RemoteError) as excinfo:
        await client.put_log_events("g", "s", [{"timestamp": 1, "message": "a"}], "t1")
    assert excinfo.value.code == "InvalidSequenceTokenException"
    assert excinfo.value.expected_sequence_token == "t9"
    assert excinfo.value.operation == "put_log_events"


async def test_throttling_is_retryable(stubbed) -> None:
    client, stubber = stubbed
    stubber.add_client_error(
        "put_log_events", service_error_code="ThrottlingException", http_status_code=400
    )
    with pytest.raises(RemoteError) as excinfo:
        await client.put_log_events("g", "s", [{"timestamp": 1, "message": "a"}])
    assert excinfo.value.retryable is True


def test_transport_errors_are_translated() -> None:
    conn = translate_error(
        EndpointConnectionError(endpoint_url="https://logs.invalid"), "put_log_events"
    )
    assert conn.code == "EndpointConnectionError"
    assert conn.retryable is True

    creds = translate_error(NoCredentialsError(), "create_log_group")
    assert creds.code == "NoCredentialsError"
    assert creds.retryable is False
    assert isinstance(creds.__cause__, NoCredentialsError)


async def test_start_builds_boto3_client_for_region() -> None:
    fake = MagicMock()
    with patch(
        "logship.plugins.sinks.cloudwatch.boto3.client", return_value=fake
    ) as factory:
        client = CloudWatchLogsClient(region="eu-west-1")
        await client.start()
        await client.start()

    factory.assert_called_once_with("logs", region_name="eu-west-1")


async def test_start_without_region_uses_default_chain() -> None:
    with patch("logship.plugins.sinks.cloudwatch.boto3.client") as factory:
        await CloudWatchLogsClient().start()
    factory.assert_called_once_with("logs")


async def test_health_check() -> None:
    assert await CloudWatchLogsClient().health_check() is False

    fake = MagicMock()
    fake.describe_log_groups.return_value = {"logGroups": []}
    assert await CloudWatchLogsClient(client=fake).health_check() is True
