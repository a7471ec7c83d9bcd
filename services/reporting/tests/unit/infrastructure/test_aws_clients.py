import threading
from unittest.mock import MagicMock, patch

import pytest

from src.core.config import Settings
from src.infrastructure.aws.clients import AwsClients, build_clients, call_aws


@patch("src.infrastructure.aws.clients.boto3.session.Session")
def test_build_clients_uses_one_session(mock_session_cls):
    session = MagicMock()
    session.client.side_effect = lambda name, config=None: f"client:{name}"
    mock_session_cls.return_value = session

    clients = build_clients(Settings(aws_region="eu-west-1", aws_profile="ops"))

    mock_session_cls.assert_called_once_with(profile_name="ops", region_name="eu-west-1")
    assert isinstance(clients, AwsClients)
    assert clients.cloudwatch == "client:cloudwatch"
    assert clients.redshift_data == "client:redshift-data"
    assert clients.s3 == "client:s3"


@patch("src.infrastructure.aws.clients.boto3.session.Session")
def test_client_retry_budget_comes_from_settings(mock_session_cls):
    session = MagicMock()
    mock_session_cls.return_value = session

    build_clients(Settings(aws_max_attempts=7))

    config = session.client.call_args.kwargs["config"]
    assert config.retries == {"max_attempts": 7, "mode": "standard"}


@pytest.mark.asyncio
async def test_call_aws_runs_off_the_event_loop_thread():
    loop_thread = threading.get_ident()

    def operation(**params):
        return threading.get_ident(), params

    thread_id, params = await call_aws(operation, Bucket="b", Key="k")

    assert thread_id != loop_thread
    assert params == {"Bucket": "b", "Key": "k"}
