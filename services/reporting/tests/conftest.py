import io
from datetime import date
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from src.core.config import Settings
from src.infrastructure.aws.clients import AwsClients
from src.utils.windows import DayWindow

REPORT_DAY = date(2024, 5, 1)


class FakeS3:
    """In-memory stand-in for the three S3 calls the snapshot store makes."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.put_calls = 0

    def put_object(self, Bucket, Key, Body, ContentType=None):  # noqa: N803
        self.put_calls += 1
        self.objects[(Bucket, Key)] = Body if isinstance(Body, bytes) else Body.encode()
        return {"ETag": '"fake"'}

    def get_object(self, Bucket, Key):  # noqa: N803
        try:
            data = self.objects[(Bucket, Key)]
        except KeyError:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
            ) from None
        return {"Body": io.BytesIO(data)}


@pytest.fixture
def report_day():
    return REPORT_DAY


@pytest.fixture
def window():
    return DayWindow.for_day(REPORT_DAY, "Asia/Shanghai")


@pytest.fixture
def test_settings():
    """Settings with every wait collapsed to zero."""
    return Settings(
        query_poll_interval_seconds=0,
        cloudwatch_page_delay_seconds=0,
        snapshot_put_base_delay_seconds=0,
        comparison_live_fallback=False,
    )


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def aws_clients(fake_s3):
    return AwsClients(cloudwatch=MagicMock(), redshift_data=MagicMock(), s3=fake_s3)
