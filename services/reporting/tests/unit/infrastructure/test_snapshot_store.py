import json
from datetime import date
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from shared.constants import ReportType
from src.core.errors import PersistenceFailure, SnapshotUnreadable
from src.domain.models import MessageStatistics, ThingStatistics
from src.infrastructure.s3.snapshot_store import SnapshotStore

BUCKET = "test-bucket"


def make_store(s3, **kwargs):
    kwargs.setdefault("put_base_delay", 0)
    return SnapshotStore(s3, bucket=BUCKET, prefix="iotcore-logs/", **kwargs)


def test_key_layout(fake_s3, report_day):
    store = make_store(fake_s3)
    assert (
        store.key_for(ReportType.THINGS, report_day)
        == "iotcore-logs/2024/05/daily-statistic-2024-05-01.json"
    )


@pytest.mark.asyncio
async def test_put_then_fetch(fake_s3, report_day):
    store = make_store(fake_s3)
    snapshot = ThingStatistics(date="2024-05-01", account_thing_count=1_200_000).with_totals()

    key = await store.put(ReportType.THINGS, snapshot)
    loaded = await store.fetch(ReportType.THINGS, report_day)

    assert key == "iotcore-logs/2024/05/daily-statistic-2024-05-01.json"
    assert loaded == snapshot
    stored = json.loads(fake_s3.objects[(BUCKET, key)])
    assert stored["accountThingCount"] == 1_200_000


@pytest.mark.asyncio
async def test_second_put_overwrites(fake_s3, report_day):
    store = make_store(fake_s3)
    await store.put(ReportType.THINGS, ThingStatistics(date="2024-05-01", account_thing_count=1))
    await store.put(ReportType.THINGS, ThingStatistics(date="2024-05-01", account_thing_count=2))

    assert len(fake_s3.objects) == 1
    loaded = await store.get(ReportType.THINGS, report_day)
    assert loaded.account_thing_count == 2


@pytest.mark.asyncio
async def test_absent_snapshot(fake_s3, report_day):
    store = make_store(fake_s3)
    assert await store.fetch(ReportType.THINGS, report_day) is None

    baseline = await store.get(ReportType.THINGS, report_day)
    assert isinstance(baseline, ThingStatistics)
    assert baseline.date == "2024-05-01"
    assert baseline.total_thing_count == 0


@pytest.mark.asyncio
async def test_malformed_snapshot(fake_s3, report_day):
    store = make_store(fake_s3)
    fake_s3.objects[(BUCKET, store.key_for(ReportType.THINGS, report_day))] = b"{not json"

    with pytest.raises(SnapshotUnreadable):
        await store.fetch(ReportType.THINGS, report_day)
    baseline = await store.get(ReportType.THINGS, report_day)
    assert baseline.account_thing_count == 0


@pytest.mark.asyncio
async def test_snapshot_of_wrong_type_is_unreadable(fake_s3, report_day):
    store = make_store(fake_s3)
    key = store.key_for(ReportType.THINGS, report_day)
    fake_s3.objects[(BUCKET, key)] = json.dumps(
        {"date": "2024-05-01", "reportType": "error-statistic"}
    ).encode()

    with pytest.raises(SnapshotUnreadable):
        await store.fetch(ReportType.THINGS, report_day)


@pytest.mark.asyncio
async def test_access_denied_is_unreadable(report_day):
    s3 = MagicMock()
    s3.get_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject"
    )
    store = make_store(s3)

    with pytest.raises(SnapshotUnreadable):
        await store.fetch(ReportType.THINGS, report_day)


@pytest.mark.asyncio
async def test_put_exhausts_retries(report_day):
    s3 = MagicMock()
    s3.put_object.side_effect = ClientError(
        {"Error": {"Code": "SlowDown", "Message": "slow"}}, "PutObject"
    )
    store = make_store(s3, put_retries=3)

    with pytest.raises(PersistenceFailure):
        await store.put(ReportType.THINGS, ThingStatistics(date="2024-05-01"))
    assert s3.put_object.call_count == 3


@pytest.mark.asyncio
async def test_put_recovers_after_transient_error(fake_s3):
    s3 = MagicMock(wraps=fake_s3)
    s3.put_object.side_effect = [
        ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "PutObject"),
        {"ETag": '"ok"'},
    ]
    store = make_store(s3, put_retries=3)

    key = await store.put(ReportType.THINGS, ThingStatistics(date="2024-05-01"))
    assert key.endswith("daily-statistic-2024-05-01.json")
    assert s3.put_object.call_count == 2


@pytest.mark.asyncio
async def test_history_is_oldest_first_with_gaps(fake_s3):
    store = make_store(fake_s3)
    await store.put(
        ReportType.MESSAGES,
        MessageStatistics(date="2024-04-30", inbound={"success": 5}).with_totals(),
    )

    history = await store.history(ReportType.MESSAGES, date(2024, 4, 30), 3)

    assert [s.date for s in history] == ["2024-04-28", "2024-04-29", "2024-04-30"]
    assert history[0].inbound.total == 0
    assert history[-1].inbound.total == 5
