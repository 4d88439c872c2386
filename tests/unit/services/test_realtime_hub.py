"""Tests for the in-process realtime hub."""

import asyncio

import pytest

from dealmate.schemas.realtime import RowChangeEvent, RowEventType
from dealmate.services.realtime import RealtimeHub


def event(table: str = "processing_jobs", deal_id: str = "deal-1", event_type=RowEventType.UPDATE, **row):
    return RowChangeEvent(table=table, event_type=event_type, new={"deal_id": deal_id, **row})


class TestFiltering:
    def test_table_and_deal_filters(self, hub):
        subscription = hub.subscribe("processing_jobs", deal_id="deal-1")

        assert hub.publish(event()) == 1
        assert hub.publish(event(deal_id="deal-2")) == 0
        assert hub.publish(event(table="cim_analysis")) == 0
        assert subscription.queue.qsize() == 1

    def test_event_type_filter(self, hub):
        hub.subscribe(["processing_jobs", "cim_analysis"], event_types=[RowEventType.INSERT])

        assert hub.publish(event(event_type=RowEventType.INSERT)) == 1
        assert hub.publish(event(event_type=RowEventType.UPDATE)) == 0

    def test_delete_events_match_on_old_row(self, hub):
        hub.subscribe("processing_jobs", deal_id="deal-1")
        deleted = RowChangeEvent(
            table="processing_jobs",
            event_type=RowEventType.DELETE,
            old={"deal_id": "deal-1"},
        )

        assert hub.publish(deleted) == 1


class TestDelivery:
    def test_full_queue_drops_oldest(self):
        hub = RealtimeHub(queue_size=2)
        subscription = hub.subscribe("processing_jobs")

        for progress in (10, 20, 30):
            hub.publish(event(progress=progress))

        received = [subscription.queue.get_nowait().new["progress"] for _ in range(2)]
        assert received == [20, 30]

    @pytest.mark.asyncio
    async def test_async_iteration(self, hub):
        subscription = hub.subscribe("processing_jobs")
        hub.publish(event(progress=1))
        hub.publish(event(progress=2))

        received = []
        async for row_event in subscription:
            received.append(row_event.new["progress"])
            if len(received) == 2:
                break

        assert received == [1, 2]

    @pytest.mark.asyncio
    async def test_get_waits_for_publish(self, hub):
        subscription = hub.subscribe("cim_analysis")

        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        hub.publish(event(table="cim_analysis", event_type=RowEventType.INSERT))

        received = await asyncio.wait_for(waiter, timeout=1)
        assert received.table == "cim_analysis"


class TestLifecycle:
    def test_close_unsubscribes(self, hub):
        with hub.subscribe("processing_jobs") as subscription:
            assert hub.subscriber_count == 1

        assert subscription.closed is True
        assert hub.subscriber_count == 0
        assert hub.publish(event()) == 0

    def test_close_is_idempotent(self, hub):
        subscription = hub.subscribe("processing_jobs")

        subscription.close()
        subscription.close()

        assert hub.subscriber_count == 0
