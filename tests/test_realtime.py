"""Realtime change feed primitives and in-process broker tests."""

import pytest

from storefront.core.exceptions import RealtimeError
from storefront.services.realtime import (
    ChangeFilter,
    ChannelStatus,
    MockRealtimeService,
    RealtimeChannel,
    RowChange,
)


class TestChangeFilter:

    def test_parse_and_render(self):
        change_filter = ChangeFilter.parse("user_id=eq.42")
        assert change_filter == ChangeFilter(column="user_id", value="42")
        assert str(change_filter) == "user_id=eq.42"

    def test_matches_compares_as_text(self):
        change_filter = ChangeFilter.parse("user_id=eq.42")
        assert change_filter.matches({"user_id": 42})
        assert not change_filter.matches({"user_id": "43"})
        assert not change_filter.matches({})

    @pytest.mark.parametrize("expression", ["user_id=gt.4", "=eq.4", "user_id"])
    def test_unsupported(self, expression):
        with pytest.raises(ValueError):
            ChangeFilter.parse(expression)


class TestRowChange:

    def test_wire_format(self):
        change = RowChange(table="menu_items", event_type="UPDATE", new={"id": "m1"}, old={"id": "m1"})
        payload = change.to_dict()
        assert payload["eventType"] == "UPDATE"
        assert payload["schema"] == "public"
        assert RowChange.from_dict(payload) == change

    def test_from_dict_defaults(self):
        change = RowChange.from_dict({"table": "addresses", "new": None})
        assert change.event_type == "UPDATE"
        assert change.new == {}
        assert change.old == {}


class TestRealtimeChannel:

    def make(self, **kwargs):
        received = []
        channel = RealtimeChannel("c", "addresses", received.append, **kwargs)
        channel.set_status(ChannelStatus.SUBSCRIBED)
        return channel, received

    def test_event_and_table_narrowing(self):
        channel, received = self.make(event="UPDATE")
        channel.deliver(RowChange(table="addresses", event_type="INSERT"))
        channel.deliver(RowChange(table="menu_items", event_type="UPDATE"))
        channel.deliver(RowChange(table="addresses", event_type="UPDATE"))
        assert len(received) == 1

    def test_delete_filtered_on_old_row(self):
        channel, received = self.make(change_filter=ChangeFilter.parse("user_id=eq.u1"))
        channel.deliver(RowChange(table="addresses", event_type="DELETE", old={"id": "a", "user_id": "u1"}))
        channel.deliver(RowChange(table="addresses", event_type="DELETE", old={"id": "b", "user_id": "u2"}))
        assert [change.old["id"] for change in received] == ["a"]

    def test_nothing_delivered_unless_subscribed(self):
        channel, received = self.make()
        channel.set_status(ChannelStatus.CLOSED)
        channel.deliver(RowChange(table="addresses", event_type="UPDATE"))
        assert received == []

    def test_status_callback(self):
        statuses = []
        channel = RealtimeChannel("c", "addresses", lambda change: None, statuses.append)
        channel.set_status(ChannelStatus.SUBSCRIBED)
        channel.set_status(ChannelStatus.TIMED_OUT)
        assert statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.TIMED_OUT]


class TestMockRealtimeService:

    @pytest.mark.asyncio
    async def test_publish_reaches_matching_channels(self):
        service = MockRealtimeService()
        received = []
        await service.subscribe("a", "menu_items", received.append, event="UPDATE")
        await service.subscribe("b", "addresses", received.append)

        delivered = await service.publish(RowChange(table="menu_items", event_type="UPDATE", new={"id": "m1"}))

        assert delivered == 1
        assert received[0].new == {"id": "m1"}
        assert [channel.name for channel in service.channels_for("addresses")] == ["b"]

    @pytest.mark.asyncio
    async def test_drop_reports_status_and_detaches(self):
        service = MockRealtimeService()
        statuses = []
        channel = await service.subscribe("a", "menu_items", lambda change: None, statuses.append)

        service.drop(channel, ChannelStatus.CHANNEL_ERROR)

        assert statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.CHANNEL_ERROR]
        assert service.channels == []
        assert await service.publish(RowChange(table="menu_items", event_type="UPDATE")) == 0

    @pytest.mark.asyncio
    async def test_failing_subscribe(self):
        service = MockRealtimeService(failure_rate=1.0)
        with pytest.raises(RealtimeError):
            await service.subscribe("a", "menu_items", lambda change: None)
        assert service.subscribe_attempts == 1
        assert service.channels == []

    @pytest.mark.asyncio
    async def test_remove_channel(self):
        service = MockRealtimeService()
        channel = await service.subscribe("a", "menu_items", lambda change: None)
        await service.remove_channel(channel)
        await service.remove_channel(channel)
        assert service.channels == []
