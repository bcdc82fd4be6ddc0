"""
Tests for the segment walker (core/segment_walker.py)

A fake gateway serves a fixed list of items in segments. Like DynamoDB it
may return fewer items than the requested Limit while more remain.
"""

import asyncio

import pytest
from boto3.dynamodb.conditions import Attr

from dynamodb_repository.core.continuation import decode_continuation_token, encode_continuation_token
from dynamodb_repository.core.segment_walker import SegmentWalker, TableQuery
from dynamodb_repository.exceptions import ContinuationTokenError


class FakeSegmentGateway:
    """Serves items in segments of at most max_segment_size (and at most query.take)."""

    def __init__(self, items, max_segment_size=3):
        self.items = items
        self.max_segment_size = max_segment_size
        self.requests = []

    def execute_query_segment(self, table_query, exclusive_start_key=None):
        self.requests.append((table_query, exclusive_start_key))
        offset = exclusive_start_key['offset'] if exclusive_start_key else 0

        size = self.max_segment_size
        if table_query.take is not None:
            size = min(size, table_query.take)

        segment = self.items[offset:offset + size]
        next_offset = offset + len(segment)
        last_key = {'offset': next_offset} if next_offset < len(self.items) else None
        return segment, last_key


def make_items(count):
    return [{'PartitionKey': 'p', 'RowKey': str(i)} for i in range(count)]


class TestTableQuery:

    def test_defaults_match_everything(self):
        query = TableQuery()

        assert query.filter_condition is None
        assert query.take is None
        assert query.select is None
        assert query.partition_key is None

    def test_accepts_boto3_condition(self):
        condition = Attr('Name').eq('John')

        assert TableQuery(filter_condition=condition).filter_condition == condition


class TestExecuteAll:

    @pytest.mark.asyncio
    async def test_drains_every_segment(self):
        gateway = FakeSegmentGateway(make_items(10), max_segment_size=3)
        walker = SegmentWalker(gateway)

        items = await walker.execute_all(TableQuery())

        assert [item['RowKey'] for item in items] == [str(i) for i in range(10)]
        assert len(gateway.requests) == 4
        assert gateway.requests[0][1] is None
        assert gateway.requests[1][1] == {'offset': 3}

    @pytest.mark.asyncio
    async def test_empty_result(self):
        walker = SegmentWalker(FakeSegmentGateway([]))

        assert await walker.execute_all(TableQuery()) == []

    @pytest.mark.asyncio
    async def test_converter_applied_to_each_item(self):
        walker = SegmentWalker(FakeSegmentGateway(make_items(4)), converter=lambda item: item['RowKey'])

        assert await walker.execute_all(TableQuery()) == ['0', '1', '2', '3']

    @pytest.mark.asyncio
    async def test_progress_receives_accumulator_after_each_segment(self):
        walker = SegmentWalker(FakeSegmentGateway(make_items(7), max_segment_size=3))
        seen = []

        await walker.execute_all(TableQuery(), on_progress=lambda items: seen.append(len(items)))

        assert seen == [3, 6, 7]

    @pytest.mark.asyncio
    async def test_async_progress_callback_awaited(self):
        walker = SegmentWalker(FakeSegmentGateway(make_items(4), max_segment_size=2))
        seen = []

        async def on_progress(items):
            seen.append(len(items))

        await walker.execute_all(TableQuery(), on_progress=on_progress)

        assert seen == [2, 4]

    @pytest.mark.asyncio
    async def test_progress_failure_aborts_walk(self):
        gateway = FakeSegmentGateway(make_items(9), max_segment_size=3)
        walker = SegmentWalker(gateway)

        def on_progress(items):
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError, match="stop"):
            await walker.execute_all(TableQuery(), on_progress=on_progress)

        assert len(gateway.requests) == 1

    @pytest.mark.asyncio
    async def test_cancellation_checked_after_segment(self):
        gateway = FakeSegmentGateway(make_items(9), max_segment_size=3)
        walker = SegmentWalker(gateway)
        cancel_event = asyncio.Event()
        cancel_event.set()

        items = await walker.execute_all(TableQuery(), cancel_event=cancel_event)

        # The first segment is always fetched and kept
        assert len(items) == 3
        assert len(gateway.requests) == 1

    @pytest.mark.asyncio
    async def test_cancellation_mid_walk(self):
        gateway = FakeSegmentGateway(make_items(9), max_segment_size=3)
        walker = SegmentWalker(gateway)
        cancel_event = asyncio.Event()

        def on_progress(items):
            if len(items) >= 6:
                cancel_event.set()

        items = await walker.execute_all(TableQuery(), cancel_event=cancel_event, on_progress=on_progress)

        assert len(items) == 6


class TestExecutePage:

    @pytest.mark.asyncio
    async def test_page_never_exceeds_take_with_short_segments(self):
        gateway = FakeSegmentGateway(make_items(23), max_segment_size=3)
        walker = SegmentWalker(gateway)
        query = TableQuery(take=5)

        pages = []
        token = None
        while True:
            page = await walker.execute_page(query, page_token=token)
            pages.append(page)
            token = page.next_page_token
            if token is None or len(pages) > 10:
                break

        assert all(len(page.items) <= 5 for page in pages)
        assert [len(page.items) for page in pages] == [5, 5, 5, 5, 3]
        assert [item['RowKey'] for page in pages for item in page.items] == [str(i) for i in range(23)]
        assert pages[-1].next_page_token is None

    @pytest.mark.asyncio
    async def test_follow_up_requests_ask_for_shortfall(self):
        gateway = FakeSegmentGateway(make_items(10), max_segment_size=3)
        walker = SegmentWalker(gateway)

        await walker.execute_page(TableQuery(take=5))

        assert [request[0].take for request in gateway.requests] == [5, 2]

    @pytest.mark.asyncio
    async def test_caller_query_not_modified(self):
        walker = SegmentWalker(FakeSegmentGateway(make_items(10), max_segment_size=3))
        query = TableQuery(take=5)

        await walker.execute_page(query)

        assert query.take == 5

    @pytest.mark.asyncio
    async def test_resumes_from_token(self):
        gateway = FakeSegmentGateway(make_items(10), max_segment_size=10)
        walker = SegmentWalker(gateway)
        token = encode_continuation_token({'offset': 4})

        page = await walker.execute_page(TableQuery(take=3), page_token=token)

        assert [item['RowKey'] for item in page.items] == ['4', '5', '6']
        assert gateway.requests[0][1] == {'offset': 4}
        assert page.current_page_token == token
        assert decode_continuation_token(page.next_page_token) == {'offset': 7}
        assert page.take == 3
        assert page.has_more

    @pytest.mark.asyncio
    async def test_exhausted_query_has_no_next_token(self):
        walker = SegmentWalker(FakeSegmentGateway(make_items(2), max_segment_size=5))

        page = await walker.execute_page(TableQuery(take=5))

        assert len(page.items) == 2
        assert page.next_page_token is None
        assert not page.has_more
        assert page.current_page_token is None

    @pytest.mark.asyncio
    async def test_without_take_drains_query(self):
        gateway = FakeSegmentGateway(make_items(8), max_segment_size=3)
        walker = SegmentWalker(gateway)

        page = await walker.execute_page(TableQuery())

        assert len(page.items) == 8
        assert page.next_page_token is None
        assert len(gateway.requests) == 3

    @pytest.mark.asyncio
    async def test_cancellation_returns_partial_page_with_token(self):
        gateway = FakeSegmentGateway(make_items(10), max_segment_size=2)
        walker = SegmentWalker(gateway)
        cancel_event = asyncio.Event()
        cancel_event.set()

        page = await walker.execute_page(TableQuery(take=6), cancel_event=cancel_event)

        assert len(page.items) == 2
        assert decode_continuation_token(page.next_page_token) == {'offset': 2}

    @pytest.mark.asyncio
    async def test_malformed_token_raises_before_any_request(self):
        gateway = FakeSegmentGateway(make_items(5))
        walker = SegmentWalker(gateway)

        with pytest.raises(ContinuationTokenError):
            await walker.execute_page(TableQuery(take=2), page_token="!!not-a-token!!")

        assert gateway.requests == []
