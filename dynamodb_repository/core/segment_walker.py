"""
Segment Walker

DynamoDB returns query results in segments: a bounded batch of items plus a
LastEvaluatedKey to resume from. The walker drives those round trips in two
modes:

- execute_all drains every segment into one list.
- execute_page returns one page of at most ``take`` items together with a
  continuation token for the next page.

Cancellation is only observed between segments. A request that has been sent
always completes and its items are kept.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import ConditionBase
from pydantic import BaseModel, ConfigDict, Field

from ..models.entity import PagedResult
from .continuation import decode_continuation_token, encode_continuation_token

logger = logging.getLogger(__name__)


class TableQuery(BaseModel):
    """Definition of a segmented query."""

    filter_condition: Optional[ConditionBase] = Field(default=None, description="boto3 condition; None matches everything")
    take: Optional[int] = Field(default=None, gt=0, description="Item cap per request (and per page in paged mode)")
    select: Optional[List[str]] = Field(default=None, description="Attribute names to project")
    partition_key: Optional[str] = Field(default=None, description="Restrict the query to one partition")

    model_config = ConfigDict(arbitrary_types_allowed=True)


def _is_cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class SegmentWalker:
    """Walks the segments of a TableQuery through a TableGateway.

    Args:
        gateway: Object exposing ``execute_query_segment(query, exclusive_start_key)``
        converter: Applied to every raw item before it is accumulated
    """

    def __init__(self, gateway, converter: Optional[Callable[[Dict[str, Any]], Any]] = None):
        self.gateway = gateway
        self.converter = converter or (lambda item: item)

    async def _fetch_segment(self, query: TableQuery, resume_handle: Optional[Dict[str, Any]]):
        raw_items, next_handle = await asyncio.to_thread(self.gateway.execute_query_segment, query, resume_handle)
        return [self.converter(item) for item in raw_items], next_handle

    async def execute_all(
        self,
        query: TableQuery,
        cancel_event=None,
        on_progress: Optional[Callable[[List[Any]], Any]] = None
    ) -> List[Any]:
        """Drain every segment of the query.

        Stops when the store has no further resume handle, or when cancel_event
        is set once a segment has completed. on_progress is called after each
        segment with the items accumulated so far; an exception it raises
        aborts the walk.
        """
        items = []
        resume_handle = None
        segments = 0

        while True:
            segment_items, resume_handle = await self._fetch_segment(query, resume_handle)
            items.extend(segment_items)
            segments += 1

            if on_progress is not None:
                result = on_progress(items)
                if inspect.isawaitable(result):
                    await result

            if resume_handle is None:
                break
            if _is_cancelled(cancel_event):
                logger.debug(f"Query cancelled after {segments} segments ({len(items)} items)")
                break

        return items

    async def execute_page(
        self,
        query: TableQuery,
        page_token: Optional[str] = None,
        cancel_event=None
    ) -> PagedResult:
        """Fetch one page of the query, resuming from page_token when given.

        With a take, segments are requested until ``take`` items have been
        collected, each follow-up request asking only for the shortfall so the
        page never exceeds the cap. Without a take the page runs until the
        query is exhausted or cancelled.

        Raises:
            ContinuationTokenError: If page_token is malformed
        """
        resume_handle = decode_continuation_token(page_token)
        original_take = query.take

        items = []
        taken = 0
        current_query = query

        while True:
            segment_items, resume_handle = await self._fetch_segment(current_query, resume_handle)
            items.extend(segment_items)
            taken += len(segment_items)

            if original_take is not None and taken < original_take:
                current_query = current_query.model_copy(update={'take': original_take - taken})

            if resume_handle is None or _is_cancelled(cancel_event):
                break
            if original_take is not None and taken >= original_take:
                break

        return PagedResult(
            items=items,
            next_page_token=encode_continuation_token(resume_handle),
            current_page_token=page_token or None,
            take=original_take
        )
