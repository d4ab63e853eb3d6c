"""Canonical time grid endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Request

from dayplanner.api.schemas.daily import TimeBlockPayload, TimeBlocksResponse
from dayplanner.observability.tracing import trace
from dayplanner.services.time_grid import DEFAULT_BLOCK_NAME, TIME_BLOCKS, quartile_duration_minutes, quartile_span

router = APIRouter()


@router.get("/time-blocks", response_model=TimeBlocksResponse, tags=["daily"])
def list_time_blocks(request: Request) -> TimeBlocksResponse:
    """The block grid clients render; served from the same table the scheduler uses."""
    request_id = getattr(request.state, "request_id", None)
    with trace("time_blocks.list", metadata={"route": "/time-blocks"}, request_id=request_id):
        blocks = [
            TimeBlockPayload(
                name=block.name,
                start=block.start,
                end=block.end,
                quartiles=[[start, end] for start, end in quartile_span(block.name)],
                quartile_minutes=quartile_duration_minutes(block.name),
            )
            for block in TIME_BLOCKS
        ]
    return TimeBlocksResponse(default_block=DEFAULT_BLOCK_NAME, blocks=blocks)
