import logging
import uuid

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from apps.mapper.transformer import (
    MESSAGE_TIMESTAMP_HEADER,
    TRANSACTION_ID_HEADER,
    MappingError,
    VideoMapper,
)
from services.api.dependencies import get_video_mapper
from utils.schemas import QueueMessage

logger = logging.getLogger(__name__)

router = APIRouter()


def transaction_id(request: Request) -> str:
    """Transaction id of the request, or a freshly generated one."""
    return request.headers.get(TRANSACTION_ID_HEADER) or f"tid_{uuid.uuid4().hex[:10]}"


@router.post("/map")
async def map_video(request: Request, mapper: VideoMapper = Depends(get_video_mapper)):
    tid = transaction_id(request)
    logger.info("Received transformation request", extra={"event": "mapping", "transaction_id": tid})

    raw = await request.body()
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        return PlainTextResponse(f"Request body is not valid UTF-8: {e}", status_code=400)

    headers = {"Content-Type": "application/json", TRANSACTION_ID_HEADER: tid}
    timestamp = request.headers.get(MESSAGE_TIMESTAMP_HEADER)
    if timestamp:
        headers[MESSAGE_TIMESTAMP_HEADER] = timestamp

    try:
        result = mapper.transform(QueueMessage(headers=headers, body=body))
    except MappingError as e:
        logger.error(
            "Error mapping request",
            extra={"event": "error", "transaction_id": tid, "uuid": e.content_uuid, "error": str(e)},
        )
        return PlainTextResponse(str(e), status_code=400)

    return Response(
        content=result.body,
        media_type="application/json",
        headers={TRANSACTION_ID_HEADER: tid},
    )
