"""
Video Mapper - Native Video Content Transformation

Maps one native video message (headers + JSON body) onto a publication event.

Publish events go through per-field extraction where every optional field is
isolated: a field that is missing or malformed is logged and left out, it
never fails the whole message. Only a missing transaction id, a body that is
not a JSON object or a missing content uuid reject the message.

Unpublish events (``"deleted": true``) map onto a payload holding the uuid and
the deletion flag only.

The mapper performs no I/O and keeps no state between calls.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, NamedTuple, Optional, TypeVar

import orjson

from apps.mapper.fields import Document, FieldError
from apps.mapper.transcript import is_valid_xhtml
from apps.mapper.uuid_utils import (
    IMAGE_SET,
    STORY_PACKAGE,
    IdentifierDeriver,
    InvalidIdentifierError,
    is_uuid,
    uuid_from_uri,
)
from utils.schemas import (
    Brand,
    Caption,
    DataSource,
    DeletedVideoPayload,
    Identifier,
    PublicationEvent,
    QueueMessage,
    VideoPayload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTENT_URI_BASE = "http://next-video-mapper.svc.ft.com/video/model/"
VIDEO_AUTHORITY = "http://api.ft.com/system/NEXT-VIDEO-EDITOR"
FT_BRAND_ID = "http://api.ft.com/things/dbb0bdae-1f0c-11e4-b0cb-b2227cce2b54"
WEB_URL_TEMPLATE = "https://www.ft.com/content/{uuid}"
DEFAULT_ACCESS_LEVEL = "free"
VIDEO_TYPE = "Video"
YES = "yes"
NO = "no"

TRANSACTION_ID_HEADER = "X-Request-Id"
MESSAGE_TIMESTAMP_HEADER = "Message-Timestamp"


class EventKind(str, Enum):
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"


# Candidate keys per field, highest priority first
CONTENT_UUID_KEYS = {
    EventKind.PUBLISH: ("id",),
    EventKind.UNPUBLISH: ("id", "uuid"),
}
FIRST_PUBLISHED_DATE_KEYS = ("firstPublishedAt", "createdAt")
PUBLISHED_DATE_KEYS = ("publishedAt", "updatedAt", "createdAt")


class MappingError(Exception):
    """A message that cannot be mapped. It must be dropped, not retried."""

    def __init__(self, message: str, content_uuid: str = "") -> None:
        super().__init__(message)
        self.content_uuid = content_uuid


class MissingCorrelationIdError(MappingError):
    pass


class MalformedPayloadError(MappingError):
    pass


class MissingContentIdError(MappingError):
    pass


class MappingResult(NamedTuple):
    body: bytes
    content_uuid: str
    last_modified: str


def format_timestamp(moment: datetime) -> str:
    """Format as ``2017-04-13T10:27:32.353Z``."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def event_kind(document: Document) -> EventKind:
    try:
        deleted = document.get_bool("deleted")
    except FieldError:
        return EventKind.PUBLISH
    return EventKind.UNPUBLISH if deleted else EventKind.PUBLISH


def _optional(getter: Callable[[str], T], key: str) -> Optional[T]:
    try:
        return getter(key)
    except FieldError:
        return None


def _optional_nested(document: Document, parent: str, key: str) -> Optional[str]:
    try:
        return document.get_document(parent).get_string(key)
    except FieldError:
        return None


class VideoMapper:
    """Transforms native video messages into publication events."""

    def __init__(self, deriver: Optional[IdentifierDeriver] = None) -> None:
        self.deriver = deriver or IdentifierDeriver()

    def transform(self, message: QueueMessage) -> MappingResult:
        """
        Map a native video message onto a serialized publication event.

        Args:
            message: Message with X-Request-Id (required) and
                Message-Timestamp (optional) headers

        Returns:
            The serialized event, the content uuid and the lastModified stamp

        Raises:
            MissingCorrelationIdError: If X-Request-Id is missing
            MalformedPayloadError: If the body is not a JSON object
            MissingContentIdError: If the content uuid is missing
        """
        tid = message.headers.get(TRANSACTION_ID_HEADER, "")
        if not tid:
            raise MissingCorrelationIdError(
                f"header {TRANSACTION_ID_HEADER} not found in message headers. Skipping message"
            )

        last_modified = message.headers.get(MESSAGE_TIMESTAMP_HEADER) or format_timestamp(
            datetime.now(timezone.utc)
        )

        document = self._parse(message.body)
        kind = event_kind(document)

        try:
            content_uuid = document.get_first_string(CONTENT_UUID_KEYS[kind])
        except FieldError:
            content_uuid = ""
        if not content_uuid:
            raise MissingContentIdError(
                f"Could not extract UUID from video message. Skipping invalid JSON: {message.body}"
            )

        if kind is EventKind.UNPUBLISH:
            event = self.map_unpublish_event(content_uuid, last_modified)
        else:
            event = self.map_publish_event(document, content_uuid, tid, last_modified)

        return MappingResult(body=event.to_json(), content_uuid=content_uuid, last_modified=last_modified)

    @staticmethod
    def _parse(body: str) -> Document:
        try:
            data = orjson.loads(body)
        except orjson.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"Video JSON couldn't be unmarshalled. Skipping invalid JSON: {body}")
        return Document(data)

    def map_unpublish_event(self, content_uuid: str, last_modified: str) -> PublicationEvent:
        return PublicationEvent(
            contentUri=CONTENT_URI_BASE + content_uuid,
            payload=DeletedVideoPayload(uuid=content_uuid),
            lastModified=last_modified,
        )

    def map_publish_event(
        self, document: Document, content_uuid: str, tid: str, last_modified: str
    ) -> PublicationEvent:
        ctx = {"event": "mapping", "transaction_id": tid, "uuid": content_uuid}

        transcript, transcription = self._transcript(document, ctx)
        web_url = WEB_URL_TEMPLATE.format(uuid=content_uuid)

        payload = VideoPayload(
            uuid=content_uuid,
            title=_optional(document.get_string, "title"),
            standfirst=_optional(document.get_string, "standfirst"),
            description=_optional(document.get_string, "description"),
            byline=_optional(document.get_string, "byline"),
            identifiers=[Identifier(authority=VIDEO_AUTHORITY, identifierValue=content_uuid)],
            brands=[Brand(id=FT_BRAND_ID)],
            firstPublishedDate=self._date(document, FIRST_PUBLISHED_DATE_KEYS, "firstPublishedDate", ctx),
            publishedDate=self._date(document, PUBLISHED_DATE_KEYS, "publishedDate", ctx),
            mainImage=self._main_image(document, ctx),
            storyPackage=self._story_package(document, content_uuid, ctx),
            transcript=transcript,
            captions=self._captions(transcription, ctx),
            dataSource=self._data_sources(document, ctx),
            canBeDistributed=YES,
            type=VIDEO_TYPE,
            lastModified=last_modified,
            publishReference=tid,
            canBeSyndicated=self._can_be_syndicated(document, ctx),
            accessLevel=DEFAULT_ACCESS_LEVEL,
            webUrl=web_url,
            canonicalWebUrl=web_url,
            promotionalTitle=_optional_nested(document, "alternativeTitles", "promotionalTitle"),
            promotionalStandfirst=_optional_nested(document, "alternativeStandfirsts", "promotionalStandfirst"),
        )

        return PublicationEvent(
            contentUri=CONTENT_URI_BASE + content_uuid,
            payload=payload,
            lastModified=last_modified,
        )

    def _date(self, document: Document, keys: tuple, field: str, ctx: Mapping[str, Any]) -> Optional[str]:
        try:
            return document.get_first_string(keys)
        except FieldError as e:
            logger.warning(
                "No valid value could be found for %s", field, extra={**ctx, "error": str(e)}
            )
            return None

    def _main_image(self, document: Document, ctx: Mapping[str, Any]) -> Optional[str]:
        try:
            image = document.get_string("image")
        except FieldError as e:
            logger.warning("Main image is missing and will be skipped", extra={**ctx, "error": str(e)})
            return None

        if is_uuid(image):
            return image.lower()

        try:
            return self.deriver.derive(uuid_from_uri(image), IMAGE_SET)
        except InvalidIdentifierError as e:
            logger.warning("Main image uuid could not be resolved", extra={**ctx, "error": str(e)})
            return None

    def _story_package(self, document: Document, content_uuid: str, ctx: Mapping[str, Any]) -> Optional[str]:
        if not document.has("related"):
            return None

        try:
            return self.deriver.derive(content_uuid, STORY_PACKAGE)
        except InvalidIdentifierError as e:
            logger.warning("Story package uuid could not be generated", extra={**ctx, "error": str(e)})
            return None

    def _transcript(self, document: Document, ctx: Mapping[str, Any]) -> tuple[Optional[str], Optional[Document]]:
        try:
            transcription = document.get_document("transcription")
            transcript = transcription.get_string("transcript")
        except FieldError as e:
            logger.warning("Transcription is null and will be skipped", extra={**ctx, "error": str(e)})
            return None, None

        if not transcript:
            logger.warning("Transcription is empty and will be skipped", extra=dict(ctx))
            return None, None

        if not is_valid_xhtml(transcript):
            logger.warning("Transcription has invalid HTML body and will be skipped", extra=dict(ctx))
            return None, None

        return transcript, transcription

    def _captions(self, transcription: Optional[Document], ctx: Mapping[str, Any]) -> Optional[list[Caption]]:
        if transcription is None:
            return None

        elements = _optional(transcription.get_list, "captions") or []
        captions = []
        for index, element in enumerate(elements):
            if not isinstance(element, Mapping):
                logger.warning("Skipping caption %d: not an object", index, extra=dict(ctx))
                continue

            item = Document(element)
            try:
                url, media_type = item.get_string("url"), item.get_string("mediaType")
            except FieldError as e:
                logger.warning("Skipping caption %d", index, extra={**ctx, "error": str(e)})
                continue

            if not url or not media_type:
                logger.warning("Skipping caption %d: empty url or mediaType", index, extra=dict(ctx))
                continue
            captions.append(Caption(url=url, mediaType=media_type))

        return captions or None

    def _data_sources(self, document: Document, ctx: Mapping[str, Any]) -> Optional[list[DataSource]]:
        try:
            outputs = document.get_document("encoding").get_list("outputs")
        except FieldError as e:
            logger.warning("Encoding outputs are missing, dataSource will be empty", extra={**ctx, "error": str(e)})
            return None

        data_sources = []
        for index, element in enumerate(outputs):
            if not isinstance(element, Mapping):
                logger.warning("Skipping encoding output %d: not an object", index, extra=dict(ctx))
                continue

            output = Document(element)
            data_sources.append(
                DataSource(
                    binaryUrl=_optional(output.get_string, "url"),
                    pixelWidth=_optional(output.get_number, "width"),
                    pixelHeight=_optional(output.get_number, "height"),
                    mediaType=_optional(output.get_string, "mediaType"),
                    duration=_optional(output.get_number, "duration"),
                    videoCodec=_optional(output.get_string, "videoCodec"),
                    audioCodec=_optional(output.get_string, "audioCodec"),
                )
            )

        return data_sources or None

    def _can_be_syndicated(self, document: Document, ctx: Mapping[str, Any]) -> str:
        try:
            syndicated = document.get_bool("canBeSyndicated")
        except FieldError as e:
            logger.warning("canBeSyndicated is not set, defaulting to %s", YES, extra={**ctx, "error": str(e)})
            return YES
        return YES if syndicated else NO
