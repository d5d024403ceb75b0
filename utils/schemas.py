"""
Pydantic Schemas - Data Validation Models

Defines all Pydantic schemas used throughout the mapper:
- Queue message envelopes (headers + body)
- Publication events and their video payloads
- Healthcheck reports

Usage:
    from utils.schemas import PublicationEvent

    event = PublicationEvent.from_json(raw_bytes)
    body = event.to_json()

Serialization goes through orjson, which never escapes ``<`` or ``>``, so
transcript markup is written out byte for byte.
"""

from typing import Literal, Optional, Union

import orjson
from pydantic import BaseModel, Field, model_serializer


class QueueMessage(BaseModel):
    """Message exchanged with the queue: string headers plus a raw body."""

    headers: dict[str, str] = Field(default_factory=dict, description="Message headers")
    body: str = Field(default="", description="Raw message body")


class OmitEmptyModel(BaseModel):
    """Model whose serialized form leaves out unset and empty-string fields."""

    @model_serializer(mode="wrap")
    def omit_empty(self, handler):
        data = handler(self)
        return {key: value for key, value in data.items() if value is not None and value != ""}


class Identifier(BaseModel):
    authority: str
    identifierValue: str


class Brand(BaseModel):
    id: str


class Caption(OmitEmptyModel):
    url: str
    mediaType: str


class DataSource(OmitEmptyModel):
    """One encoded rendition of the video."""

    binaryUrl: Optional[str] = None
    pixelWidth: Optional[Union[int, float]] = None
    pixelHeight: Optional[Union[int, float]] = None
    mediaType: Optional[str] = None
    duration: Optional[Union[int, float]] = None
    videoCodec: Optional[str] = None
    audioCodec: Optional[str] = None


class VideoPayload(OmitEmptyModel):
    """Canonical video content.

    Only ``uuid`` and the synthesized identifiers/brands are always present;
    every other field is dropped from the JSON output when unset or empty.
    """

    uuid: str
    title: Optional[str] = None
    standfirst: Optional[str] = None
    description: Optional[str] = None
    byline: Optional[str] = None
    identifiers: list[Identifier]
    brands: list[Brand]
    firstPublishedDate: Optional[str] = None
    publishedDate: Optional[str] = None
    mainImage: Optional[str] = None
    storyPackage: Optional[str] = None
    transcript: Optional[str] = None
    captions: Optional[list[Caption]] = None
    dataSource: Optional[list[DataSource]] = None
    canBeDistributed: Optional[str] = None
    type: Optional[str] = None
    lastModified: Optional[str] = None
    publishReference: Optional[str] = None
    canBeSyndicated: Optional[str] = None
    accessLevel: Optional[str] = None
    webUrl: Optional[str] = None
    canonicalWebUrl: Optional[str] = None
    promotionalTitle: Optional[str] = None
    promotionalStandfirst: Optional[str] = None

    class Config:
        extra = "forbid"


class DeletedVideoPayload(BaseModel):
    """Payload of an unpublish event: the identifier and the deletion flag only."""

    uuid: str
    deleted: Literal[True] = True

    class Config:
        extra = "forbid"


class PublicationEvent(BaseModel):
    contentUri: str = Field(..., min_length=1)
    payload: Union[VideoPayload, DeletedVideoPayload]
    lastModified: str = Field(..., min_length=1)

    def to_json(self) -> bytes:
        """Serialize the event, omitting unset fields."""
        return orjson.dumps(self.model_dump(exclude_none=True))

    @classmethod
    def from_json(cls, data: Union[bytes, str]) -> "PublicationEvent":
        return cls.model_validate(orjson.loads(data))


class CheckResult(BaseModel):
    """Outcome of one healthcheck."""

    id: str
    name: str
    ok: bool
    severity: int
    businessImpact: str
    technicalSummary: str
    panicGuide: str
    checkOutput: str = ""
    lastUpdated: str


class HealthReport(BaseModel):
    schemaVersion: int = 1
    systemCode: str
    name: str
    description: str
    ok: bool
    checks: list[CheckResult] = Field(default_factory=list)


class GTGStatus(BaseModel):
    goodToGo: bool
    message: str = ""
