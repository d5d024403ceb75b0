"""
Deterministic UUID derivation.

Secondary identifiers (image sets, story packages) are computed from a source
UUID without any lookup: the low 64 bits of the source are XOR-ed with the low
64 bits of a name-based UUID built from a fixed namespace label, and the high
64 bits are kept as they are. Applying the same namespace twice gives back the
source UUID.

Usage:
    from apps.mapper.uuid_utils import IdentifierDeriver, IMAGE_SET

    deriver = IdentifierDeriver()
    image_set_uuid = deriver.derive(image_uuid, IMAGE_SET)
"""

import hashlib
import re
import uuid
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

IMAGE_SET = "imageset"
STORY_PACKAGE = "storypackage"

LOW_64_MASK = (1 << 64) - 1

UUID_PATTERN = "[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

_uuid_regex = re.compile(f"^{UUID_PATTERN}$", re.IGNORECASE)
_uuid_from_uri_regex = re.compile(f"^.*/({UUID_PATTERN})$", re.IGNORECASE)


class InvalidIdentifierError(ValueError):
    """Raised when a value cannot be parsed as a 128-bit identifier."""


def name_uuid_from_bytes(name: bytes) -> uuid.UUID:
    """Build a version 3 (MD5, name-based) UUID from raw bytes, with no namespace prefix."""
    return uuid.UUID(bytes=hashlib.md5(name).digest(), version=3)


def parse_uuid(value: str) -> uuid.UUID:
    """Parse a UUID string.

    Raises:
        InvalidIdentifierError: If the value is not a valid UUID
    """
    if not isinstance(value, str):
        raise InvalidIdentifierError(f"Identifier must be a string, got {type(value).__name__}")
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise InvalidIdentifierError(f"Invalid identifier {value!r}: {e}") from e


def is_uuid(value: str) -> bool:
    """True when value is a UUID in 8-4-4-4-12 form, in either case."""
    return isinstance(value, str) and _uuid_regex.match(value) is not None


def uuid_from_uri(uri: str) -> str:
    """Extract the UUID ending a URI such as ``http://host/content/<uuid>``, lowercased.

    Raises:
        InvalidIdentifierError: If the URI does not end with a UUID
    """
    match = _uuid_from_uri_regex.match(uri)
    if match is None:
        raise InvalidIdentifierError(f"Couldn't extract uuid from uri {uri}")
    return match.group(1).lower()


@dataclass(frozen=True)
class Namespace:
    """A namespace label together with its 64-bit XOR mask."""

    label: str
    mask: int

    @classmethod
    def from_label(cls, label: str) -> "Namespace":
        return cls(label=label, mask=name_uuid_from_bytes(label.encode("utf-8")).int & LOW_64_MASK)


def derive_uuid(source: uuid.UUID, namespace: Namespace) -> uuid.UUID:
    msb = source.int >> 64
    lsb = (source.int & LOW_64_MASK) ^ namespace.mask
    return uuid.UUID(int=(msb << 64) | lsb)


class IdentifierDeriver:
    """Derives identifiers tied to a source identifier and a namespace label.

    Namespace masks are computed once, when the deriver is built, and are
    read-only afterwards.
    """

    def __init__(self, labels: Iterable[str] = (IMAGE_SET, STORY_PACKAGE)) -> None:
        self._namespaces: Mapping[str, Namespace] = MappingProxyType(
            {label: Namespace.from_label(label) for label in labels}
        )

    @property
    def namespaces(self) -> Mapping[str, Namespace]:
        return self._namespaces

    def namespace(self, label: str) -> Namespace:
        try:
            return self._namespaces[label]
        except KeyError:
            raise ValueError(f"Unknown namespace label: {label}") from None

    def derive(self, source: str, label: str) -> str:
        """Derive the identifier of ``source`` under the ``label`` namespace.

        Args:
            source: Source UUID string
            label: Namespace label, e.g. ``"imageset"``

        Returns:
            The derived UUID in canonical form

        Raises:
            InvalidIdentifierError: If source is not a valid UUID
            ValueError: If label was not registered with this deriver
        """
        namespace = self.namespace(label)
        return str(derive_uuid(parse_uuid(source), namespace))
