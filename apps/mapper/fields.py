"""
Typed access to native video JSON documents.

Every accessor either returns a value of the requested type or raises a
FieldError naming the key. Callers decide whether a failure matters: most
video fields are optional and their errors are simply discarded.
"""

from typing import Any, Iterator, Mapping, Sequence, Union


class FieldError(Exception):
    """Base error for a field that cannot be read with the requested type."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key


class MissingFieldError(FieldError):
    def __init__(self, key: str) -> None:
        super().__init__(key, f"[{key}] field of native video JSON is null")


class TypeMismatchError(FieldError):
    def __init__(self, key: str, expected: str) -> None:
        super().__init__(key, f"[{key}] field of native video JSON is not a {expected}")
        self.expected = expected


class Document:
    """Read-only view over a decoded JSON object."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def has(self, key: str) -> bool:
        """True when key is present with a non-null value."""
        return self._data.get(key) is not None

    def _get(self, key: str) -> Any:
        value = self._data.get(key)
        if value is None:
            raise MissingFieldError(key)
        return value

    def get_string(self, key: str) -> str:
        value = self._get(key)
        if not isinstance(value, str):
            raise TypeMismatchError(key, "string")
        return value

    def get_number(self, key: str) -> Union[int, float]:
        value = self._get(key)
        # bool is an int subclass but never a JSON number
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeMismatchError(key, "number")
        return value

    def get_bool(self, key: str) -> bool:
        value = self._get(key)
        if not isinstance(value, bool):
            raise TypeMismatchError(key, "boolean")
        return value

    def get_document(self, key: str) -> "Document":
        value = self._get(key)
        if not isinstance(value, Mapping):
            raise TypeMismatchError(key, "object")
        return Document(value)

    def get_list(self, key: str) -> list:
        value = self._get(key)
        if not isinstance(value, list):
            raise TypeMismatchError(key, "array")
        return value

    def get_first_string(self, keys: Sequence[str]) -> str:
        """Return the first of ``keys`` holding a string, in priority order.

        Raises:
            MissingFieldError: If none of the keys yields a string; ``key``
                names all candidates
        """
        for key in keys:
            try:
                return self.get_string(key)
            except FieldError:
                continue
        raise MissingFieldError("|".join(keys))
