"""Typed structured log fields."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class FieldType(str, Enum):
    STRING = "string"
    INT = "int"
    DURATION = "duration"
    ANY = "any"
    ERROR = "error"


@dataclass(frozen=True)
class Field:
    """
    A single named value attached to a log call.

    Fields are passed to the logger as an ordered sequence, so the order in
    which they are built is the order in which they appear in the output.
    """
    name: str
    value: Any
    type: FieldType = FieldType.ANY

    def serialize(self, nested_errors: bool = False) -> Any:
        """Convert the value to something json.dumps can handle."""
        if self.type is FieldType.ERROR:
            if nested_errors:
                return {
                    "type": type(self.value).__name__,
                    "message": str(self.value),
                }
            return str(self.value)
        if self.type is FieldType.DURATION:
            return int(self.value)
        return self.value


def string(name: str, value: str) -> Field:
    return Field(name, value, FieldType.STRING)


def integer(name: str, value: int) -> Field:
    return Field(name, int(value), FieldType.INT)


def duration(name: str, nanoseconds: int) -> Field:
    """Duration field, stored as integer nanoseconds."""
    return Field(name, nanoseconds, FieldType.DURATION)


def any_value(name: str, value: Any) -> Field:
    return Field(name, value, FieldType.ANY)


def named_error(name: str, err: BaseException) -> Field:
    return Field(name, err, FieldType.ERROR)


def error(err: BaseException) -> Field:
    """Error field under the conventional "error" key."""
    return named_error("error", err)


def to_dict(fields, nested_errors: bool = False) -> Dict[str, Any]:
    """Flatten an ordered field sequence into a dict (later names win)."""
    return {f.name: f.serialize(nested_errors) for f in fields}
