"""Primitive data types.

A primitive is an Element carrying a raw ``value`` attribute. Pydantic (in
strict mode) guarantees the Python type of the value; the lexical rules of
each type run from ``validate_invariants`` at build time.

    Boolean, Integer (PositiveInt, UnsignedInt), Decimal,
    String (Code, Id, Markdown), Uri (Url, Canonical),
    Date, DateTime, Instant, Time, Base64Binary, Xhtml

Every primitive offers ``Type.of(native)`` to wrap a native value, which is
what builder convenience setters use.
"""

import decimal
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Annotated, Any, Optional, Union

from defusedxml import ElementTree as SafeET
from defusedxml.common import DefusedXmlException

from clinical_model.domain.element import Element
from clinical_model.domain.exceptions import InvalidPrimitiveValue
from clinical_model.domain.model_support import Attribute
from clinical_model.domain.validation_support import (
    check_code,
    check_id,
    check_max_length,
    check_string,
    check_uri,
)

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"

MIN_INTEGER = -2147483648
MAX_INTEGER = 2147483647

PARTIAL_DATE_PATTERN = re.compile(r"(?P<year>\d{4})(-(?P<month>\d{2}))?")
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class PartialDate:
    """A date known to the year (``1974``) or to the month (``1974-05``) only."""

    year: int
    month: Optional[int] = None

    def isoformat(self) -> str:
        if self.month is None:
            return f"{self.year:04d}"
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.isoformat()


def parse_date(value: str) -> Union[date, PartialDate]:
    """Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``.

    Raises:
        InvalidPrimitiveValue: If the text is not one of those forms
    """
    match = PARTIAL_DATE_PATTERN.fullmatch(value)
    if match is not None:
        month = match.group("month")
        return PartialDate(int(match.group("year")), int(month) if month is not None else None)
    if DATE_PATTERN.fullmatch(value):
        try:
            return date.fromisoformat(value)
        except ValueError as e:
            raise InvalidPrimitiveValue(f"Invalid date: {e}", "value") from e
    raise InvalidPrimitiveValue("Date value must be YYYY, YYYY-MM or YYYY-MM-DD", "value")


def parse_iso(parser, value: str, kind: str):
    try:
        return parser(value)
    except ValueError as e:
        raise InvalidPrimitiveValue(f"Invalid {kind}: {e}", "value") from e


def check_partial_date(value: Any) -> None:
    if isinstance(value, PartialDate) and value.month is not None and not 1 <= value.month <= 12:
        raise InvalidPrimitiveValue(f"Month value: {value.month} is not between 1 and 12", "value")


class PrimitiveType(Element):
    """Base of all primitive types."""

    __abstract__ = True

    @classmethod
    def of(cls, value: Any):
        """Wrap a native value."""
        return cls.builder().value(cls._coerce(value)).build()

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return value

    def has_value(self) -> bool:
        return self.value is not None

    def __str__(self) -> str:
        return str(self.value)


class Boolean(PrimitiveType):
    value: Annotated[Optional[bool], Attribute()] = None


class Integer(PrimitiveType):
    value: Annotated[Optional[int], Attribute()] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        if self.value is not None and not MIN_INTEGER <= self.value <= MAX_INTEGER:
            raise InvalidPrimitiveValue("Integer value is out of the 32-bit range", "value")


class PositiveInt(Integer):
    def validate_invariants(self) -> None:
        super().validate_invariants()
        if self.value is not None and self.value < 1:
            raise InvalidPrimitiveValue(
                f"Integer value: {self.value} is less than minimum required value: 1", "value"
            )


class UnsignedInt(Integer):
    def validate_invariants(self) -> None:
        super().validate_invariants()
        if self.value is not None and self.value < 0:
            raise InvalidPrimitiveValue(
                f"Integer value: {self.value} is less than minimum required value: 0", "value"
            )


class Decimal(PrimitiveType):
    value: Annotated[Optional[decimal.Decimal], Attribute()] = None

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        if isinstance(value, (int, float, str)) and not isinstance(value, bool):
            return decimal.Decimal(str(value))
        return value


class String(PrimitiveType):
    value: Annotated[Optional[str], Attribute()] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_string(self.value)


class Code(String):
    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_code(self.value)


class Id(String):
    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_id(self.value, "value")


class Markdown(String):
    pass


class Uri(PrimitiveType):
    value: Annotated[Optional[str], Attribute()] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_uri(self.value)


class Url(Uri):
    pass


class Canonical(Uri):
    pass


class Date(PrimitiveType):
    """A date, possibly known to the year or month only (``PartialDate``)."""

    value: Annotated[Optional[Union[date, PartialDate]], Attribute()] = None

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return parse_date(value) if isinstance(value, str) else value

    def validate_invariants(self) -> None:
        super().validate_invariants()
        if isinstance(self.value, datetime):
            raise InvalidPrimitiveValue("Date value must not carry a time of day", "value")
        check_partial_date(self.value)


class DateTime(PrimitiveType):
    """A (partial) date, or a date and time of day (timezone required when a time is present)."""

    value: Annotated[Optional[Union[datetime, date, PartialDate]], Attribute()] = None

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_iso(datetime.fromisoformat, value, "date-time") if "T" in value else parse_date(value)
        return value

    def validate_invariants(self) -> None:
        super().validate_invariants()
        if isinstance(self.value, datetime) and self.value.tzinfo is None:
            raise InvalidPrimitiveValue("DateTime value with a time must have a timezone", "value")
        check_partial_date(self.value)


class Instant(PrimitiveType):
    value: Annotated[Optional[datetime], Attribute()] = None

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return parse_iso(datetime.fromisoformat, value, "instant") if isinstance(value, str) else value

    def validate_invariants(self) -> None:
        super().validate_invariants()
        if self.value is not None and self.value.tzinfo is None:
            raise InvalidPrimitiveValue("Instant value must have a timezone", "value")


class Time(PrimitiveType):
    value: Annotated[Optional[time], Attribute()] = None

    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return parse_iso(time.fromisoformat, value, "time") if isinstance(value, str) else value


class Base64Binary(PrimitiveType):
    value: Annotated[Optional[bytes], Attribute()] = None


class Xhtml(PrimitiveType):
    """Limited XHTML content; the root must be an XHTML ``div``."""

    value: Annotated[Optional[str], Attribute()] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        if self.value is not None:
            check_max_length(self.value, "div")
            try:
                root = SafeET.fromstring(self.value)
            except (SafeET.ParseError, DefusedXmlException) as e:
                raise InvalidPrimitiveValue(f"Invalid XHTML content: {type(e).__name__}", "div") from e
            if root.tag != f"{{{XHTML_NAMESPACE}}}div":
                raise InvalidPrimitiveValue("XHTML content must be a div in the XHTML namespace", "div")
