"""
The data types exchanged by the USI verification components.

Requests arrive from web clients as JSON objects and are parsed into
:py:class:`IdentityVerificationRequest` instances.  The
:py:class:`~usi.verify.builder.VerificationRequestBuilder` turns these into a
:py:class:`VerificationBatch` of :py:class:`NormalizedVerificationEntry` items that the
:py:mod:`client <usi.verify.client>` sends to the remote service; the remote service answers
with :py:class:`VerificationOutcome` items, which the
:py:class:`~usi.verify.aggregator.VerificationResultAggregator` reshapes into a
:py:class:`VerificationResult` or a :py:class:`BulkOutcomeSummary`.  All of these are transient
and are never modified after construction.
"""
from collections import namedtuple, OrderedDict
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import List

from usi.exceptions import InvalidArgument

__all__ = [ "VALID_STATUS", "USI_LENGTH", "IdentityVerificationRequest", "SingleName",
            "FirstLastName", "NormalizedVerificationEntry", "VerificationBatch",
            "VerificationOutcome", "VerificationResult", "BulkOutcomeSummary", "Country",
            "Result", "parse_bulk_request" ]

VALID_STATUS = "Valid"
USI_LENGTH = 10

def _is_blank(val) -> bool:
    return val is None or not str(val).strip()

def _lookup(data: Mapping, name: str):
    # property names are matched case-insensitively
    if name in data:
        return data[name]
    lname = name.lower()
    for key, val in data.items():
        if isinstance(key, str) and key.lower() == lname:
            return val
    return None

def _parse_date(val, prop: str="dateOfBirth") -> date:
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    if not isinstance(val, str) or not val.strip():
        raise InvalidArgument(f"The {prop} field is required.")
    val = val.strip()
    try:
        if len(val) == 10:
            return date.fromisoformat(val)
        return datetime.fromisoformat(val.replace('Z', '+00:00')).date()
    except ValueError:
        raise InvalidArgument(f"The {prop} field is not a valid date: {val}")


class SingleName(namedtuple("SingleName", "name")):
    """
    the name encoding for a person known by a single name
    """
    __slots__ = ()

    def elements(self) -> List[tuple]:
        """
        return the (element name, value) pairs that encode this name for the remote service
        """
        return [ ("SingleName", self.name) ]

class FirstLastName(namedtuple("FirstLastName", "first last")):
    """
    the name encoding for a person with both a first (given) name and a family name
    """
    __slots__ = ()

    def elements(self) -> List[tuple]:
        """
        return the (element name, value) pairs that encode this name for the remote service
        """
        return [ ("FirstName", self.first), ("FamilyName", self.last) ]


class IdentityVerificationRequest(object):
    """
    a request from a client to verify a USI against a person's name and date of birth.
    """

    def __init__(self, usi: str, date_of_birth: date, first_name: str=None, family_name: str=None,
                 single_name: str=None):
        self.usi = usi
        self.date_of_birth = date_of_birth
        self.first_name = first_name
        self.family_name = family_name
        self.single_name = single_name

    @classmethod
    def from_json(cls, data: Mapping) -> 'IdentityVerificationRequest':
        """
        create a request from its JSON representation after checking its field values.  The
        name fields are not checked for consistency here (see :py:meth:`name_encoding`).
        :raises InvalidArgument:  if a field value is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidArgument("A verification request must be a JSON object")

        usi = _lookup(data, "usi")
        if not isinstance(usi, str) or not usi:
            raise InvalidArgument("The Usi field is required.")
        if len(usi) != USI_LENGTH:
            raise InvalidArgument(f"The field Usi must be a string with a minimum length of "
                                  f"{USI_LENGTH} and a maximum length of {USI_LENGTH}.")

        dob = _parse_date(_lookup(data, "dateOfBirth"))

        names = {}
        for prop in ("firstName", "familyName", "singleName"):
            val = _lookup(data, prop)
            if val is not None and not isinstance(val, str):
                raise InvalidArgument(f"The {prop} field must be a string")
            names[prop] = val

        return cls(usi, dob, names["firstName"], names["familyName"], names["singleName"])

    def name_encoding(self):
        """
        select the name encoding to send to the remote service.  A non-blank single name takes
        priority; otherwise, both the first and family names must be non-blank.
        :return:  a :py:class:`SingleName` or :py:class:`FirstLastName`, or None if neither
                  name form is complete
        """
        if not _is_blank(self.single_name):
            return SingleName(self.single_name)
        if not _is_blank(self.first_name) and not _is_blank(self.family_name):
            return FirstLastName(self.first_name, self.family_name)
        return None

    def __repr__(self):
        return "IdentityVerificationRequest(%s)" % self.usi

def parse_bulk_request(data: Mapping) -> List[IdentityVerificationRequest]:
    """
    parse the JSON body of a bulk verification request into a list of requests
    :raises InvalidArgument:  if the body is malformed or any of its requests has a bad field
    """
    if not isinstance(data, Mapping):
        raise InvalidArgument("A bulk verification request must be a JSON object")
    items = _lookup(data, "verifications")
    if items is None:
        raise InvalidArgument("The Verifications field is required.")
    if isinstance(items, (str, Mapping)) or not isinstance(items, Sequence):
        raise InvalidArgument("The Verifications field must be a list")
    if len(items) < 1:
        raise InvalidArgument("The field Verifications must be a list with a minimum length of 1.")

    out = []
    for i, item in enumerate(items):
        try:
            out.append(IdentityVerificationRequest.from_json(item))
        except InvalidArgument as ex:
            raise InvalidArgument(f"Verifications[{i}]: {str(ex)}")
    return out


NormalizedVerificationEntry = namedtuple("NormalizedVerificationEntry",
                                         "record_id usi date_of_birth name")

class VerificationBatch(namedtuple("VerificationBatch", "org_code entries")):
    """
    the set of entries to submit to the remote service in one call
    """
    __slots__ = ()

    @property
    def count(self) -> int:
        """
        the declared number of verifications in the batch
        """
        return len(self.entries)

VerificationOutcome = namedtuple("VerificationOutcome", "record_id usi status")


class VerificationResult(namedtuple("VerificationResult",
                                    "is_valid usi verification_status message record_id")):
    """
    the result of verifying one USI, as reported to the client
    """
    __slots__ = ()

    def to_dict(self) -> Mapping:
        return OrderedDict([
            ("isValid", self.is_valid),
            ("usi", self.usi),
            ("verificationStatus", self.verification_status),
            ("message", self.message),
            ("recordId", self.record_id)
        ])

class BulkOutcomeSummary(namedtuple("BulkOutcomeSummary",
                                    "total_requested valid_count invalid_count results")):
    """
    the result of a bulk verification, as reported to the client
    """
    __slots__ = ()

    def to_dict(self) -> Mapping:
        return OrderedDict([
            ("totalRequested", self.total_requested),
            ("validCount", self.valid_count),
            ("invalidCount", self.invalid_count),
            ("results", [r.to_dict() for r in self.results])
        ])

class Country(namedtuple("Country", "code name")):
    """
    a country from the remote service's reference data
    """
    __slots__ = ()

    def to_dict(self) -> Mapping:
        return OrderedDict([ ("code", self.code), ("name", self.name) ])


class Result(namedtuple("Result", "value error")):
    """
    the outcome of an operation that can fail in an anticipated way:  either a value (when
    ``error`` is None) or an exception describing the failure.  Callers should check
    :py:attr:`ok` before using :py:attr:`value`, or call :py:meth:`unwrap`.
    """
    __slots__ = ()

    @classmethod
    def success(cls, value) -> 'Result':
        return cls(value, None)

    @classmethod
    def failure(cls, error: Exception) -> 'Result':
        return cls(None, error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        """
        return the value, or raise the error if this is a failure
        """
        if self.error is not None:
            raise self.error
        return self.value
