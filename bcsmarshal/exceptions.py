"""Core bcsmarshal exceptions."""

__all__ = ['APIError',
           'ArgumentCountError',
           'BcsMarshalError',
           'ConflictingRegistrationError',
           'DecodeError',
           'InternalError',
           'MalformedObjectArgumentError',
           'ObjectNotFoundError',
           'ProtocolError',
           'TypeMismatchError',
           'UnknownTypeError',
           'UnsupportedTypeError']


class BcsMarshalError(Exception):
    """Base exception for bcsmarshal package errors.

    Users should be able to use this base class to catch errors
    emitted by bcsmarshal.
    """


class InternalError(BcsMarshalError):
    """An otherwise unclassifiable error has occurred (a bug).

    Please report the bug.
    """


class APIError(BcsMarshalError):
    """Specified interfaces are being violated."""


class ProtocolError(BcsMarshalError):
    """A behavioral protocol has not been followed correctly."""


class DecodeError(BcsMarshalError):
    """Wire data could not be decoded under the requested type."""


class ConflictingRegistrationError(ProtocolError):
    """A type name is already registered with a different shape."""


class UnknownTypeError(ProtocolError):
    """No rule is registered for the requested type name."""


class ArgumentCountError(APIError):
    """The number of call arguments does not match the function signature."""


class UnsupportedTypeError(APIError):
    """A declared parameter type is outside the supported type grammar."""


class TypeMismatchError(APIError):
    """A call argument does not have the shape required by its declared type.

    Attributes:
        expected: Description of the kind of value that was required.
        value: The offending value.
    """
    def __init__(self, message: str, *, expected: str = None, value=None):
        super().__init__(message)
        self.expected = expected
        self.value = value


class MalformedObjectArgumentError(TypeMismatchError):
    """An object id (or sequence of object ids) was required, but not provided."""


class ObjectNotFoundError(APIError):
    """The provider does not report an existing object for an object id."""
