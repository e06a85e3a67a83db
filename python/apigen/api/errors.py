"""
The errors that can occur while handling a request on an apigen resource.

Three categories of request-level failures are distinguished, each turned into user-facing
:py:class:`ErrorRecord`s in a different way:

:py:class:`TransportError`
    a problem with the request itself (a malformed or missing identifier, unparseable input, a
    disabled action, a failed login).  It carries its own message and HTTP status code and
    becomes a single ErrorRecord.
:py:class:`EntityValidationError`
    the entity rejected a save or delete.  It carries the entity, whose validation messages
    each become an ErrorRecord tagged with a default code (409).
:py:class:`AuthorizationError`
    the authorization service refused an operation on an entity.  It has the same shape as an
    EntityValidationError, but its records are tagged with 401.

A fourth category, :py:class:`~apigen.base.config.ConfigurationException`, indicates a service
that was set up incorrectly; it is never converted into an ErrorRecord.
"""
from collections import namedtuple
from typing import List

from apigen.base import APIGenException

__all__ = [ "ErrorRecord", "RequestError", "TransportError", "EntityError", "EntityValidationError",
            "AuthorizationError", "STATUS_CODE_BAD_REQUEST", "STATUS_CODE_NOT_FOUND" ]

STATUS_CODE_BAD_REQUEST = 400
STATUS_CODE_UNAUTHORIZED = 401
STATUS_CODE_NOT_FOUND = 404
STATUS_CODE_NOT_ALLOWED = 405
STATUS_CODE_CONFLICT = 409

ErrorRecord = namedtuple("ErrorRecord", ["message", "code"])
ErrorRecord.__doc__ = """
a single reportable failure: a message for the client plus the HTTP status code it implies.
A code of 0 means that no specific status is implied.
"""

class RequestError(APIGenException):
    """
    a base class for the failures that are reported back to the client in the response document
    """

    def to_records(self, defcode: int=None) -> List[ErrorRecord]:
        """
        convert this exception into the ErrorRecords to add to the response
        :param int defcode:  the status code to tag the records with when the exception does not
                             carry one of its own
        """
        raise NotImplementedError()

class TransportError(RequestError):
    """
    an error in the client's request (or in the client's standing to make it) that maps directly
    to a single message and HTTP status code.
    """
    def __init__(self, message: str, code: int=STATUS_CODE_BAD_REQUEST, cause: Exception=None):
        """
        :param str message:  the message to report to the client
        :param int    code:  the HTTP status to associate with the error (0 for none)
        """
        super(TransportError, self).__init__(message, cause)
        self.message = message
        self.code = code

    def to_records(self, defcode: int=None) -> List[ErrorRecord]:
        return [ ErrorRecord(self.message, self.code) ]

class EntityError(RequestError):
    """
    a base class for errors reported via the messages attached to an entity
    """
    default_code = STATUS_CODE_CONFLICT

    def __init__(self, entity, message: str=None, cause: Exception=None):
        """
        :param entity:  the entity whose messages describe what went wrong
        :param str message:  a summary of the failure (for logging); if not given, one is
                             constructed from the entity's messages.
        """
        if not message:
            msgs = entity.get_messages() if entity is not None else []
            if len(msgs) == 1:
                message = msgs[0]
            elif len(msgs) > 1:
                message = "Encountered %d errors, including: %s" % (len(msgs), msgs[0])
        super(EntityError, self).__init__(message, cause)
        self.entity = entity

    def get_entity(self):
        return self.entity

    def to_records(self, defcode: int=None) -> List[ErrorRecord]:
        if defcode is None:
            defcode = self.default_code
        if self.entity is None:
            return []
        return [ ErrorRecord(str(m), defcode) for m in self.entity.get_messages() ]

class EntityValidationError(EntityError):
    """
    an exception indicating that an entity rejected a save or delete based on its domain rules.
    """
    default_code = STATUS_CODE_CONFLICT

class AuthorizationError(EntityError):
    """
    an exception indicating that the requesting user is not authorized to carry out an operation
    on an entity.
    """
    default_code = STATUS_CODE_UNAUTHORIZED
