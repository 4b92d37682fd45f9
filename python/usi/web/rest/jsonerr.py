"""
Support for JSON-formatted error content for HTTP responses.

Proper REST service clients should use the HTTP status value for determining if an HTTP request has
resulted in an error; however, a service may want to provide more information about what went wrong
than what can be fit into the HTTP status and reason fields, and in a machine-readable format.  This
module provides functions and classes that provide a consistent model for returning error data as
a JSON object.

A JSON error message will contain the following properties:

``error``
     a short label describing the error that occurred (e.g. "Invalid name fields").  This usually
     matches the reason given in the response header.

``details``
     a longer message explaining what went wrong; this may be null.

``timestamp``
     the time (UTC, in ISO 8601 format) at which the error was reported.

The function :py:func:`is_error_msg` can be used by clients to recognize a response message that
conforms to the above model.
"""
import json
from datetime import datetime, timezone
from logging import Logger
from collections import OrderedDict
from typing import Mapping, Callable

from .base import Handler

def is_error_msg(msgobj: Mapping):
    """
    return True if the given dictionary represents a JSON-formatted error message
    """
    if not isinstance(msgobj, Mapping):
        return False
    return "error" in msgobj and "details" in msgobj and "timestamp" in msgobj

def utcnow_iso() -> str:
    """
    return the current time in UTC as an ISO 8601 string
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

def make_message(error: str, details: str=None, extra: Mapping=None):
    """
    create a compliant error message object from the inputs
    """
    out = OrderedDict([
        ("error", error or ""),
        ("details", details),
        ("timestamp", utcnow_iso())
    ])
    if extra:
        for k,v in extra.items():
            out[k] = v
    return out

class FatalError(Exception):
    """
    an exception that can be used to send data to be returned to the web client as an error
    JSON message object up the call stack.
    """
    def __init__(self, code: int, reason: str, explain=None, extra=None):
        """
        :param int    code:  the HTTP code to respond with
        :param str  reason:  the short error label, also returned as the HTTP status message
        :param str explain:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        super(FatalError, self).__init__(explain or reason or '')
        self.code = code
        self.reason = reason
        self.explain = explain
        self.data = extra

    def data_update(self, props: Mapping):
        """
        add or update the extra data attached to this FatalError
        """
        if self.data is None:
            self.data = OrderedDict()
        self.data.update(props)

    def to_dict(self):
        return make_message(self.reason, self.explain, self.data)

    def to_json(self, indent=None):
        return json.dumps(self.to_dict(), indent=indent)

class ErrorHandling:
    """
    a Handler mixin class that provides extra methods for returning error message objects to
    web clients.
    """

    def send_error_obj(self, code: int, reason: str, explain=None, extra=None, ashead=False,
                       contenttype="application/json"):
        """
        send a JSON-formatted error message back to the web client
        :param int    code:  the HTTP code to respond with
        :param str  reason:  the short error label, also returned as the HTTP status message
        :param str explain:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        return self.send_fatal_error(FatalError(code, reason, explain, extra), ashead, contenttype)

    def send_fatal_error(self, fatalex: FatalError, ashead=False, contenttype="application/json"):
        """
        report a FatalError as a JSON-formatted error message back to the web client
        :param FatalError fatalex:  the error data as a FatalError exception
        :param bool        ashead:  True if the HTTP request was a HEAD request
        :param str    contenttype:  The JSON mime-type to affix to the response as the message
                                    content type.  Default: "application/json"
        """
        return Handler.send_error(self, fatalex.code, _status_reason(fatalex.reason),
                                  fatalex.to_json(), contenttype, ashead)

def _status_reason(reason):
    # the reason appears in the HTTP status line, which must be a single line of ISO-8859-1
    reason = " ".join((reason or "Error").split())
    return reason.encode("ISO-8859-1", "replace").decode("ISO-8859-1")

class HandlerWithJSON(Handler, ErrorHandling):
    """
    a Handler that returns all error responses to web clients formatted in JSON, including those
    produced by the base class (e.g. 405 and 500 responses).
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, who=None,
                 config: dict={}, log: Logger=None, app=None):
        Handler.__init__(self, path, wsgienv, start_resp, who, config, log, app)

    def send_error(self, code, message, content=None, contenttype=None, ashead=None, encoding='utf-8'):
        if content is not None:
            return Handler.send_error(self, code, message, content, contenttype, ashead, encoding)
        return self.send_error_obj(code, message, None, ashead=ashead)
