"""
Customized exceptions that allow code to handle error conditions
"""

class USIException(Exception):
    """
    a general base class for exceptions that occur while providing the USI web service.
    """

    def __init__(self, message: str=None):
        if not message:
            message = "Unspecified problem providing USI verification"
        super(USIException, self).__init__(message)


class ConfigurationException(USIException):
    """
    an exception indicating a problem with the configuration data provided to a component
    """
    pass


class Misconfiguration(ConfigurationException):
    """
    an exception indicating that configuration data required to service a request is missing
    (e.g. the organization code).  Unlike a :py:class:`ConfigurationException` raised at start-up,
    this error is fatal only to the request being handled.
    """
    pass


class InvalidArgument(USIException):
    """
    an exception indicating that the input from the client is malformed or contradictory.
    The ``reason`` property holds a short label suitable for an error response.
    """

    def __init__(self, message: str=None, reason: str="Invalid request"):
        super(InvalidArgument, self).__init__(message or reason)
        self.reason = reason


class UpstreamEmptyResponse(USIException):
    """
    an exception indicating that the remote USI service completed a call successfully but
    returned no verification outcome to report.
    """

    def __init__(self, message: str=None):
        if not message:
            message = "The USI service did not return a verification result"
        super(UpstreamEmptyResponse, self).__init__(message)


class UpstreamFailure(USIException):
    """
    an exception indicating a failure while calling the remote USI service or while
    interpreting its response.

    This class serves as a base class for more specific service access errors.
    """

    def __init__(self, message: str=None, ep: str=None, code: int=0, resptext: str=None):
        """
        create the exception

        :param str message:  an explanation of the cause of the error
        :param str ep:       the service operation or endpoint that was being accessed
        :param int code:     the HTTP response code that was returned (if service responded)
        :param str resptext: the erroroneous response body that was returned, as text (if
                             service responded)
        """
        if not message:
            message = "Error accessing the USI service"
            if ep:
                message += f" ({ep})"
            if code:
                message += f": {str(code)}"
        super(UpstreamFailure, self).__init__(message)
        self.ep = ep
        self.code = code or 0
        self.response = resptext


class USICommError(UpstreamFailure):
    """
    an error indicating a failure communicating with the remote USI service.  This error
    typically covers network related errors, like failures to connect, dropped connections, DNS
    errors, etc.  Typically, the remote service did not get a chance to respond to the request.
    """

    def __init__(self, message: str=None, ep: str=None, cause: Exception=None):
        if not message:
            message = "USI service communication failure"
            if ep:
                message += f" while calling {ep}"
            if cause:
                message += f": {str(cause)}"
        super(USICommError, self).__init__(message, ep)


class USIServerError(UpstreamFailure):
    """
    an error indicating a server-side error during a call to the remote USI service, including
    SOAP faults and responses that cannot be interpreted.
    """

    def __init__(self, message: str=None, ep: str=None, code: int=0, resptext: str=None):
        if not message:
            message = "Unexpected USI server error"
            if ep:
                message += f" while calling {ep}"
            if code:
                message += f" ({str(code)})"
        super(USIServerError, self).__init__(message, ep, code, resptext)


class USIClientError(UpstreamFailure):
    """
    an error indicating that the remote USI service rejected a call as improper (i.e.
    400 <= code < 500).
    """

    def __init__(self, message: str=None, ep: str=None, code: int=0, resptext: str=None):
        if not message:
            message = "USI service rejected request"
            if ep:
                message += f" to {ep}"
            if code:
                message += f" ({str(code)})"
        super(USIClientError, self).__init__(message, ep, code, resptext)
