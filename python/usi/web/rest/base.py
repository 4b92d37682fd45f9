"""
The base REST framework classes
"""
import re, json
from abc import ABCMeta, abstractmethod
from functools import reduce
from logging import Logger
from collections.abc import Mapping
from typing import Callable, List, Union

from wsgiref.headers import Headers

from ..utils import order_accepts, acceptable, get_header
from ..agent import Agent
from usi.exceptions import ConfigurationException

__all__ = ["Handler", "NotFoundHandler", "ServiceApp", "Unauthenticated", "WSGIApp",
           "WSGIServiceApp", "AuthenticatedWSGIApp", "WSGIAppSuite", "Agent",
           "authenticate_via_apikey", "API_KEY_HEADER", "DEF_ALLOWED_ORIGINS" ]

API_KEY_HEADER = "X-Api-Key"
DEF_ALLOWED_ORIGINS = [ "http://localhost:3000" ]

class Handler(object):
    """
    a default web request handler that also serves as a base class for the
    handlers specialized for the supported resource paths.  Key features built into this
    class include:
      * the ``who`` property that holds the identity of the remote user making the request
      * CORS response headers for requests from allowed origins
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, who=None,
                 config: dict={}, log: Logger=None, app=None):
        self._path = path
        self._env = wsgienv
        self._start = start_resp
        self._hdr = Headers([])
        self._code = 0
        self._msg = "unknown status"
        self.cfg = config
        self.log = log

        self._app = app
        if self._app and hasattr(app, 'include_headers'):
            self._hdr = Headers(list(app.include_headers.items()))
        if not who:
            who = self._default_agent()
        self.who = who

        self._meth = self._env.get('REQUEST_METHOD', 'GET')

    @property
    def app(self):
        """
        the ServiceApp instance that created this handler
        """
        return self._app

    def _default_agent(self):
        name = "usi" if not self.app else self.app.name
        return Agent(name, Agent.UNKN, Agent.ANONYMOUS)

    def send_error(self, code, message, content=None, contenttype=None, ashead=None, encoding='utf-8'):
        """
        respond to the client with an error of a given code and reason

        This method is meant to be called by a method handler (or an override of :py:meth:`handle`)
        and is provided as a simple way to send an error response (instead of calling
        :py:meth:`set_response` and :py:meth:`end_headers` directly).

        :param int code:        the HTTP response code to assign
        :param str message:     the briefly-stated reason to give for the error; this text
                                is sent as the message that accompanies the code in the HTTP
                                response header
        :param content:         Content to return as the body.
                                :type content: str or byte or a list of either
        :param str contenttype: the MIME type to associate with the returned content.
        :param bool ashead:     True if this is being sent as if in response to a HEAD request; if so,
                                the size and type of the content will be included in the headers, but
                                the actual content will be withheld.  If not provided, it will be set
                                to True if the originally requested method is "HEAD"; otherwise it is
                                False
        :param str encoding:    The encoding required to turn the content--when given as str--into bytes.
                                The default is 'utf-8'.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_unauthorized(self, message="Unauthorized", content=None, contenttype=None, ashead=None,
                          encoding='utf-8'):
        return self.send_error(401, message, content, contenttype, ashead, encoding)

    def send_unacceptable(self, message="Not Acceptable", content=None, contenttype=None, ashead=None,
                          encoding='utf-8'):
        return self.send_error(406, message, content, contenttype, ashead, encoding)

    def send_ok(self, content=None, contenttype=None, message="OK", code=200, ashead=None, encoding='utf-8'):
        """
        respond to the client a response of success.

        :param content:         Content to return as the body.  If not provided, the body will be
                                empty.
                                :type content: str or byte
        :param str contenttype: the MIME type to associate with the returned content.
        :param str message:     the briefly-stated reason to send with the status code; the
                                default is "OK".
        :param int code:        the HTTP response code to assign.  This should be between greater
                                than or equal to 200 and less than 300; the default is 200.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_json(self, data, message="OK", code=200, ashead=False, encoding='utf-8'):
        """
        Send some data formatted as JSON.
        :param data:     the data to encode in JSON
                         :type data: dict, list, or string
        """
        return self._send(code, message, json.dumps(data, indent=2), "application/json", ashead, encoding)

    def send_options(self, allowed_methods: List[str]=None, origin: str=None, extra=None,
                     forcors: bool=True):
        """
        send a response to a OPTIONS request.  This implememtation is primarily for CORS preflight requests
        :param List[str] allowed_methods:   a list of the HTTP methods that are allowed for request
        :param str                origin:   the origin to allow; if not given, the request's
                                            ``Origin`` is allowed if it is among the app's allowed
                                            origins.
        :param dict|Headers        extra:   extra headers to include in the output.  This is either a
                                            dictionary-like object or a list of 2-tuples (like
                                            wsgiref.header.Headers).
        """
        meths = list(allowed_methods or [])
        if 'OPTIONS' not in meths:
            meths.append('OPTIONS')
        if forcors:
            self.add_header('Access-Control-Allow-Methods', ", ".join(meths))
            if origin:
                self.add_header('Access-Control-Allow-Origin', origin)
            reqhdrs = get_header(self._env, 'Access-Control-Request-Headers')
            self.add_header('Access-Control-Allow-Headers',
                            reqhdrs or f"Content-Type, {API_KEY_HEADER}")
        if isinstance(extra, Mapping):
            for k,v in extra.items():
                self.add_header(k, v)
        elif isinstance(extra, (list, tuple)):
            for k,v in extra:
                self.add_header(k, v)

        return self.send_ok(message="No Content", code=204)

    def _send(self, code, message, content, contenttype, ashead, encoding):
        if ashead is None:
            ashead = self._meth.upper() == "HEAD"
        self.set_response(code, message)

        if content:
            if not isinstance(content, list):
                content = [ content ]
            badtype = [type(c) for c in content if not isinstance(c, (str, bytes))]
            if badtype:
                raise TypeError("send_*: non-str/bytes found in content")
            if not contenttype:
                contenttype = (isinstance(content[0], str) and "text/plain") or "application/octet-stream"
        elif content is None:
            content = []
        # convert to bytes
        content = [(isinstance(c, str) and c.encode(encoding)) or c for c in content]

        if contenttype:
            self.add_header("Content-Type", contenttype)
        if len(content) > 0:
            self.add_header("Content-Length", str(reduce(lambda x, t: x+len(t), content, 0)))

        self.end_headers()
        return (not ashead and content) or []

    def add_header(self, name, value):
        """
        record a name-value pair to be sent as part of the response header.

        :param str name:  the name of the header field to cache
        :param str value: the value to give to the header field
        :raises UnicodeEncodeError:  if name or value includes Unicode characters (see PEP 333)
        """
        # HTTP headers must be encodable as ISO-8859-1 (PEP 333)
        e = "ISO-8859-1"
        (name.encode(e), value.encode(e))

        self._hdr.add_header(name, value)

    def set_response(self, code, message):
        """
        record the response code and message to be sent when the response is triggered to push out.
        """
        self._code = code
        self._msg = message

    def end_headers(self):
        """
        trigger the delivery of response's header to the web client.

        This method is meant to be called by a method handler (or an override of :py:meth:`handle`).
        It should be preceded with a call to :py:meth:`set_response`; afterward, the handler should
        return the body content (as an iterable).
        """
        self._add_cors_headers()
        status = "{0} {1}".format(str(self._code), self._msg)
        self._start(status, self._hdr.items(), None)

    def _add_cors_headers(self):
        origin = get_header(self._env, 'Origin')
        if not origin or self._hdr.get('Access-Control-Allow-Origin'):
            return
        allowed = getattr(self.app, 'allowed_origins', None) or []
        if origin in allowed or '*' in allowed:
            self._hdr.add_header('Access-Control-Allow-Origin', origin)
            self._hdr.add_header('Access-Control-Allow-Credentials', "true")
            self._hdr.add_header('Vary', "Origin")

    def handle(self):
        """
        handle the request encapsulated in this Handler (at construction time).

        The default implementation looks for a Handler method of the form, `do_`METH(), where METH is
        is the HTTP method requested (e.g. GET, HEAD, etc.) and calls it with the requested URL path
        (as set at construction).  If the requested method is HEAD and there is no HEAD, `do_GET()`
        is called with a second argument set to True which should prevent the content from the
        path to be excluded.

        Only the request's ``REQUEST_METHOD`` selects the method handler; method-override headers
        are ignored so that :py:meth:`preauthorize` always sees the method that will be executed.
        """
        meth = self._meth
        meth_handler = 'do_'+meth

        if not self.preauthorize():
            return self.send_unauthorized()

        try:
            if hasattr(self, meth_handler):
                return getattr(self, meth_handler)(self._path)
            elif meth == "HEAD" and hasattr(self, 'do_GET'):
                return self.do_GET(self._path, ashead=True)
            else:
                return self.send_error(405, meth + " not supported on this resource")
        except Exception as ex:
            if self.log:
                self.log.exception("Unexpected failure: "+str(ex))
            return self.send_error(500, "Server failure")

    def preauthorize(self):
        """
        do an initial test to see if the client identity is authorized to access this service.
        This method will get called prior to calling the specific method handling function (e.g.
        ``do_GET()``), typically based just on the identity of the client (``self.who``) and the
        resource requested.  This implementation always returns True; however, subclasses may
        override this to provide tighter restrictions.
        """
        return True

    def get_accepts(self):
        """
        return the requested content types as a list ordered by their q-values.  An empty list
        is returned if no types were specified.
        """
        accepts = self._env.get('HTTP_ACCEPT')
        if not accepts:
            return []
        return order_accepts(accepts)

    def accepts_json(self) -> bool:
        """
        return True if the client will accept a JSON-formatted response (including when it
        expressed no preference).
        """
        accepts = self.get_accepts()
        if not accepts:
            return True
        return any(acceptable(ct, accepts) for ct in ["application/json", "text/json"])

    def get_json_body(self):
        """
        read and parse the JSON-encoded request body.
        :raises ValueError:  if the input is missing or cannot be parsed as JSON
        """
        bodyin = self._env.get('wsgi.input')
        if bodyin is None:
            raise ValueError("Missing input")
        try:
            clen = int(self._env.get('CONTENT_LENGTH') or -1)
        except ValueError:
            clen = -1
        body = bodyin.read(clen) if clen >= 0 else bodyin.read()
        if isinstance(body, (bytes, bytearray)):
            body = body.decode('utf-8')
        if not body or not body.strip():
            raise ValueError("Missing input")
        return json.loads(body)


class NotFoundHandler(Handler):
    """
    a request Handler that always returns 404 Not Found.  This can be used in :py:class:`ServiceApp`
    implementations that create a handler (via :py:meth:`~ServiceApp.create_handler`) based on the
    requested path.  If the path is not recognized, an instance of this class can be returned.
    """

    def handle(self):
        if self._meth == "OPTIONS":
            return self.send_options(["GET"])
        return self.send_error(404, "Not Found")


class ServiceApp(metaclass=ABCMeta):
    """
    a base class WSGI implementation intended to run as a delegate handling a particular path
    within another WSGI application.  A ServiceApp is usually plugged into a larger WSGI app to
    handle requests for a particular path and its descendent paths (as in <path> and <path>/*).

    This base class looks for the following parameters in the configuration:

    ``include_headers``
        a dictionary (or list of name-value pairs) of headers to include in every response
    ``cors``
        an object whose ``allowed_origins`` property lists the origins that browser-based clients
        may call the service from (default: ``["http://localhost:3000"]``).
    """

    def __init__(self, appname: str, log: Logger, config: Mapping=None):
        self.log = log
        if config is None:
            config = {}
        self.cfg = config
        self._name = appname

        self.include_headers = Headers()
        if config.get("include_headers"):
            try:
                if isinstance(config.get("include_headers"), Mapping):
                    self.include_headers = Headers(list(config.get("include_headers").items()))
                elif isinstance(config.get("include_headers"), list):
                    self.include_headers = Headers([tuple(h) for h in config.get("include_headers")])
                else:
                    raise TypeError("Not a list of 2-tuples")
            except (TypeError, ValueError) as ex:
                raise ConfigurationException("include_headers: must be either a dict or a list of "+
                                             "name-value pairs")

        corscfg = config.get("cors", {})
        if not isinstance(corscfg, Mapping):
            raise ConfigurationException("cors: must be a dictionary")
        self.allowed_origins = list(corscfg.get("allowed_origins", DEF_ALLOWED_ORIGINS))

    @property
    def name(self):
        """
        a name for the service provided by this ServiceApp instance (set at construction time).
        This can be used in messages targeted to clients.
        """
        return self._name

    @abstractmethod
    def create_handler(self, env: dict, start_resp: Callable, path: str, who: Agent) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested.  This is usually
                             relative to a parent path that this ServiceApp is configured to
                             handle.
        """
        raise NotImplementedError()

    def handle_path_request(self, env: dict, start_resp: Callable, path: str=None, who: Agent=None):
        """
        respond to a request on a particular (relative) URL path.
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested.  This is usually
                             relative to a parent path that this ServiceApp is configured to
                             handle.  If None, the value of env['PATH_INFO'] should be
                             assumed.
        """
        if path is None:
            path = env.get('PATH_INFO', '').strip('/')
        return self.create_handler(env, start_resp, path, who).handle()

    def __call__(self, env, start_resp):
        return self.handle_path_request(env, start_resp)


class Unauthenticated(Exception):
    """
    An exception indicating that a service client did not successfully authenticate itself.
    This may be because the credentials are required but none were provided by the client, or
    because the credentials presented were not valid.

    Note that an implementation is not required to raise this exception, particularly if
    credentials are optional.  Instead an identity can be returned that specifically represent
    an unauthenticated client.
    """
    pass


class WSGIApp(metaclass=ABCMeta):
    """
    A WSGI application base class for wrapping one or more ServiceApp classes.  It provides a
    common authentication check.

    This base implementation will leverage two parameters from the configuration:

    ``base_endpoint``
        _str_ (optional).  The base endpoint URL for the web app given as a path starting with
                           a forward slash, ``/``.  All resource path requests must start with
                           this path; otherwise 404 (Not Found) is returned.
    ``name``
        _str_ (optional).  A short name to use to identify this web app (e.g. in log messages,
                           authentication, etc.)
    """

    def __init__(self, config: Mapping, log: Logger, base_ep: str = None, name: str = None):
        """
        initialize the base information for the app.
        :param dict config:  configuration data for the app.
        :param Logger  log:  the Logger this app should use to record log messages
        :param str base_ep:  the base endpoint URL for the suite of services.  If not provided,
                             the base URL is set by the configuration (via the ``base_endpoint``
                             parameter).
        :param str    name:  a name to use to identify this app for context (e.g. in logs,
                             authentication, etc.) default: None.
        """
        self.log = log
        self.cfg = config
        self.name = name
        if not self.name:
            self.name = self.cfg.get("name", "")
        self.base_ep = None
        if not base_ep:
            base_ep = self.cfg.get("base_endpoint", "")
        base_ep = base_ep.strip('/')
        if base_ep:
            self.base_ep = '/%s/' % base_ep

    def authenticate(self, env) -> Union[object,str,None]:
        """
        determine and return the identity of the client.  This implementation returns None,
        reflecting that by default authentication is not supported.  This method is called
        automatically by :py:meth:`handle_request`.

        This method may raise an :py:class:`Unauthenticated` exception.  If it does,
        :py:meth:`handle_request` will immediately respond to the client with a 401 (Unauthorized)
        error.  If this is not desired (because, say, some resources do not require
        authentication), the implementation should return an identity that represents an
        unauthenticated user.

        :param Mapping env:  the WSGI request environment
        :raises Unauthenticated:  if the authentication process fails.
        """
        return None

    def handle_request(self, env: Mapping, start_resp: Callable):
        path = re.sub(r'/+', '/', env.get('PATH_INFO', '/'))

        # determine who is making the request
        try:
            who = self.authenticate(env)
        except Unauthenticated as ex:
            self.log.debug("Authentication failure: %s", str(ex))
            return Handler(path, env, start_resp).send_error(401, "Authentication Failure")
        except Exception as ex:
            self.log.error("Unexpected failure while authenticating: %s", str(ex))
            return Handler(path, env, start_resp).send_error(500, "Internal Server Error")

        if self.base_ep:
            if path.startswith(self.base_ep):
                path = path[len(self.base_ep):]

            elif self.base_ep == path+'/':
                path = ''

            else:
                # path does not match the required base endpoint path at all
                return Handler(path, env, start_resp).send_error(404, "Not Found")

        return self.handle_path_request(path.strip('/'), env, start_resp, who)

    @abstractmethod
    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who = None):
        """
        Dispatch a request on a resource path to a handler.
        :param str path:  the path requested by the client.  This path will be relative to the base
                          endpoint path for the service, and will not start with a slash.
        :param dict env:  the WSGI environment containing all request information
        :param func start_resp:  the start-response function provided by the WSGI engine.
        :param      who:  a string or object that represents the client user.
        """
        raise NotImplementedError()

    def __call__(self, env, start_resp):
        return self.handle_request(env, start_resp)


class AuthenticatedWSGIApp(WSGIApp):
    """
    a WSGIApp base class that represents the client identity as an :py:class:`~usi.web.agent.Agent`.
    Subclasses provide a specific authentication mechanism via the :py:meth:`authenticate_user`
    method.

    This WSGIApp subclass expands the set of parameters looked for in the app configuration with
    the following parameters:

    ``authentication``
        an object whose sub-parameters control the authentication process.  The set of parameters
        expected in this object depends on the authentication implementation provided by the
        specific ``AuthenticatedWSGIApp`` subclass.
    """

    def authenticate(self, env) -> Agent:
        """
        determine and return the identity of the client as an :py:class:`~usi.web.agent.Agent`
        instance.  This implementation delegates to :py:meth:`authenticate_user`; clients may
        provide a list of delegated agents via the ``X-Client-Agents`` header (space-separated).
        """
        agents = env.get('HTTP_X_CLIENT_AGENTS', '').split()
        return self.authenticate_user(env, agents)

    def authenticate_user(self, env: Mapping, agents: List[str]=None) -> Agent:
        """
        determine the authenticated user.

        This implementation simply returns an Agent instance representing an anonymous user.
        Subclasses requiring user authentication should override this method (e.g. by calling
        :py:func:`authenticate_via_apikey`).

        :param dict     env:  The WSGI environment with contains the request data
        :param [str] agents:  an optional list of agent strings to attach to output agent
        :raises Unauthenticated:  if the authentication process fails (and the implementation
                  chooses to raise rather than return an unauthenticated identity)
        """
        if self.cfg.get('authentication', {}).get('raise_on_anonymous'):
            raise Unauthenticated("Unauthenticated by default")
        return Agent(self.name or "usi", Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC, agents)


def authenticate_via_apikey(svcname: str, env: Mapping, authcfg: Mapping, log: Logger,
                            agents: List[str]=None):
    """
    authenticate the client via a pre-shared API key presented in the ``X-Api-Key`` HTTP header.

    The presented value is trimmed of surrounding whitespace and compared exactly with the
    configured key.  This function looks for the following parameters in the given configuration:

    ``api_key``
       _str_ (required).  The secret key that clients must present.
    ``user``
       _str_ (optional).  an identifier to set the returned Agent ``actor`` id to when the
       client presents the key (default: "ApiKeyUser").
    ``raise_on_anonymous``
       _bool_ (optional).  if True, raise :py:class:`Unauthenticated` when no key is presented;
       otherwise (default), return an anonymous Agent.
    ``raise_on_invalid``
       _bool_ (optional).  if True, raise :py:class:`Unauthenticated` when the key is not
       recognized; otherwise (default), return an Agent whose class is ``INVALID``.

    :param str   svcname: a name to provide as the agent software vehicle
    :param dict      env: the WSGI environment containing the request data
    :param dict  authcfg: the authentication configuration (see above)
    :param Logger    log: the logger that can be used to record messages
    :param [str]  agents: an optional list of agent strings to attach to output agent
    :returns:  an :py:class:`Agent` instance representing the client
    """
    presented = (get_header(env, API_KEY_HEADER) or "").strip()
    if not presented:
        log.debug("Client did not provide an API key")
        if authcfg.get('raise_on_anonymous'):
            raise Unauthenticated("Missing or invalid API key.")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC, agents,
                     invalid_reason="Missing or invalid API key.")

    expected = authcfg.get('api_key')
    if expected is not None:
        expected = str(expected)
    if not expected or presented != expected:
        log.warning("Unrecognized API key presented")
        if authcfg.get('raise_on_invalid'):
            raise Unauthenticated("Invalid API key.")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.INVALID, agents,
                     invalid_reason="Invalid API key.")

    return Agent(svcname, Agent.AUTO, authcfg.get('user', "ApiKeyUser"), "apikey", agents)


class WSGIAppSuite(AuthenticatedWSGIApp):
    """
    A WSGI application class that aggregates one or more :py:class:`ServiceApp` instances.  This
    supports a model where each ServiceApp represents a different logical service, each with its
    own base URL; they are all brought together into a single WSGI application.
    """

    def __init__(self, config: Mapping, svcapps: Mapping[str, ServiceApp], log: Logger,
                 base_ep: str = None):
        """
        initialize the suite of web services
        :param dict  config:  the configuration for the suite of services
        :param dict svcapps:  a mapping of resource paths (relative to the base endpoint URL)
                              to the ServiceApp instances that should serve them.
        :param Logger   log:  the base logger to use among the suite
        :param str  base_ep:  the base endpoint URL for the suite of services.  If not provided,
                              the base URL is set by the configuration (via the ``base_endpoint``
                              parameter).
        """
        super(WSGIAppSuite, self).__init__(config, log, base_ep)
        self.svcapps = dict(svcapps.items())

    def _set_service_route(self, path: str, svcapp: ServiceApp):
        """
        configure a resource path to be handled by a particular ServiceApp instance
        """
        self.svcapps[path] = svcapp

    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who = None):
        """
        Dispatch a request on a resource path to a handler.  The ServiceApp registered with the
        longest path that matches the start of the requested path is chosen.
        :param str path:  the path requested by the client.  This path will be relative to the base
                          endpoint path for the service, and will not start with a slash.
        :param dict env:  the WSGI environment containing all request information
        :param func start_resp:  the start-response function provided by the WSGI engine.
        :param      who:  a string or object that represents the client user.
        """
        base = re.sub(r'/+', '/', path)
        apppath = ''
        svcapp = None
        while not svcapp:
            svcapp = self.svcapps.get(base)
            if svcapp:
                break

            if not base:
                return NotFoundHandler(path, env, start_resp).handle()

            parts = base.rsplit('/', 1)
            if len(parts) < 2:
                parts = ['', base]
            apppath = "/".join([parts[1], apppath]).strip('/')
            base = parts[0]

        return svcapp.handle_path_request(env, start_resp, apppath, who)


class WSGIServiceApp(WSGIAppSuite):
    """
    a wrapper around a single ServiceApp instance.
    """

    def __init__(self, svcapp: ServiceApp, log: Logger, base_ep: str = None, config: Mapping={}):
        """
        wrap a single ServiceApp
        """
        super(WSGIServiceApp, self).__init__(config, {'': svcapp}, log, base_ep)
