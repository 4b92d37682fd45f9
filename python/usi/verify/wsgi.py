"""
The WSGI web service interface to the USI verification service.

The web app, :py:class:`USIWebApp`, provides the following endpoints (relative to the
configured base endpoint):

``api/usi/verify``
    POST a single verification request
``api/usi/bulk-verify``
    POST a list of verification requests
``api/usi/countries``
    GET the country reference data
``health``
    GET a proof-of-life response (no authentication required)

All ``api/usi`` endpoints require the client to present the configured API key via the
``X-Api-Key`` header.
"""
from logging import Logger
from collections.abc import Mapping
from typing import Callable

from .models import IdentityVerificationRequest, parse_bulk_request
from .service import USIService
from .client import USIClient, create_client
from usi.web.rest import (ServiceApp, Handler, HandlerWithJSON, WSGIAppSuite, HealthApp, Agent,
                          authenticate_via_apikey)
from usi.config import USISettings
from usi.exceptions import ConfigurationException, InvalidArgument, UpstreamEmptyResponse
from usi import system

deflog = system.getSysLogger().getChild("wsgi")

DEF_BASE_PATH = "/"
USI_API_PATH = "api/usi"
HEALTH_PATH = "health"

class USIHandler(HandlerWithJSON):
    """
    a base handler for the resources provided by the USI verification service.  It requires
    the client to have authenticated except for CORS preflight (OPTIONS) requests.
    """
    allowed_methods = []

    def __init__(self, service: USIService, path: str, wsgienv: dict, start_resp: Callable,
                 who=None, config: dict={}, log: Logger=None, app=None):
        super(USIHandler, self).__init__(path, wsgienv, start_resp, who, config, log, app)
        self.svc = service

    def preauthorize(self):
        if self._meth == "OPTIONS":
            return True
        return bool(self.who) and self.who.is_authenticated

    def send_unauthorized(self, message="Unauthorized", content=None, contenttype=None,
                          ashead=None, encoding='utf-8'):
        if content is not None:
            return super(USIHandler, self).send_unauthorized(message, content, contenttype,
                                                             ashead, encoding)
        reason = self.who.get_prop("invalid_reason") if isinstance(self.who, Agent) else None
        return self.send_error_obj(401, message, reason or "Missing or invalid API key.",
                                   ashead=ashead)

    def do_OPTIONS(self, path):
        return self.send_options(self.allowed_methods)

    def _check_request(self, path):
        # returns an error response if the request cannot be serviced, else None
        if path.strip('/'):
            return self.send_error_obj(404, "Not Found", "Resource not found")
        if not self.accepts_json():
            return self.send_error_obj(406, "Not Acceptable",
                                       "This resource only returns JSON (application/json)")
        return None

    def _read_json(self):
        try:
            return self.get_json_body()
        except ValueError as ex:
            raise InvalidArgument("Unable to parse input as JSON: "+str(ex))

    def send_invalid(self, ex: InvalidArgument):
        return self.send_error_obj(400, ex.reason, str(ex))

class VerifyHandler(USIHandler):
    """
    the handler for single USI verification requests
    """
    allowed_methods = ["POST"]

    def do_POST(self, path):
        errresp = self._check_request(path)
        if errresp is not None:
            return errresp

        try:
            request = IdentityVerificationRequest.from_json(self._read_json())
        except InvalidArgument as ex:
            return self.send_invalid(ex)

        try:
            result = self.svc.verify(request)
        except Exception as ex:
            self.log.exception("Error verifying USI: %s: %s", request.usi, str(ex))
            return self.send_error_obj(500, "USI verification failed", str(ex))

        if not result.ok:
            if isinstance(result.error, InvalidArgument):
                return self.send_invalid(result.error)
            if isinstance(result.error, UpstreamEmptyResponse):
                self.log.error("No verification response received for USI: %s", request.usi)
                return self.send_error_obj(500, "No verification response received",
                                           str(result.error))
            self.log.error("Error verifying USI: %s: %s", request.usi, str(result.error))
            return self.send_error_obj(500, "USI verification failed", str(result.error))

        return self.send_json(result.unwrap().to_dict())

class BulkVerifyHandler(USIHandler):
    """
    the handler for bulk USI verification requests
    """
    allowed_methods = ["POST"]

    def do_POST(self, path):
        errresp = self._check_request(path)
        if errresp is not None:
            return errresp

        try:
            reqs = parse_bulk_request(self._read_json())
        except InvalidArgument as ex:
            return self.send_invalid(ex)

        try:
            result = self.svc.bulk_verify(reqs)
        except Exception as ex:
            self.log.exception("Error in bulk USI verification: %s", str(ex))
            return self.send_error_obj(500, "Bulk USI verification failed", str(ex))

        if not result.ok:
            self.log.error("Error in bulk USI verification: %s", str(result.error))
            return self.send_error_obj(500, "Bulk USI verification failed", str(result.error))

        return self.send_json(result.unwrap().to_dict())

class CountriesHandler(USIHandler):
    """
    the handler for retrieving country reference data
    """
    allowed_methods = ["GET"]

    def do_GET(self, path, ashead=False):
        errresp = self._check_request(path)
        if errresp is not None:
            return errresp

        try:
            countries = self.svc.countries()
        except Exception as ex:
            self.log.exception("Error fetching country data: %s", str(ex))
            return self.send_error_obj(500, "Failed to fetch country data", str(ex), ashead=ashead)

        return self.send_json([c.to_dict() for c in countries], ashead=ashead)

class USINotFound(USIHandler):
    """
    a handler for unrecognized resources under the USI API
    """

    def preauthorize(self):
        return True

    def handle(self):
        if self._meth == "OPTIONS":
            return self.send_options(["GET", "POST"])
        return self.send_error_obj(404, "Not Found", "Resource not found")


class USIServiceApp(ServiceApp):
    """
    a ServiceApp providing the USI verification endpoints
    """
    handlers = {
        "verify": VerifyHandler,
        "bulk-verify": BulkVerifyHandler,
        "countries": CountriesHandler
    }

    def __init__(self, service: USIService, log: Logger, config: Mapping=None):
        super(USIServiceApp, self).__init__("usi", log, config)
        self.svc = service

    def create_handler(self, env: dict, start_resp: Callable, path: str, who: Agent=None) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str    path:  the path to the resource being requested, relative to the USI API
                             base path (e.g. "verify")
        :param Agent   who:  the authenticated user agent making the request
        """
        parts = path.strip('/').split('/', 1)
        hdlrcls = self.handlers.get(parts[0], USINotFound)
        subpath = parts[1] if len(parts) > 1 else ""
        return hdlrcls(self.svc, subpath, env, start_resp, who, self.cfg, self.log, self)


class USIWebApp(WSGIAppSuite):
    """
    the WSGI application providing the USI verification web service
    """

    def __init__(self, config: Mapping, log: Logger=None, base_ep: str=None,
                 client: USIClient=None):
        """
        initialize the web app
        :param dict   config:  the service configuration
        :param Logger    log:  the Logger to use; if not provided, a default is used
        :param str   base_ep:  the base endpoint URL path; if not provided, the ``base_endpoint``
                               configuration parameter is used
        :param USIClient client:  the client to use to access the remote service; if not
                               provided, one is created according to the ``client`` configuration
        :raises ConfigurationException:  if the configuration is missing the API key or is
                               otherwise unusable
        """
        if not log:
            log = deflog
        if not base_ep:
            base_ep = config.get("base_endpoint", DEF_BASE_PATH)
        super(USIWebApp, self).__init__(config, {}, log, base_ep)
        if not self.name:
            self.name = system.system_name

        self.settings = USISettings.from_config(config)
        if not self.settings.api_key:
            raise ConfigurationException("USIWebApp: Missing required config parameter: "+
                                         "authentication.api_key")
        if not self.settings.org_code:
            log.warning("Organization code is not configured; verification requests will fail")

        if client is None:
            clientcfg = config.get("client", {})
            if not isinstance(clientcfg, Mapping):
                raise ConfigurationException("Config param, client, not a dictionary: "+
                                             str(clientcfg))
            client = create_client(clientcfg, log.getChild("client"))
            log.info("Using USI client mode: %s", clientcfg.get("mode", "soap"))
        else:
            log.info("Using USI client: %s", type(client).__name__)

        self.service = USIService(self.settings, client, log.getChild("verify"))
        self._set_service_route(HEALTH_PATH, HealthApp(log.getChild("health"), self.name, config))
        self._set_service_route(USI_API_PATH, USIServiceApp(self.service, log, config))

    def authenticate_user(self, env: Mapping, agents=None) -> Agent:
        return authenticate_via_apikey(self.name, env, self.cfg.get("authentication", {}),
                                       self.log, agents)

app = USIWebApp
