"""
Reuseable classes for providing a proof-of-life (health check) endpoint in a web app.  This endpoint
requires no authentication so that it can be polled by load balancers and container orchestrators.
"""
from typing import Callable, Mapping
from logging import Logger
from collections import OrderedDict

from .base import ServiceApp, Handler
from .jsonerr import HandlerWithJSON, utcnow_iso

class Health(HandlerWithJSON):
    """
    a handler for proof-of-life requests.

    This handler supports only one method on its base path--GET--which returns a JSON object
    indicating that the service it provides is alive and ready for use.
    """

    def do_GET(self, path, ashead=False):
        path = path.strip('/')
        if path:
            return self.send_error(404, "Not Found")
        if not self.accepts_json():
            return self.send_unacceptable()

        servicename = ""
        if self.app and self.app.name:
            servicename = self.app.name

        if self.log:
            self.log.debug("Health check requested")
        out = OrderedDict([
            ("status", "Healthy"),
            ("timestamp", utcnow_iso()),
            ("service", servicename)
        ])
        return self.send_json(out, ashead=ashead)

    def do_OPTIONS(self, path):
        return self.send_options(["GET"])


class HealthApp(ServiceApp):
    """
    a WSGI sub-app that handles proof-of-life requests
    """

    def __init__(self, log: Logger, appname: str="Health", config: Mapping=None):
        super(HealthApp, self).__init__(appname, log, config)

    def create_handler(self, env: dict, start_resp: Callable, path: str, who) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested, relative to the
                             health endpoint
        """
        return Health(path, env, start_resp, who, log=self.log, app=self)
