"""
Framework classes for creating REST web interfaces via WSGI

The small framework provided by this module provides foundation classes for RESTful web APIs
that wrap around a business service.  The framework allows for a strict approach to RESTful
service design via the following features:
  *  a resource-based model for handling requests.  The :py:class:`~usi.web.rest.base.Handler`
     class is implemented to handle a single resource (given by a path).  Routing is explicitly in
     the hands of the service implementation.
  *  the ability to compose multiple resources into a single WSGI application via the
     :py:class:`~usi.web.rest.base.ServiceApp` and :py:class:`~usi.web.rest.base.WSGIAppSuite`
     classes.
  *  full but simple control over the returned HTTP status for proper error handling
  *  extra convenience support for JSON-formatted responses and error messages (see
     :py:mod:`~usi.web.rest.jsonerr`)
  *  CORS support for browser-based clients

The approach to web services is to provide a thin web service layer over a business service
class (which features a class name like [X]Service).  The business service class captures all of
the business logic of the service to be offered; however, it is only accessed via its Python
programming API and contains no knowledge of the web layer.  The web layer is provided via a
:py:class:`~usi.web.rest.base.ServiceApp` subclass that wraps around the business class.  When
responding to a web request, the ServiceApp creates a :py:class:`~usi.web.rest.base.Handler`
subclass based on the requested resource path; that handler then provides access to different
functions of the service.
"""

from .base import *
from .jsonerr import HandlerWithJSON, ErrorHandling, FatalError
from .health import HealthApp, Health
