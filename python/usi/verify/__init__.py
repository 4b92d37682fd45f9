"""
The USI verification service:  the business logic for verifying USIs (Unique Student Identifiers)
against a person's identity details via the remote government USI service, along with the client
that speaks to that service and the web interface that exposes it.

The main components are:

``models``
    the request, batch, outcome, and result types passed between the components
``builder``
    the conversion of client requests into a batch for the remote service
``aggregator``
    the conversion of the remote service's outcomes into client results
``client``
    the SOAP client for the remote service (and a simulated alternative)
``service``
    the business service, :py:class:`~usi.verify.service.USIService`
``wsgi``
    the WSGI web application, :py:class:`~usi.verify.wsgi.USIWebApp`
"""
from .models import IdentityVerificationRequest, Result
from .service import USIService
