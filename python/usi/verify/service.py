"""
The USI verification business logic, independent of the web interface.
"""
import logging
from typing import List

from .models import IdentityVerificationRequest, Country, Result
from .builder import VerificationRequestBuilder
from .aggregator import VerificationResultAggregator
from .client import USIClient
from usi.config import USISettings
from usi import system

deflog = system.getSysLogger().getChild("verify")

class USIService(object):
    """
    a service for verifying USIs against a person's identity details via the remote USI service.

    :py:meth:`verify` and :py:meth:`bulk_verify` return a :py:class:`~usi.verify.models.Result`
    whose error is set for anticipated failures (an incomplete name on a single request, a
    missing organization code, or an empty response).  Failures of the remote call itself are
    raised as :py:class:`~usi.exceptions.UpstreamFailure` exceptions and are not retried.
    """

    def __init__(self, settings: USISettings, client: USIClient, log: logging.Logger=None):
        """
        initialize the service
        :param USISettings settings:  the static parameters (including the organization code)
        :param USIClient     client:  the client to use to call the remote service
        :param Logger           log:  the Logger to use for messages
        """
        if not log:
            log = deflog
        self.log = log
        self.settings = settings
        self.client = client
        self.builder = VerificationRequestBuilder(settings, log)
        self.aggregator = VerificationResultAggregator()

    def verify(self, request: IdentityVerificationRequest) -> Result:
        """
        verify a single USI
        :return:  a Result holding the VerificationResult on success
        """
        self.log.info("Verifying USI: %s", request.usi)

        batch = self.builder.build_single(request)
        if not batch.ok:
            return batch

        outcomes = self.client.bulk_verify(batch.value)
        out = self.aggregator.single(outcomes, request)
        if out.ok:
            self.log.info("USI verification completed: %s is %s", request.usi,
                          "Valid" if out.value.is_valid else "Invalid")
        return out

    def bulk_verify(self, requests: List[IdentityVerificationRequest]) -> Result:
        """
        verify a list of USIs in one call to the remote service.  Requests lacking a complete
        name are not sent, but they are still counted in the summary's ``total_requested``.
        :return:  a Result holding the BulkOutcomeSummary on success
        """
        self.log.info("Bulk verifying %d USIs", len(requests))

        batch = self.builder.build_bulk(requests)
        if not batch.ok:
            return batch

        outcomes = self.client.bulk_verify(batch.value)
        out = self.aggregator.bulk(outcomes, len(requests))
        if out.ok:
            self.log.info("Bulk verification completed: %d/%d valid", out.value.valid_count,
                          out.value.total_requested)
        return out

    def countries(self) -> List[Country]:
        """
        return the country reference data from the remote service
        :raises Misconfiguration:  if the organization code is not configured
        :raises UpstreamFailure:   if the remote call fails
        """
        self.log.info("Fetching country data")
        out = self.client.get_countries(self.settings.require_org_code())
        self.log.info("Retrieved %d countries", len(out))
        return out
