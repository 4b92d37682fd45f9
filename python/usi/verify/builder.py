"""
Conversion of client verification requests into the batch shape accepted by the remote service
"""
import logging
from typing import Iterable

from .models import IdentityVerificationRequest, NormalizedVerificationEntry, VerificationBatch, Result
from usi.config import USISettings
from usi.exceptions import InvalidArgument, Misconfiguration
from usi import system

deflog = system.getSysLogger().getChild("builder")

class VerificationRequestBuilder(object):
    """
    a builder of :py:class:`~usi.verify.models.VerificationBatch` instances.

    Record IDs are assigned from 1 in input order to the entries that are included.  The two
    call paths treat requests lacking a complete name differently:  :py:meth:`build_single`
    fails with an :py:class:`~usi.exceptions.InvalidArgument` error while
    :py:meth:`build_bulk` silently drops such requests from the batch.

    Both methods return a :py:class:`~usi.verify.models.Result` rather than raising.
    """

    def __init__(self, settings: USISettings, log: logging.Logger=None):
        self.settings = settings
        if not log:
            log = deflog
        self.log = log

    def _org_code(self):
        try:
            return Result.success(self.settings.require_org_code())
        except Misconfiguration as ex:
            return Result.failure(ex)

    def build_single(self, request: IdentityVerificationRequest) -> Result:
        """
        build a batch containing the single given request
        :return:  a Result holding either the VerificationBatch or an InvalidArgument (when
                  neither name form is complete) or Misconfiguration error
        """
        name = request.name_encoding()
        if name is None:
            return Result.failure(
                InvalidArgument("Must provide either SingleName OR both FirstName and FamilyName",
                                "Invalid name fields"))

        org = self._org_code()
        if not org.ok:
            return org

        entry = NormalizedVerificationEntry(1, request.usi, request.date_of_birth, name)
        return Result.success(VerificationBatch(org.value, [ entry ]))

    def build_bulk(self, requests: Iterable[IdentityVerificationRequest]) -> Result:
        """
        build a batch from the given requests, skipping those without a complete name
        :return:  a Result holding either the VerificationBatch or a Misconfiguration error
        """
        org = self._org_code()
        if not org.ok:
            return org

        entries = []
        for i, request in enumerate(requests):
            name = request.name_encoding()
            if name is None:
                self.log.debug("Skipping request #%d (%s): incomplete name fields", i, request.usi)
                continue
            entries.append(NormalizedVerificationEntry(len(entries)+1, request.usi,
                                                       request.date_of_birth, name))

        return Result.success(VerificationBatch(org.value, entries))
