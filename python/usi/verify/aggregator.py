"""
Conversion of the remote service's verification outcomes into the results reported to clients
"""
from typing import Sequence

from .models import (VALID_STATUS, IdentityVerificationRequest, VerificationOutcome,
                     VerificationResult, BulkOutcomeSummary, Result)
from usi.exceptions import UpstreamEmptyResponse

def is_valid_status(status) -> bool:
    """
    return True if the given status from the remote service means the USI is valid.  Any
    value other than "Valid", including ones not known today, is taken to mean not valid.
    """
    return status == VALID_STATUS

def _to_result(outcome: VerificationOutcome, usi: str) -> VerificationResult:
    return VerificationResult(is_valid_status(outcome.status), usi, outcome.status, None,
                              outcome.record_id)

class VerificationResultAggregator(object):
    """
    a reshaper of verification outcomes into client results.

    Outcomes are matched to the submitted entries by their position in the response, not by
    record ID.  If the remote service were to reorder or drop entries, bulk results would not
    line up with the client's input; this is a known limitation kept for compatibility.
    """

    def single(self, outcomes: Sequence[VerificationOutcome],
               request: IdentityVerificationRequest) -> Result:
        """
        produce the result for a single verification from the first outcome returned
        :return:  a Result holding either the VerificationResult or an UpstreamEmptyResponse
                  error if there were no outcomes.
        """
        if not outcomes:
            return Result.failure(UpstreamEmptyResponse())
        return Result.success(_to_result(outcomes[0], request.usi))

    def bulk(self, outcomes: Sequence[VerificationOutcome], total_requested: int) -> Result:
        """
        produce the summary for a bulk verification
        :param outcomes:         the outcomes in the order returned by the remote service
        :param total_requested:  the number of requests the client submitted (including any
                                 that were not sent to the remote service)
        :return:  a Result holding the BulkOutcomeSummary
        """
        results = [_to_result(o, o.usi or "") for o in outcomes]
        valid = sum(1 for r in results if r.is_valid)
        return Result.success(BulkOutcomeSummary(total_requested, valid, len(results) - valid,
                                                 results))
