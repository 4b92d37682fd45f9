"""
This module provides the clients used to call the remote (government) USI service.  The
service speaks SOAP 1.1; :py:class:`SOAPUSIClient` builds the request envelopes with
:py:mod:`xml.etree.ElementTree`, posts them with ``requests``, and parses the parts of the
responses that this web service needs.  :py:class:`SimulatedUSIClient` answers in-process
without any network access and is intended for development and testing.

Use :py:func:`create_client` to instantiate the client selected by the configuration.
"""
import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Mapping
from datetime import date
from typing import List
from xml.etree import ElementTree as ET

import requests

from .models import VerificationBatch, VerificationOutcome, Country
from usi.exceptions import ConfigurationException, USICommError, USIServerError, USIClientError
from usi import system

deflog = system.getSysLogger().getChild("client")

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DEF_USI_NS = "http://usi.gov.au/2022/ws"
DEF_SERVICE_INTERFACE = "IUSIService"
DEF_TIMEOUT = 30

BULK_VERIFY_OP = "BulkVerifyUSI"
GET_COUNTRIES_OP = "GetCountries"

class USIClient(metaclass=ABCMeta):
    """
    the interface to the remote USI service used by the verification service
    """

    @abstractmethod
    def bulk_verify(self, batch: VerificationBatch) -> List[VerificationOutcome]:
        """
        submit a batch of verifications to the remote service
        :return:  the outcomes in the order the service returned them
        :raises UpstreamFailure:  if the call fails or the response cannot be interpreted
        """
        raise NotImplementedError()

    @abstractmethod
    def get_countries(self, org_code: str) -> List[Country]:
        """
        retrieve the country reference data from the remote service
        :raises UpstreamFailure:  if the call fails or the response cannot be interpreted
        """
        raise NotImplementedError()


def _localname(tag) -> str:
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]

def _find_all(root: ET.Element, name: str) -> List[ET.Element]:
    return [el for el in root.iter() if _localname(el.tag) == name]

def _child_text(el: ET.Element, name: str):
    for child in el:
        if _localname(child.tag) == name:
            return (child.text or '').strip()
    return None

def _format_date(dob) -> str:
    if isinstance(dob, date):
        return dob.isoformat()
    return str(dob)

class SOAPUSIClient(USIClient):
    """
    a client for the remote USI service's SOAP interface.

    This class looks for the following configuration parameters:

    ``service_endpoint``
        _str_ (required).  the URL of the remote service's SOAP endpoint
    ``namespace``
        _str_ (optional).  the XML namespace of the service's message elements (default:
        ``http://usi.gov.au/2022/ws``)
    ``service_interface``
        _str_ (optional).  the name of the service contract used to form the ``SOAPAction``
        header value (default: ``IUSIService``)
    ``timeout``
        _float_ (optional).  the number of seconds to wait on the remote service (default: 30)
    ``ca_bundle``
        _str_ (optional).  the path to a CA certificate bundle used to verify the service's
        site certificate
    ``authentication``
        _dict_ (optional).  the credentials to present to the remote service:  either ``user``
        and ``pass`` (HTTP basic authentication) or ``client_cert_path`` and
        ``client_key_path`` (an X.509 client certificate).

    :raises ConfigurationException:  if a required parameter is missing or inconsistent
    """

    def __init__(self, config: Mapping, log: logging.Logger=None):
        if not log:
            log = deflog
        self.log = log
        self.cfg = config

        self.endpoint = config.get("service_endpoint")
        if not self.endpoint:
            raise ConfigurationException("SOAPUSIClient: Missing required config parameter: "+
                                         "service_endpoint")
        self.ns = config.get("namespace", DEF_USI_NS).rstrip('/')
        self.iface = config.get("service_interface", DEF_SERVICE_INTERFACE)
        try:
            self.timeout = float(config.get("timeout", DEF_TIMEOUT))
        except (TypeError, ValueError) as ex:
            raise ConfigurationException("SOAPUSIClient: timeout: not a number: "+
                                         str(config.get("timeout")))

        self._reqkw = {}
        if config.get("ca_bundle"):
            self._reqkw['verify'] = config['ca_bundle']
        self._prep_auth(config.get("authentication", {}))

    def _prep_auth(self, authcfg: Mapping):
        if not authcfg:
            self.log.warning("No authentication parameters provided for USI service; "
                             "assuming none are needed")
            return

        if authcfg.get('user') or authcfg.get('pass'):
            if not authcfg.get('user') or not authcfg.get('pass'):
                raise ConfigurationException("SOAPUSIClient: authentication requires both "+
                                             "'user' and 'pass' config parameters")
            self._reqkw['auth'] = (authcfg['user'], authcfg['pass'])

        elif authcfg.get('client_cert_path'):
            if not authcfg.get('client_key_path'):
                raise ConfigurationException("SOAPUSIClient: authentication via cert requires "+
                                             "'client_key_path' config parameter")
            self._reqkw['cert'] = (authcfg['client_cert_path'], authcfg['client_key_path'])

        else:
            raise ConfigurationException("SOAPUSIClient: unrecognized authentication parameters: "+
                                         ", ".join(authcfg.keys()))

    def _q(self, name: str) -> str:
        return "{%s}%s" % (self.ns, name)

    def _envelope(self, opelem: ET.Element) -> bytes:
        env = ET.Element("{%s}Envelope" % SOAP_ENV_NS)
        ET.SubElement(env, "{%s}Header" % SOAP_ENV_NS)
        body = ET.SubElement(env, "{%s}Body" % SOAP_ENV_NS)
        body.append(opelem)
        return ET.tostring(env, encoding="utf-8", xml_declaration=True)

    def _sub(self, parent: ET.Element, name: str, text=None) -> ET.Element:
        out = ET.SubElement(parent, self._q(name))
        if text is not None:
            out.text = str(text)
        return out

    def make_bulk_verify_request(self, batch: VerificationBatch) -> bytes:
        """
        create the SOAP envelope for a ``BulkVerifyUSI`` call
        """
        op = ET.Element(self._q(BULK_VERIFY_OP))
        self._sub(op, "OrgCode", batch.org_code)
        self._sub(op, "NoOfVerifications", batch.count)
        verifs = self._sub(op, "Verifications")
        for entry in batch.entries:
            verif = self._sub(verifs, "Verification")
            self._sub(verif, "RecordId", entry.record_id)
            self._sub(verif, "USI", entry.usi)
            for name, value in entry.name.elements():
                self._sub(verif, name, value)
            self._sub(verif, "DateOfBirth", _format_date(entry.date_of_birth))
        return self._envelope(op)

    def make_get_countries_request(self, org_code: str) -> bytes:
        """
        create the SOAP envelope for a ``GetCountries`` call
        """
        op = ET.Element(self._q(GET_COUNTRIES_OP))
        self._sub(op, "OrgCode", org_code)
        return self._envelope(op)

    def _call(self, opname: str, envelope: bytes) -> ET.Element:
        hdrs = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": '"%s/%s/%s"' % (self.ns, self.iface, opname)
        }

        try:
            resp = requests.post(self.endpoint, data=envelope, headers=hdrs, timeout=self.timeout,
                                 **self._reqkw)
        except requests.RequestException as ex:
            self.log.error("Failed to reach USI service (%s): %s", opname, str(ex))
            raise USICommError(ep=opname, cause=ex) from ex

        # SOAP faults usually arrive with a 500 status, so look for one before anything else
        root = None
        if resp.text:
            try:
                root = ET.fromstring(resp.content)
            except ET.ParseError as ex:
                if resp.status_code < 400:
                    raise USIServerError("USI service returned unparseable XML for %s: %s" %
                                         (opname, str(ex)), opname, resp.status_code,
                                         resp.text) from ex

        if root is not None:
            faults = _find_all(root, "Fault")
            if faults:
                self._raise_fault(opname, faults[0], resp)

        if resp.status_code >= 500:
            raise USIServerError(ep=opname, code=resp.status_code, resptext=resp.text)
        elif resp.status_code >= 400:
            raise USIClientError("USI service rejected %s request: %s %s" %
                                 (opname, resp.status_code, resp.reason),
                                 opname, resp.status_code, resp.text)
        elif resp.status_code != 200:
            raise USIServerError("Unexpected response from USI service: %s %s" %
                                 (resp.status_code, resp.reason),
                                 opname, resp.status_code, resp.text)

        if root is None:
            raise USIServerError(f"USI service returned an empty response for {opname}", opname,
                                 resp.status_code, resp.text)
        return root

    def _raise_fault(self, opname, fault: ET.Element, resp):
        code = _child_text(fault, "faultcode") or ""
        msg = _child_text(fault, "faultstring") or "unspecified fault"
        self.log.error("USI service returned fault for %s: %s: %s", opname, code, msg)
        if _localname(code.split(':')[-1]) == "Client":
            raise USIClientError(f"USI service fault: {msg}", opname, resp.status_code, resp.text)
        raise USIServerError(f"USI service fault: {msg}", opname, resp.status_code, resp.text)

    def parse_bulk_verify_response(self, root: ET.Element) -> List[VerificationOutcome]:
        """
        extract the verification outcomes from a ``BulkVerifyUSI`` response document
        :raises USIServerError:  if a required element is missing or malformed
        """
        out = []
        for vr in _find_all(root, "VerificationResponse"):
            recid = _child_text(vr, "RecordId")
            status = _child_text(vr, "USIStatus")
            if not recid or not status:
                raise USIServerError("USI service response is missing a RecordId or USIStatus "
                                     "element", BULK_VERIFY_OP)
            try:
                recid = int(recid)
            except ValueError as ex:
                raise USIServerError("USI service returned a non-integer RecordId: "+recid,
                                     BULK_VERIFY_OP) from ex
            out.append(VerificationOutcome(recid, _child_text(vr, "USI") or None, status))
        return out

    def parse_get_countries_response(self, root: ET.Element) -> List[Country]:
        """
        extract the countries from a ``GetCountries`` response document
        :raises USIServerError:  if a required element is missing
        """
        out = []
        for c in _find_all(root, "Country"):
            code = _child_text(c, "CountryCode")
            if code is None:
                raise USIServerError("USI service response is missing a CountryCode element",
                                     GET_COUNTRIES_OP)
            out.append(Country(code, _child_text(c, "Name") or ""))
        return out

    def bulk_verify(self, batch: VerificationBatch) -> List[VerificationOutcome]:
        root = self._call(BULK_VERIFY_OP, self.make_bulk_verify_request(batch))
        return self.parse_bulk_verify_response(root)

    def get_countries(self, org_code: str) -> List[Country]:
        root = self._call(GET_COUNTRIES_OP, self.make_get_countries_request(org_code))
        return self.parse_get_countries_response(root)


DEF_SIM_COUNTRIES = [
    Country("1101", "Australia"),
    Country("1201", "New Zealand"),
    Country("2100", "United Kingdom"),
    Country("8104", "United States of America")
]

class SimulatedUSIClient(USIClient):
    """
    a USIClient that answers in-process without contacting a remote service.

    Every submitted USI is reported with the status "Valid" unless the configuration says
    otherwise.  This class looks for the following configuration parameters:

    ``statuses``
        _dict_ (optional).  a mapping of USI values to the status to report for them
        (e.g. ``Invalid`` or ``Deactivated``)
    ``countries``
        _list_ (optional).  the countries to return, each given as an object with ``code`` and
        ``name`` properties.
    """

    def __init__(self, config: Mapping=None, log: logging.Logger=None):
        if config is None:
            config = {}
        if not log:
            log = deflog
        self.log = log
        self.statuses = dict(config.get("statuses", {}))
        if config.get("countries") is not None:
            try:
                self.countries = [Country(c['code'], c['name']) for c in config['countries']]
            except (KeyError, TypeError) as ex:
                raise ConfigurationException("SimulatedUSIClient: countries: each item must have "+
                                             "code and name properties")
        else:
            self.countries = list(DEF_SIM_COUNTRIES)

    def bulk_verify(self, batch: VerificationBatch) -> List[VerificationOutcome]:
        self.log.debug("Simulating verification of %d USIs", batch.count)
        return [VerificationOutcome(e.record_id, e.usi, self.statuses.get(e.usi, "Valid"))
                for e in batch.entries]

    def get_countries(self, org_code: str) -> List[Country]:
        return list(self.countries)


def create_client(config: Mapping, log: logging.Logger=None) -> USIClient:
    """
    create the USIClient selected by the ``mode`` parameter in the given client configuration:
    ``soap`` (the default) or ``sim``.
    :raises ConfigurationException:  if the mode is not recognized or the configuration is
                                     otherwise not usable
    """
    if config is None:
        config = {}
    mode = config.get("mode", "soap")
    if mode == "soap":
        return SOAPUSIClient(config, log)
    if mode == "sim":
        return SimulatedUSIClient(config.get("sim", config), log)
    raise ConfigurationException("client.mode: unsupported client mode: "+str(mode))
