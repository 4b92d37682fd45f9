"""
Utilities for obtaining a configuration for the USI web service and for setting up logging.

A configuration is a (nested) dictionary of parameters.  It can be read from a local YAML or JSON
file (:py:func:`load_from_file`) or retrieved as JSON from a configuration service
(:py:func:`load_from_service`); :py:func:`resolve_configuration` chooses between the two based on
the form of the location given.  The parameters that matter to the verification business logic
are collected into a :py:class:`USISettings` instance at start-up.
"""
import os, sys, json, logging
from collections import namedtuple
from collections.abc import Mapping
from copy import deepcopy
from urllib.parse import urlparse

import requests
import yaml

from .exceptions import ConfigurationException, Misconfiguration

__all__ = [ "ConfigurationException", "Misconfiguration", "USISettings", "load_from_file",
            "load_from_service", "resolve_configuration", "merge_config", "configure_log",
            "NORMAL", "global_logdir", "global_logfile" ]

NORMAL = logging.INFO
DEF_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
DEF_LOGFILE = "usi-webapi.log"

global_logdir = None
global_logfile = None

def load_from_file(configfile: str) -> Mapping:
    """
    read the configuration from the given file and return it as a dictionary.  The file
    extension is used to determine its format: ".json" files are read as JSON; all others, as
    YAML (of which JSON is a subset).
    """
    configfile = str(configfile)
    try:
        with open(configfile) as fd:
            if configfile.endswith(".json"):
                out = json.load(fd)
            else:
                out = yaml.safe_load(fd)
    except OSError as ex:
        raise ConfigurationException("%s: unable to read configuration file: %s" %
                                     (configfile, str(ex))) from ex
    except (ValueError, yaml.YAMLError) as ex:
        raise ConfigurationException("%s: configuration file not parseable: %s" %
                                     (configfile, str(ex))) from ex

    if out is None:
        out = {}
    if not isinstance(out, Mapping):
        raise ConfigurationException(f"{configfile}: configuration data is not a dictionary")
    return out

def load_from_service(url: str, timeout: float=10) -> Mapping:
    """
    retrieve the configuration as JSON from a configuration service at the given URL
    """
    try:
        resp = requests.get(url, headers={"Accept": "application/json"}, timeout=timeout)
    except requests.RequestException as ex:
        raise ConfigurationException(f"{url}: unable to access configuration service: {str(ex)}") \
            from ex

    if resp.status_code != 200:
        raise ConfigurationException("%s: configuration service returned error: %s %s" %
                                     (url, resp.status_code, resp.reason))
    try:
        out = resp.json()
    except ValueError as ex:
        raise ConfigurationException(f"{url}: configuration service did not return JSON") from ex

    if not isinstance(out, Mapping):
        raise ConfigurationException(f"{url}: configuration data is not a dictionary")
    return out

def resolve_configuration(location: str) -> Mapping:
    """
    return the configuration data found at the given location.  If the location is an HTTP(S)
    URL, the data is retrieved from that service; otherwise, it is taken to be a file path.
    """
    location = str(location)
    if urlparse(location).scheme in ("http", "https"):
        return load_from_service(location)
    if location.startswith("file:"):
        location = urlparse(location).path
    return load_from_file(location)

def merge_config(primary: Mapping, defconf: Mapping) -> Mapping:
    """
    merge two configurations, where values from the primary one override those in the
    default.  Nested dictionaries are merged recursively; all other values (including lists)
    are replaced.  The default configuration is updated in place and returned.
    """
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(defconf.get(key), Mapping):
            defconf[key] = merge_config(val, dict(defconf[key]))
        else:
            defconf[key] = deepcopy(val)
    return defconf

def configure_log(logfile: str=None, level: int=None, format: str=None, config: Mapping=None,
                  addstderr: bool=False):
    """
    configure the root logger to send messages to a log file.

    :param str logfile:  the name of the file to write messages to; if a relative path, it is
                         taken to be relative to the ``logdir`` configuration parameter (or the
                         current directory).  If not provided, the ``logfile`` configuration
                         parameter is used.
    :param int   level:  the minimum level of messages to record; if not provided, the
                         ``loglevel`` configuration parameter is used (default: INFO).
    :param str  format:  the format for messages (default: timestamp, logger, level, message)
    :param dict config:  the configuration data to draw defaults from
    :param bool addstderr:  if True, also send messages to standard error
    """
    global global_logdir, global_logfile
    if config is None:
        config = {}

    if not logfile:
        logfile = config.get('logfile', DEF_LOGFILE)
    if not os.path.isabs(logfile):
        logdir = config.get('logdir', global_logdir or os.getcwd())
        logfile = os.path.join(logdir, logfile)
    global_logdir = os.path.dirname(logfile)
    global_logfile = logfile

    if level is None:
        level = config.get('loglevel', NORMAL)
    if isinstance(level, str):
        lev = logging.getLevelName(level.upper())
        if not isinstance(lev, int):
            raise ConfigurationException(f"loglevel: unrecognized logging level: {level}")
        level = lev
    if not format:
        format = config.get('logformat', DEF_LOG_FORMAT)

    rootlog = logging.getLogger()
    rootlog.setLevel(level)

    hdlr = logging.FileHandler(logfile)
    hdlr.setLevel(level)
    hdlr.setFormatter(logging.Formatter(format))
    rootlog.addHandler(hdlr)

    if addstderr:
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setLevel(level)
        hdlr.setFormatter(logging.Formatter(format))
        rootlog.addHandler(hdlr)

    rootlog.debug("logging configured to %s", logfile)


class USISettings(namedtuple("USISettings", "org_code api_key")):
    """
    the static parameters used across all verification calls.  An instance is constructed once
    at start-up and handed to the components that need it.

    ``org_code``
        the organization code that identifies the caller to the remote USI service.  It may be
        None, in which case every call that needs it will fail (see :py:meth:`require_org_code`).
    ``api_key``
        the pre-shared secret that clients must present to use the service
    """
    __slots__ = ()

    @classmethod
    def from_config(cls, config: Mapping) -> 'USISettings':
        """
        extract the settings from a full service configuration
        """
        usicfg = config.get('usi', {})
        if not isinstance(usicfg, Mapping):
            raise ConfigurationException("Config param, usi, not a dictionary: "+str(usicfg))
        authcfg = config.get('authentication', {})
        if not isinstance(authcfg, Mapping):
            raise ConfigurationException("Config param, authentication, not a dictionary: "+
                                         str(authcfg))
        apikey = authcfg.get('api_key')
        if apikey is not None:
            apikey = str(apikey)
        return cls(usicfg.get('org_code') or None, apikey or None)

    def require_org_code(self) -> str:
        """
        return the organization code or raise a :py:class:`Misconfiguration` exception if it
        is not set.
        """
        if not self.org_code:
            raise Misconfiguration("Organization code not configured")
        return self.org_code
