"""
Support for a REST web service that fronts the USI (Unique Student Identifier) verification service.

This package is organized into the following modules and subpackages:

``config``
    loading of configuration data and set-up of logging
``exceptions``
    the exception classes used throughout this package
``web``
    a small framework for building strict REST services via WSGI
``verify``
    the USI verification business logic, the client to the remote SOAP service, and the web
    service layer that exposes it.
"""
import logging

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_USISYSNAME = "USI Web API"
_USISYSABBREV = "USI"

class SystemInfo(object):
    """
    a class that identifies a system (and, optionally, one of its subsystems) for use in
    messages and logger names.
    """
    def __init__(self, sysname: str, sysabbrev: str, subsysname: str="", subsysabbrev: str="",
                 version: str=__version__):
        self.system_name = sysname
        self.system_abbrev = sysabbrev
        self.subsystem_name = subsysname
        self.subsystem_abbrev = subsysabbrev
        self.system_version = version

    def getSysLogger(self):
        """
        return the logger for this system (or subsystem, if one is set).
        """
        out = logging.getLogger(self.system_abbrev)
        if self.subsystem_abbrev:
            out = out.getChild(self.subsystem_abbrev)
        return out

class USISystem(SystemInfo):
    """
    A SystemInfo representing the overall USI web service system.
    """
    def __init__(self, subsysname="", subsysabbrev=""):
        super(USISystem, self).__init__(_USISYSNAME, _USISYSABBREV, subsysname, subsysabbrev,
                                        __version__)

system = USISystem()

from .exceptions import USIException, ConfigurationException
