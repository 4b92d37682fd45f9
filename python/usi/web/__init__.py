"""
Utilities for creating web services.

This package is organized into the following modules:

``utils``
    General utilities that can be used potentially in any web service framework.  This includes
    functions for interpreting the ``Accept`` HTTP header.
``agent``
    the class used to represent the identity of a client making a request
``rest``
    a simple framework for creating strict REST services
"""
