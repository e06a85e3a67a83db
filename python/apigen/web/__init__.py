"""
Utilities for creating the web front end to apigen resources.

This package is organized into the following modules:

``utils``
    functions for interpreting the ``Accept`` HTTP header.
``formats``
    classes that help a handler manage its output format options
``rest``
    a simple WSGI framework for creating strict REST services
"""
