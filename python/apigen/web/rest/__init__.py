"""
A small WSGI framework for REST services.

Each request is handled by a :py:class:`~apigen.web.rest.base.Handler` created for it by the
:py:class:`~apigen.web.rest.base.ServiceApp` serving the requested resource path.  Several
ServiceApps are composed into one WSGI application with
:py:class:`~apigen.web.rest.base.WSGIAppSuite`.
"""

from .base import *
