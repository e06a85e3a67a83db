"""
apigen:  foundation classes shared by all of the apigen packages.

apigen turns an entity abstraction--anything that can be looked up by an identifier, saved,
deleted, and listed--into a RESTful web resource with a full set of CRUD operations.  This
package provides the pieces common to all the parts of the system: the base exception class,
identification of the system, and (via submodules) configuration and client identity support.
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_APIGENSYSNAME = "REST API Generator"
_APIGENSYSABBREV = "apigen"

class SystemInfo(object):
    """
    a description of the overall system that a component is a part of
    """
    def __init__(self, sysname: str, sysabbrev: str, subsysname: str="", subsysabbrev: str="",
                 version: str=__version__):
        self.system_name = sysname
        self.system_abbrev = sysabbrev
        self.subsystem_name = subsysname
        self.subsystem_abbrev = subsysabbrev
        self.system_version = version

    def __str__(self):
        out = self.system_name
        if self.subsystem_name:
            out += ": " + self.subsystem_name
        return "{0} ({1})".format(out, self.system_version)

system = SystemInfo(_APIGENSYSNAME, _APIGENSYSABBREV)

class APIGenException(Exception):
    """
    a general base class for exceptions raised by the apigen framework
    """
    def __init__(self, message: str=None, cause: Exception=None):
        """
        :param str   message:  a description of the problem; if not given, a default is derived
                               from ``cause``.
        :param Exception cause:  the underlying exception that triggered this one, if any
        """
        if not message:
            if cause:
                message = str(cause)
            else:
                message = "Unknown apigen failure"
        super(APIGenException, self).__init__(message)
        self.cause = cause
