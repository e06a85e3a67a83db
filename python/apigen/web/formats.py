"""
Output format negotiation.

A :py:class:`FormatSupport` instance records the formats a service can produce.  Each format has a
short name (e.g. "json") and can be reached through any of several content types.  Given the
format names a client asked for via a query parameter and the content types listed in its
``Accept`` header, :py:meth:`FormatSupport.select_format` picks the format to send.
"""
import re
from collections import OrderedDict, namedtuple
from typing import List, Iterable

from .utils import is_content_type, match_accept, acceptable

__all__ = [ "Format", "FormatSupport", "JSONSupport", "YAMLSupport", "UnsupportedFormat",
            "Unacceptable" ]

class UnsupportedFormat(Exception):
    """
    the client requested a format by name that the service cannot produce
    """
    pass

class Unacceptable(Exception):
    """
    none of the formats the service could produce match the content types the client will accept
    """
    pass

Format = namedtuple("Format", ["name", "ctype"])
Format.__doc__ = "an output format: its short name and the content type to label it with"

class FormatSupport(object):
    """
    a registry of the output formats a service supports.  The first format registered (or the
    one registered with ``asdefault=True``) is the default.
    """
    _wildcard_re = re.compile(r'^(\w+)/\*$')

    def __init__(self):
        self._formats = OrderedDict()
        self._ctypes = OrderedDict()    # content type -> format name
        self._default = None

    def support(self, format: Format, cts: List[str]=[], asdefault=False, raiseonconflict=False):
        """
        register a format.
        :param Format format:  the format, giving its name and preferred content type
        :param cts:  the content types that, when requested, select this format
        :param bool asdefault:  if True, make this the :py:meth:`default_format`
        :param bool raiseonconflict:  if True, raise a ValueError when the format or any of the
                     content types is already registered; otherwise, the earlier registration of
                     the format is replaced.
        """
        if raiseonconflict:
            if format.name in self._formats:
                raise ValueError(format.name + ": format already supported")
            taken = [ct for ct in cts if ct in self._ctypes]
            if taken:
                raise ValueError("content types already claimed by another format: " +
                                 ", ".join(taken))

        self._ctypes = OrderedDict((ct, name) for ct, name in self._ctypes.items()
                                   if name != format.name)
        self._formats[format.name] = format
        for ct in cts:
            self._ctypes[ct] = format.name

        if asdefault or not self._default:
            self._default = format

    def content_types(self, name: str) -> List[str]:
        """
        return the content types that select the named format, the preferred one first
        """
        fmt = self._formats.get(name)
        if not fmt:
            return []
        return [fmt.ctype] + [ct for ct, n in self._ctypes.items() if n == name and ct != fmt.ctype]

    def match(self, fmtreq: str) -> Format:
        """
        return the supported Format selected by a format name or content type (which may be a
        wildcard type like ``text/*``), or None if it is not supported.  When a specific content
        type is given, the returned Format is labeled with it.
        """
        if fmtreq in ('*', '*/*'):
            return self._default
        if not is_content_type(fmtreq):
            return self._formats.get(fmtreq)

        m = self._wildcard_re.match(fmtreq)
        if m:
            prefix = m.group(1) + '/'
            if self._default and self._default.ctype.startswith(prefix):
                return self._default
            for ct, name in self._ctypes.items():
                if ct.startswith(prefix):
                    return self._formats[name]
            return None

        name = self._ctypes.get(fmtreq)
        return Format(name, fmtreq) if name else None

    def default_format(self) -> Format:
        return self._default

    def select_format(self, formats: Iterable[str], accepts: Iterable[str]) -> Format:
        """
        pick a supported format given the client's stated preferences.  Formats requested
        explicitly take precedence over the Accept types.  None is returned if both ``formats``
        and ``accepts`` are empty.

        :param formats:  format names or content types requested via a query parameter, in order
                         of preference
        :param accepts:  the content types from the Accept header, in order of preference
        :raise UnsupportedFormat:  if none of ``formats`` are supported
        :raise Unacceptable:  if the supported ``formats`` conflict with ``accepts``, or if no
                              ``formats`` were given and none of ``accepts`` are supported
        """
        if formats:
            return self._select_requested(formats, accepts)
        if accepts:
            for label in accepts:
                fmt = self.match(label)
                if fmt:
                    return fmt
            raise Unacceptable("No given Accept types supported")
        return None

    def _select_requested(self, formats, accepts):
        anyok = not accepts or '*' in accepts or '*/*' in accepts
        inconsistent = False
        for label in formats:
            fmt = self.match(label)
            if not fmt:
                continue
            if anyok:
                return fmt

            fmt = self._accepted_as(fmt, label, accepts)
            if fmt:
                return fmt
            inconsistent = True

        if inconsistent:
            raise Unacceptable("format parameter is inconsistent with Accept header")
        raise UnsupportedFormat("Unsupported format requested")

    def _accepted_as(self, fmt: Format, label: str, accepts) -> Format:
        # label the format with the content type the client will accept it as
        if is_content_type(label):
            ctype = acceptable(label, accepts)
            if not ctype:
                return None
            if ctype.endswith('/*') and match_accept(ctype, fmt.ctype):
                return fmt
            return Format(fmt.name, ctype)

        for accepted in accepts:
            ctype = acceptable(accepted, self.content_types(fmt.name))
            if ctype and not ctype.endswith('/*'):
                return Format(fmt.name, ctype)
        return None

class _StandardSupport(FormatSupport):
    FMT_NAME = None
    DEF_CONTENT_TYPE = None
    CONTENT_TYPES = []

    def __init__(self, ctypes=[]):
        super(_StandardSupport, self).__init__()
        self.add_support(self, ctypes)

    @classmethod
    def add_support(cls, fmtsup: FormatSupport, ctypes: List[str]=[], asdefault: bool=False):
        """
        register this format with the given FormatSupport instance
        :param ctypes:  the content types that should select the format; if empty, the class's
                        standard list is used.
        """
        fmtsup.support(Format(cls.FMT_NAME, cls.DEF_CONTENT_TYPE), ctypes or cls.CONTENT_TYPES,
                       asdefault, True)

class JSONSupport(_StandardSupport):
    """
    support for JSON output
    """
    FMT_JSON = FMT_NAME = "json"
    DEF_CONTENT_TYPE = "application/json"
    CONTENT_TYPES = [ DEF_CONTENT_TYPE, "text/json" ]

class YAMLSupport(_StandardSupport):
    """
    support for YAML output
    """
    FMT_YAML = FMT_NAME = "yaml"
    DEF_CONTENT_TYPE = "application/x-yaml"
    CONTENT_TYPES = [ DEF_CONTENT_TYPE, "application/yaml", "text/yaml" ]
