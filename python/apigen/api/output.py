"""
Support for assembling and sending the response document.

Every request on an apigen resource produces exactly one response document, an
:py:class:`OutputDocument`.  While the request is processed, the document, the errors
encountered, and the status code are accumulated in a :py:class:`RequestContext`; when the
request is done, the context resolves the final status and the document is handed to an
:py:class:`Output` service which serializes it and sends it to the client.
"""
import json, logging
from abc import ABCMeta, abstractmethod
from collections import OrderedDict
from collections.abc import Mapping
from typing import List

import yaml

from apigen.web.formats import FormatSupport, JSONSupport, YAMLSupport, Unacceptable, UnsupportedFormat
from .errors import ErrorRecord, RequestError

__all__ = [ "OutputDocument", "RequestContext", "Output", "JSONOutput", "YAMLOutput",
            "NegotiatedOutput", "ERRORS_KEY", "STATUS_KEY" ]

ERRORS_KEY = "errors"
STATUS_KEY = "statusCode"
DEF_STATUS_CODE = 200

class OutputDocument(OrderedDict):
    """
    an ordered mapping of field names to serializable values that becomes the body of the response.

    The field names ``errors`` and ``statusCode`` are reserved: they cannot be assigned directly
    and are only attached when the document is finalized via :py:meth:`finalize`.
    """
    reserved = (ERRORS_KEY, STATUS_KEY)

    def __setitem__(self, key, value):
        if key in self.reserved:
            raise KeyError("OutputDocument: reserved field cannot be set directly: "+key)
        super(OutputDocument, self).__setitem__(key, value)

    def finalize(self, messages: List[str], code: int):
        """
        attach the reserved fields: the error messages (only if there are any) and the final
        status code.
        """
        if messages:
            OrderedDict.__setitem__(self, ERRORS_KEY, list(messages))
        OrderedDict.__setitem__(self, STATUS_KEY, code)

class RequestContext(object):
    """
    the state of a single request in flight: the request, the response document being built,
    the errors accumulated so far, and the current status code.  A new context is created for
    each request and is not shared with any other.
    """

    def __init__(self, request=None, status: int=DEF_STATUS_CODE):
        self.request = request
        self.document = OutputDocument()
        self.errors = []
        self.status_code = status
        self.who = None
        self.login_failed = False
        self.emitted = False

    def add_error(self, error: ErrorRecord):
        self.errors.append(error)

    def add_errors_from(self, ex: RequestError, defcode: int=None):
        """
        convert a request-level exception into ErrorRecords and add them to this context
        """
        for rec in ex.to_records(defcode):
            self.add_error(rec)

    def set_errors(self, errors: List[ErrorRecord]):
        """
        replace the accumulated errors with the given list
        """
        self.errors = list(errors)

    def error_messages(self) -> List[str]:
        return [e.message for e in self.errors]

    def resolve_status(self) -> int:
        """
        return the final status code for the response: the code of the last error whose code is
        non-zero, or the currently set status if there is no such error.
        """
        code = self.status_code
        for err in self.errors:
            if err.code != 0:
                code = err.code
        return code

def _plain(obj):
    # convert to built-in containers so that safe serializers accept the data
    if isinstance(obj, Mapping):
        return dict((k, _plain(v)) for k,v in obj.items())
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj

class Output(metaclass=ABCMeta):
    """
    the interface for the service that serializes a response document and sends it to the client
    """

    @abstractmethod
    def output(self, document: OutputDocument, resp):
        """
        serialize the document and send it as the response body.
        :param OutputDocument document:  the finished response document
        :param Handler resp:  the handler of the request; its status and headers have already been
                              set.  The document is sent via its ``send_content()`` method.
        :return:  the response body as an iterable of bytes, as required by WSGI
        """
        raise NotImplementedError()

class JSONOutput(Output):
    """
    send the response document as JSON
    """
    content_type = JSONSupport.DEF_CONTENT_TYPE

    def __init__(self, indent: int=2):
        self.indent = indent

    def serialize(self, document: Mapping) -> str:
        return json.dumps(document, indent=self.indent)

    def output(self, document: OutputDocument, resp, contenttype: str=None):
        return resp.send_content(self.serialize(document), contenttype or self.content_type)

class YAMLOutput(Output):
    """
    send the response document as YAML
    """
    content_type = YAMLSupport.DEF_CONTENT_TYPE

    def serialize(self, document: Mapping) -> str:
        return yaml.safe_dump(_plain(document), default_flow_style=False, sort_keys=False)

    def output(self, document: OutputDocument, resp, contenttype: str=None):
        return resp.send_content(self.serialize(document), contenttype or self.content_type)

class NegotiatedOutput(Output):
    """
    send the response document in the format preferred by the client--JSON or YAML--as indicated
    by the handler's format query parameter or the ``Accept`` header.  JSON is used when the
    client states no preference or when none of its preferences can be met: the response carries
    the errors from the request and so must always be sent.
    """

    def __init__(self, log: logging.Logger=None):
        self.log = log
        self._fmtsup = FormatSupport()
        JSONSupport.add_support(self._fmtsup, asdefault=True)
        YAMLSupport.add_support(self._fmtsup)
        self._writers = {
            JSONSupport.FMT_JSON: JSONOutput(),
            YAMLSupport.FMT_YAML: YAMLOutput()
        }

    def output(self, document: OutputDocument, resp):
        try:
            fmt = self._fmtsup.select_format(resp.get_requested_formats(), resp.get_accepts())
        except (Unacceptable, UnsupportedFormat) as ex:
            if self.log:
                self.log.debug("Falling back to default output format: %s", str(ex))
            fmt = None
        if not fmt:
            fmt = self._fmtsup.default_format()

        ctype = fmt.ctype if not fmt.ctype.endswith('/*') else None
        return self._writers[fmt.name].output(document, resp, ctype)
