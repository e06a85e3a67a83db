"""
The request, handler, and application classes on which REST services are built.

A WSGI application (a :py:class:`WSGIAppSuite`) strips its base URL path from a request and routes
it to the :py:class:`ServiceApp` registered for the longest matching resource path.  The
ServiceApp creates a :py:class:`Handler` for the single request, which accumulates the response
status and headers and then sends the content.
"""
import re, json
from abc import ABCMeta, abstractmethod
from logging import Logger
from urllib.parse import parse_qs, urlencode
from collections import OrderedDict
from collections.abc import Mapping
from typing import Callable, List, Tuple

from wsgiref.headers import Headers

from ..utils import order_accepts
from apigen.base.config import ConfigurationException

__all__ = ["Request", "Handler", "ServiceApp", "WSGIApp", "WSGIAppSuite"]

class Request(object):
    """
    a read-only view of an incoming web request.  It wraps the WSGI environment and the
    (relative) resource path, providing access to the path parameters, query parameters, headers,
    and body.
    """

    def __init__(self, wsgienv: Mapping, path: str=None):
        """
        :param dict wsgienv:  the WSGI request environment
        :param str     path:  the resource path relative to the service's base path; if None,
                              ``PATH_INFO`` is used.
        """
        self._env = wsgienv
        if path is None:
            path = wsgienv.get('PATH_INFO', '')
        self._path = path.strip('/')
        self._query = None
        self._body = None

    @property
    def env(self) -> Mapping:
        """
        the underlying WSGI environment
        """
        return self._env

    @property
    def path(self) -> str:
        return self._path

    @property
    def method(self) -> str:
        """
        the requested HTTP method, honoring the ``X-HTTP-Method-Override`` header
        """
        meth = self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE') or self._env.get('REQUEST_METHOD', 'GET')
        return meth.upper()

    @property
    def params(self) -> List[str]:
        """
        the path parameters: the '/'-delimited fields of the relative resource path
        """
        if not self._path:
            return []
        return [p for p in self._path.split('/') if p]

    def get_param(self, idx: int=0, defval=None):
        """
        return the path parameter at the given position or ``defval`` if it doesn't exist
        """
        params = self.params
        if idx < len(params):
            return params[idx]
        return defval

    @property
    def query(self) -> Mapping[str, List[str]]:
        """
        the query parameters as a dictionary of lists of values
        """
        if self._query is None:
            self._query = parse_qs(self._env.get('QUERY_STRING', ''), keep_blank_values=True)
        return self._query

    def get_query(self, name: str, defval=None):
        """
        return the last value given for the named query parameter or ``defval`` if not given
        """
        vals = self.query.get(name)
        if not vals:
            return defval
        return vals[-1]

    def get_header(self, name: str, defval=None):
        """
        return the value of the named HTTP request header
        """
        key = name.upper().replace('-', '_')
        if key not in ('CONTENT_TYPE', 'CONTENT_LENGTH'):
            key = 'HTTP_' + key
        return self._env.get(key, defval)

    @property
    def base_url(self) -> str:
        """
        the URL path (without the query) that the client requested
        """
        return self._env.get('SCRIPT_NAME', '') + self._env.get('PATH_INFO', '')

    def make_url(self, query: Mapping) -> str:
        """
        return the request's URL path with the given query parameters attached
        """
        qstr = urlencode(query, doseq=True)
        return self.base_url + (("?" + qstr) if qstr else "")

    def read_body(self) -> bytes:
        """
        return the request body.  The input stream is read only once; subsequent calls return
        the cached content.
        """
        if self._body is None:
            bodyin = self._env.get('wsgi.input')
            if bodyin is None:
                self._body = b''
            else:
                try:
                    length = int(self._env.get('CONTENT_LENGTH') or -1)
                except ValueError:
                    length = -1
                body = bodyin.read(length) if length >= 0 else bodyin.read()
                if isinstance(body, str):
                    body = body.encode('utf-8')
                self._body = body
        return self._body

    def get_json_body(self):
        """
        return the request body parsed as JSON, or None if the body is empty
        :raises ValueError:  if the body is not parseable as JSON
        """
        body = self.read_body()
        if not body or not body.strip():
            return None
        return json.loads(body, object_pairs_hook=OrderedDict)

def _as_headers(pairs) -> Headers:
    # accepts a dict or a list of name-value pairs
    if isinstance(pairs, Mapping):
        pairs = pairs.items()
    elif not isinstance(pairs, (list, tuple)):
        raise TypeError("not a list of name-value pairs")
    out = []
    for pair in pairs:
        name, value = pair
        out.append((str(name), str(value)))
    return Headers(out)

class Handler(object):
    """
    the handler of a single web request on a resource.  It serves as a base class for handlers
    of particular resources, which implement a ``do_METHOD`` function for each HTTP method
    they support.  The response status and headers are recorded via :py:meth:`set_response`
    and :py:meth:`add_header` and delivered along with the content by one of the ``send_*``
    methods.
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, who=None,
                 config: dict={}, log: Logger=None, app=None):
        """
        :param str     path:  the path to the requested resource, relative to the service
        :param dict wsgienv:  the WSGI request environment
        :param start_resp:    the WSGI start-response function
        :param Agent    who:  the client making the request, if already known
        :param dict  config:  the handler configuration
        :param Logger   log:  the logger to record messages to
        :param ServiceApp app:  the ServiceApp that created this handler; its ``include_headers``
                              are added to the response.
        """
        self._path = path
        self._env = wsgienv
        self._start = start_resp
        self.cfg = config
        self.log = log
        self.who = who
        self._app = app

        self._code = 0
        self._msg = "unknown status"
        self._hdr = Headers(list(getattr(app, 'include_headers', Headers()).items()))
        self._format_qp = None

    @property
    def app(self):
        return self._app

    @property
    def status_code(self) -> int:
        """
        the HTTP status code currently set to be returned
        """
        return self._code

    @property
    def format_qp(self) -> str:
        """
        the name of the query parameter that clients can use to request a named output format, or
        None if no such parameter is recognized.
        """
        return self._format_qp

    def _set_format_qp(self, qpname: str):
        self._format_qp = qpname

    @property
    def method(self) -> str:
        return (self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE') or
                self._env.get('REQUEST_METHOD', 'GET')).upper()

    def handle(self):
        """
        handle the request by calling the ``do_METHOD`` function for the requested HTTP method.
        HEAD requests fall back to ``do_GET`` when ``do_HEAD`` is not defined.
        """
        meth = self.method
        try:
            action = getattr(self, 'do_'+meth, None)
            if action:
                return action(self._path)
            if meth == "HEAD" and hasattr(self, 'do_GET'):
                return self.do_GET(self._path, ashead=True)
            return self.send_error(405, meth + " not supported on this resource")

        except Exception as ex:
            if self.log:
                self.log.exception("Unexpected failure: %s", str(ex))
            return self.send_error(500, "Server failure")

    def set_response(self, code: int, message: str):
        """
        record the status code and message to send with the response
        """
        self._code = code
        self._msg = message

    def add_header(self, name: str, value: str):
        """
        record a response header.  Multiple values may be recorded for the same name.

        :raises UnicodeEncodeError:  if name or value includes non-Latin-1 characters (see PEP 3333)
        """
        name.encode("ISO-8859-1")
        value.encode("ISO-8859-1")
        self._hdr.add_header(name, value)

    def set_header(self, name: str, value: str):
        """
        record a response header, replacing any values previously recorded for it
        """
        del self._hdr[name]
        self.add_header(name, value)

    def end_headers(self):
        """
        start the response by delivering the status and headers to the server
        """
        self._start("%d %s" % (self._code, self._msg), self._hdr.items(), None)

    def send_error(self, code: int, message: str, content=None, contenttype: str=None,
                   ashead: bool=None, encoding: str='utf-8'):
        """
        respond with an error status
        :param int   code:  the HTTP status code
        :param str message: the brief reason to send as the status message
        :param content:     the body: a str or bytes, or a list of them
        """
        self.set_response(code, message)
        return self._send(content, contenttype, ashead, encoding)

    def send_ok(self, content=None, contenttype: str=None, message: str="OK", code: int=200,
                ashead: bool=None, encoding: str='utf-8'):
        self.set_response(code, message)
        return self._send(content, contenttype, ashead, encoding)

    def send_json(self, data, message: str="OK", code: int=200, ashead: bool=False,
                  encoding: str='utf-8'):
        """
        respond with the given data serialized as JSON
        """
        self.set_response(code, message)
        return self._send(json.dumps(data, indent=2), "application/json", ashead, encoding)

    def send_content(self, content, contenttype: str=None, ashead: bool=None,
                     encoding: str='utf-8'):
        """
        respond with the given content, using the status already set via :py:meth:`set_response`
        """
        return self._send(content, contenttype, ashead, encoding)

    def send_options(self, allowed_methods: List[str]=None, origin: str=None, extra=None,
                     forcors: bool=True):
        """
        respond to an OPTIONS request, typically a CORS preflight request
        :param allowed_methods:  the HTTP methods to list as allowed; OPTIONS is always included
        :param str origin:       the origin to allow, if any
        :param extra:            other headers to include, as a dict or list of name-value pairs
        :param bool forcors:     if False, do not include the CORS headers
        """
        if forcors:
            meths = [m for m in (allowed_methods or []) if m != 'OPTIONS'] + ['OPTIONS']
            self.add_header('Access-Control-Allow-Methods', ", ".join(meths))
            if origin:
                self.add_header('Access-Control-Allow-Origin', origin)
            self.add_header('Access-Control-Allow-Headers', "Content-Type")
        if extra:
            for name, value in _as_headers(extra).items():
                self.add_header(name, value)

        return self.send_ok(message="No Content")

    def _send(self, content, contenttype, ashead, encoding):
        if ashead is None:
            ashead = self.method == "HEAD"

        body, contenttype = self._encode_body(content, contenttype, encoding)
        if contenttype:
            self.set_header("Content-Type", contenttype)
        if body:
            self.set_header("Content-Length", str(sum(len(b) for b in body)))
        self.end_headers()

        if ashead:
            return []
        return body

    def _encode_body(self, content, contenttype, encoding) -> Tuple[list, str]:
        if not content:
            return [], contenttype
        if not isinstance(content, list):
            content = [ content ]
        if any(not isinstance(c, (str, bytes)) for c in content):
            raise TypeError("send_*: content must be str or bytes")

        if not contenttype:
            contenttype = "text/plain" if isinstance(content[0], str) else "application/octet-stream"
        return [c.encode(encoding) if isinstance(c, str) else c for c in content], contenttype

    def get_accepts(self) -> List[str]:
        """
        return the content types from the ``Accept`` header, most preferred first
        """
        return order_accepts(self._env.get('HTTP_ACCEPT') or [])

    def get_requested_formats(self) -> List[str]:
        """
        return the format names given via the format query parameter (see :py:attr:`format_qp`)
        """
        if not self.format_qp:
            return []
        return parse_qs(self._env.get('QUERY_STRING', '')).get(self.format_qp, [])


class ServiceApp(metaclass=ABCMeta):
    """
    a service delegated to handle the requests on a particular resource path (and its descendents)
    within a :py:class:`WSGIAppSuite`.  Subclasses implement :py:meth:`create_handler`.

    This base class supports the following configuration property:

    ``include_headers``
        _dict_ or _list_ (optional).  HTTP headers to include in every response, given either as a
        dictionary or as a list of name-value pairs.
    """

    def __init__(self, appname: str, log: Logger, config: Mapping=None):
        self._name = appname
        self.log = log
        self.cfg = config if config is not None else {}

        try:
            self.include_headers = _as_headers(self.cfg.get("include_headers") or [])
        except (TypeError, ValueError) as ex:
            raise ConfigurationException("include_headers: must be either a dict or a list of "+
                                         "name-value pairs", ex)

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def create_handler(self, env: dict, start_resp: Callable, path: str, who=None) -> Handler:
        """
        return a handler for a request on a resource
        :param dict    env:  the WSGI environment containing the request
        :param start_resp:   the WSGI start-response function
        :param str    path:  the path to the resource, relative to the path served by this
                             ServiceApp
        :param Agent   who:  the client making the request, if already known
        """
        raise NotImplementedError()

    def handle_path_request(self, env: dict, start_resp: Callable, path: str=None, who=None):
        if path is None:
            path = env.get('PATH_INFO', '')
        return self.create_handler(env, start_resp, path, who).handle()

    def __call__(self, env, start_resp):
        return self.handle_path_request(env, start_resp)

class WSGIApp(metaclass=ABCMeta):
    """
    a WSGI application serving resources below a base URL path.  Two configuration properties are
    recognized:

    ``base_ep``
        _str_ (optional).  the base URL path.  Requests outside of it are answered with 404, except
        requests on a parent path of it, which get 403.
    ``name``
        _str_ (optional).  a short name for the application
    """

    def __init__(self, config: Mapping, log: Logger, base_ep: str = None, name: str = None):
        self.log = log
        self.cfg = config
        self.name = name or self.cfg.get("name", "")

        base_ep = (base_ep or self.cfg.get("base_ep", "")).strip('/')
        self.base_ep = ('/%s/' % base_ep) if base_ep else None

    def handle_request(self, env: Mapping, start_resp: Callable):
        path = re.sub(r'/+', '/', env.get('PATH_INFO', '/'))

        if self.base_ep:
            if not (path + '/').startswith(self.base_ep):
                if self.base_ep.startswith(path.rstrip('/') + '/'):
                    return Handler(path, env, start_resp).send_error(403, "Forbidden")
                return Handler(path, env, start_resp).send_error(404, "Not Found")
            path = path[len(self.base_ep)-1:]

        return self.handle_path_request(path.strip('/'), env, start_resp)

    @abstractmethod
    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who=None):
        """
        handle a request on a resource path
        :param str path:  the requested path, relative to the base URL path and without a leading
                          slash
        """
        raise NotImplementedError()

    def __call__(self, env, start_resp):
        return self.handle_request(env, start_resp)

class WSGIAppSuite(WSGIApp):
    """
    a WSGI application that routes requests to a set of :py:class:`ServiceApp` instances, each
    serving the resources below a path relative to the base URL path.  A request goes to the
    ServiceApp registered for the longest path that contains the requested one.  A request on a
    path that is a parent of a registered path, but is not itself served, is answered with 403;
    any other unserved path gets 404.
    """

    def __init__(self, config: Mapping, svcapps: Mapping[str, ServiceApp], log: Logger,
                 base_ep: str = None):
        """
        :param dict  config:  the application configuration
        :param dict svcapps:  a map of relative resource paths to the ServiceApps that serve them
        :param Logger   log:  the logger for the application
        :param str  base_ep:  the base URL path; if not given, the ``base_ep`` config value is used
        """
        super(WSGIAppSuite, self).__init__(config, log, base_ep)
        self.svcapps = dict(svcapps)

    def _set_service_route(self, path: str, svcapp: ServiceApp):
        self.svcapps[path] = svcapp

    def find_service(self, path: str):
        """
        return the ServiceApp that serves the given path along with the path relative to it, or
        (None, None) if no registered ServiceApp serves it.
        """
        parts = [p for p in path.split('/') if p]
        for i in range(len(parts), -1, -1):
            svcapp = self.svcapps.get('/'.join(parts[:i]))
            if svcapp:
                return svcapp, '/'.join(parts[i:])
        return None, None

    def _is_parent_path(self, path: str) -> bool:
        parts = [p for p in path.split('/') if p]
        prefixes = ['/'.join(parts[:i])+'/' for i in range(1, len(parts)+1)]
        return any(p.startswith(pre) for p in self.svcapps for pre in prefixes)

    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who=None):
        svcapp, subpath = self.find_service(path)
        if svcapp:
            return svcapp.handle_path_request(env, start_resp, subpath, who)
        if self._is_parent_path(path):
            return Handler(path, env, start_resp).send_error(403, "Forbidden")
        return Handler(path, env, start_resp).send_error(404, "Not Found")
