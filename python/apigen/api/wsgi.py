"""
A WSGI application serving a suite of REST resources assembled entirely from configuration.

The configuration is a dictionary with the following properties:

``name``
    _str_ (optional).  a name for the service (default: "apigen")
``base_ep``
    _str_ (optional).  the base URL path under which all resources are served (default: "/api/")
``include_headers``
    _dict_ (optional).  HTTP headers to include in every response
``authentication``
    _dict_ (optional).  the login configuration; its ``type`` is one of "none" (default),
    "authkey", or "jwt" (see :py:mod:`apigen.api.login` for the other properties)
``acl``
    _dict_ (optional).  the authorization configuration; its ``type`` is one of "permissive"
    (default) or "owner", the latter supporting ``superusers`` and ``public_ops``
``output``
    _dict_ (optional).  its ``format`` selects the response format: "json" (default), "yaml", or
    "negotiated" (chosen by the client via the ``format`` query parameter or ``Accept`` header)
``paging``
    _dict_ (optional).  default paging for collection listings: ``per_page`` and ``max_per_page``
``resources``
    _dict_ (required).  a map of resource paths to resource configurations.  Each resource
    configuration may include:

    ``entity_name``
        the name of the entity type (default: the resource path)
    ``plural_name``
        the pluralized entity name (default: ``entity_name`` + "s")
    ``owner_field``
        the name of a field recording the entity's owner
    ``fields``
        a list of field definitions with properties ``name``, ``type``, ``required``, ``default``,
        ``writable``, and ``queryable`` (see :py:class:`~apigen.api.models.Field`)
    ``query_whitelist``
        the names of query parameters to allow and ignore in collection listings
    ``disabled_actions``
        the names of actions to refuse with 405
    ``paging``
        paging settings overriding the global ones

A GET on the base URL returns a description of the service and its resources.
"""
import logging
from collections import OrderedDict
from collections.abc import Mapping
from typing import Callable

from apigen.base import system
from apigen.base.config import ConfigurationException, merge_config
from apigen.web.rest.base import ServiceApp, Handler, WSGIAppSuite
from .models import InMemoryRecordStore, RecordModelFactory
from .controller import ResourceServiceApp
from .login import create_login_checker, DEF_TOKEN_PARAM
from .acl import create_acl
from .output import Output, JSONOutput, YAMLOutput, NegotiatedOutput

__all__ = [ "APIGenApp", "About", "create_output", "app" ]

DEF_BASE_PATH = "/api/"

def create_output(config: Mapping, log: logging.Logger=None) -> Output:
    """
    create the output service described by the given ``output`` configuration
    """
    if not config:
        config = {}
    fmt = config.get('format', 'json')
    if fmt == "json":
        return JSONOutput(config.get('indent', 2))
    if fmt == "yaml":
        return YAMLOutput()
    if fmt == "negotiated":
        return NegotiatedOutput(log)
    raise ConfigurationException("output.format: unrecognized value: "+str(fmt))

class About(ServiceApp):
    """
    a ServiceApp that describes the service and the resources it provides
    """

    def __init__(self, log: logging.Logger, data: Mapping):
        super(About, self).__init__("about", log, {})
        self.data = data

    class _Handler(Handler):

        def do_GET(self, path, ashead=False):
            if path:
                return self.send_error(404, "Not Found")
            return self.send_json(self.app.data, ashead=ashead)

        def do_OPTIONS(self, path):
            return self.send_options(["GET"])

    def create_handler(self, env: dict, start_resp: Callable, path: str, who=None) -> Handler:
        return self._Handler(path, env, start_resp, who, log=self.log, app=self)

class APIGenApp(WSGIAppSuite):
    """
    a WSGI application serving the resources described in its configuration.  Entities are kept
    in an :py:class:`~apigen.api.models.InMemoryRecordStore` shared by all the resources.
    """

    def __init__(self, config: Mapping, log: logging.Logger=None, base_ep: str=None,
                 store: InMemoryRecordStore=None):
        """
        :param dict config:  the application configuration (see module documentation)
        :param Logger  log:  the logger to use; if not given, one named for the service is used
        :param str base_ep:  the base URL path; if not given, the ``base_ep`` config value is used
        :param InMemoryRecordStore store:  the store to keep entities in; if not given, a new
                             empty one is created.
        """
        name = config.get('name', system.system_abbrev)
        if not log:
            log = logging.getLogger(name)
        if base_ep is None:
            base_ep = config.get('base_ep', DEF_BASE_PATH)
        super(APIGenApp, self).__init__(config, {}, log, base_ep)

        if not isinstance(self.cfg.get('resources'), Mapping) or not self.cfg['resources']:
            raise ConfigurationException("No resources configured (missing 'resources' parameter)")
        if store is None:
            store = InMemoryRecordStore()
        self.store = store

        authcfg = self.cfg.get('authentication', {})
        self.login = create_login_checker(name, authcfg, log.getChild("login"))
        self.acl = create_acl(self.cfg.get('acl'))
        self.output = create_output(self.cfg.get('output'), log)

        about = OrderedDict([
            ("name", name),
            ("system", str(system)),
            ("resources", [])
        ])
        for path, rescfg in self.cfg['resources'].items():
            path = path.strip('/')
            svc = self.create_resource(path, rescfg or {})
            self._set_service_route(path, svc)
            about['resources'].append(path)
        self._set_service_route('', About(log.getChild("about"), about))

    def create_resource(self, path: str, rescfg: Mapping) -> ResourceServiceApp:
        """
        create the ServiceApp that serves the resource at the given path
        """
        if not path:
            raise ConfigurationException("resources: empty resource path not allowed")
        cfg = merge_config(rescfg, {
            "include_headers": self.cfg.get('include_headers', {}),
            "paging": self.cfg.get('paging', {})
        })
        factory = RecordModelFactory.from_config(self.store, path, cfg)

        whitelist = list(cfg.get('query_whitelist', []))
        tokenqp = self.cfg.get('authentication', {}).get('token_param', DEF_TOKEN_PARAM)
        if tokenqp and tokenqp not in whitelist:
            whitelist.append(tokenqp)

        return ResourceServiceApp(path, factory, self.log.getChild(path), cfg, self.login,
                                  whitelist, self.acl, self.output)

app = APIGenApp
