r"""
The generic resource controller: a web service that exposes the entities produced by an entity
factory as a REST resource supporting listing, creation, retrieval, update, and deletion.

A resource is served by a :py:class:`ResourceServiceApp` which is specialized not by subclassing
but by the collaborators given to it at construction:

``entity_factory``
    a function that returns a new, blank :py:class:`~apigen.api.models.ControllerModel`
``login``
    a :py:class:`~apigen.api.login.LoginChecker` that establishes who is making a request
``whitelist``
    the names of query parameters a collection listing should allow and ignore (a list or a
    function returning one)
``acl``
    the :py:class:`~apigen.api.acl.Acl` consulted before an entity is saved or deleted
``output``
    the :py:class:`~apigen.api.output.Output` that serializes the response document

Each request is handled by a :py:class:`ResourceHandler` in three phases: a pre-phase that sets up
the :py:class:`~apigen.api.output.RequestContext` and checks the client's login; the action
selected by the HTTP method and path; and a post-phase that resolves the final status, attaches
any errors to the response document, and sends it.  A failed login skips the action and goes
directly to the post-phase.

The actions map to HTTP requests as follows, where *id* is the first field of the path relative
to the resource:

====================  ==========================
``GET /``             list the entities
``POST /``            create an entity
``GET /``\ *id*       return an entity
``PUT /``\ *id*       update an entity
``DELETE /``\ *id*    delete an entity
``OPTIONS``           CORS preflight response
====================  ==========================
"""
import re, logging
from collections.abc import Mapping
from typing import Callable, Iterable, Union

from apigen.base.config import ConfigurationException
from apigen.web.rest.base import Handler, ServiceApp, Request
from .errors import (ErrorRecord, TransportError, EntityValidationError, AuthorizationError,
                     STATUS_CODE_BAD_REQUEST, STATUS_CODE_NOT_FOUND, STATUS_CODE_NOT_ALLOWED,
                     STATUS_CODE_UNAUTHORIZED, STATUS_CODE_CONFLICT)
from .output import Output, RequestContext
from .acl import Acl
from .login import LoginChecker, AnonymousLogin
from .models import ControllerModel
from .helpers import Params, ShowCriteria, Show, Save, Delete, Index, DEF_PER_PAGE, MAX_PER_PAGE

__all__ = [ "ResourceHandler", "ResourceServiceApp", "check_services" ]

STATUS_MESSAGE = "Check Document Body For More Details"
ALLOW_METHODS = "POST, GET, PUT, DELETE, OPTIONS"
ALLOW_HEADERS = "X-Requested-With, X-HTTP-Method-Override, Content-Type, Accept"

_numeric_re = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')

def check_services(acl: Acl, output: Output):
    """
    ensure that the authorization and output services needed by a resource are in place
    :raises ConfigurationException:  if either is missing or of the wrong type
    """
    if acl is None:
        raise ConfigurationException("Resource is missing its authorization (ACL) service")
    if not isinstance(acl, Acl):
        raise ConfigurationException("The ACL service must implement: " + Acl.__name__)
    check_output(output)

def check_output(output: Output):
    if output is None:
        raise ConfigurationException("Resource is missing its output service")
    if not isinstance(output, Output):
        raise ConfigurationException("The output service must implement: " + Output.__name__)

class ResourceHandler(Handler):
    """
    the handler for a single request on a resource served by a :py:class:`ResourceServiceApp`.
    """

    def __init__(self, svcapp, path: str, wsgienv: Mapping, start_resp: Callable, who=None,
                 config: Mapping={}, log: logging.Logger=None):
        super(ResourceHandler, self).__init__(path, wsgienv, start_resp, who, config, log, svcapp)
        if not self.log:
            self.log = logging.getLogger(svcapp.name)
        self.entity_factory = svcapp.entity_factory
        self.login = svcapp.login
        self.whitelist = svcapp.whitelist
        self.acl = svcapp.acl
        self.output = svcapp.output
        self.disabled_actions = set(self.cfg.get('disabled_actions', []))
        self.ctx = None
        self._set_format_qp("format")

    @property
    def request(self) -> Request:
        return self.ctx.request

    def handle(self):
        body = self.pre_execute()
        if self.ctx.login_failed:
            return body

        self.dispatch_action()
        return self.post_execute()

    def pre_execute(self):
        """
        set up the handling of the request and validate the client's login.  If the login fails,
        the response is completed and sent immediately, and its body is returned; otherwise,
        None is returned.
        """
        check_services(self.acl, self.output)
        self.ctx = RequestContext(Request(self._env, self._path))
        self.ctx.status_code = 200
        self.set_header('Access-Control-Allow-Origin', '*')

        try:
            self.ctx.who = self.login.validate_login(self.request)
            self.who = self.ctx.who
        except TransportError as ex:
            self.log.info("Login failed: %s", ex.message)
            self.ctx.add_errors_from(ex)
        except ConfigurationException:
            raise
        except Exception as ex:
            self.log.exception("Unexpected failure while checking login: "+str(ex))
            self.ctx.add_error(ErrorRecord("Server failure", 500))
        else:
            return None

        self.ctx.login_failed = True
        return self.post_execute()

    def select_action(self) -> str:
        """
        return the name of the action requested via the HTTP method and path
        """
        meth = self.request.method
        hasid = len(self.request.params) > 0
        if meth in ("GET", "HEAD"):
            return (hasid and "show") or "index"
        if meth == "POST" and not hasid:
            return "create"
        if meth == "PUT":
            return "update"
        if meth == "DELETE":
            return "delete"
        if meth == "OPTIONS":
            return "options"
        return None

    def dispatch_action(self):
        """
        execute the action requested by the client, recording any errors that result
        """
        action = self.select_action()
        if not action:
            self._dispatch(self._not_supported)
        elif action in self.disabled_actions:
            self.throw_unaccessible_action("%s not allowed on this resource" % action)
        else:
            self._dispatch(getattr(self, action + "_action"))

    def _not_supported(self):
        raise TransportError(self.request.method + " not supported on this resource",
                             STATUS_CODE_NOT_ALLOWED)

    def _dispatch(self, action: Callable):
        try:
            action()
        except TransportError as ex:
            self.log.debug("Request error: %s", ex.message)
            self.ctx.add_errors_from(ex)
        except AuthorizationError as ex:
            self.log.info("Unauthorized request by %s: %s", str(self.ctx.who), str(ex))
            self.ctx.add_errors_from(ex, STATUS_CODE_UNAUTHORIZED)
        except EntityValidationError as ex:
            self.log.debug("Entity rejected operation: %s", str(ex))
            self.ctx.add_errors_from(ex, STATUS_CODE_CONFLICT)
        except ConfigurationException:
            raise
        except Exception as ex:
            self.log.exception("Unexpected failure: "+str(ex))
            self.ctx.add_error(ErrorRecord("Server failure", 500))

    def throw_unaccessible_action(self, message: str):
        """
        replace any errors recorded so far with a single error indicating that the requested
        action is not allowed on this resource
        """
        self.ctx.set_errors([ ErrorRecord(message, STATUS_CODE_NOT_ALLOWED) ])

    def set_status_code(self, code: int):
        self.ctx.status_code = code

    def post_execute(self):
        """
        finalize the response document, send it to the client, and return the response body.  If
        the response has already been sent, an empty body is returned.
        """
        check_output(self.output)
        if self.ctx.emitted:
            return []

        code = self.ctx.resolve_status()
        self.ctx.document.finalize(self.ctx.error_messages(), code)
        self.set_response(code, STATUS_MESSAGE)
        self.ctx.emitted = True
        return self.output.output(self.ctx.document, self)

    def generate_entity(self) -> ControllerModel:
        return self.entity_factory()

    def validate_entity_id(self, entity_id: str) -> ControllerModel:
        """
        return the entity with the given identifier
        :raises TransportError:  if the identifier is not numeric or the entity does not exist
        """
        if not _numeric_re.match(entity_id):
            raise TransportError("Invalid Entity Id: Must be numeric", STATUS_CODE_BAD_REQUEST)
        return self.look_up_entity(entity_id)

    def look_up_entity(self, entity_id) -> ControllerModel:
        entity = self.generate_entity().find_first(entity_id)
        if entity is None:
            raise TransportError("Invalid Entity Id: Entity not found.", STATUS_CODE_NOT_FOUND)
        return entity

    def _entity_from_path(self) -> ControllerModel:
        if len(self.request.params) == 0:
            raise TransportError("Invalid Entity Id Passed In", STATUS_CODE_BAD_REQUEST)
        return self.validate_entity_id(self.request.get_param(0))

    def generate_entity_output(self, entity: ControllerModel) -> Mapping:
        """
        return the projection of the entity selected by the client
        """
        return Show(self.request, entity).generate(ShowCriteria(self.request).get_field())

    def _show(self, entity: ControllerModel):
        self.ctx.document[entity.entity_name] = self.generate_entity_output(entity)

    def find_post_params(self, entity: ControllerModel) -> Params:
        return Params(self.request)

    def save_entity(self, entity: ControllerModel, is_creating: bool) -> bool:
        save = Save(self.request, entity, is_creating, self.acl, self.ctx.who)
        return save.process(self.find_post_params(entity))

    def index_action(self):
        """
        list the entities in the collection
        """
        entity = self.generate_entity()
        paging = self.cfg.get('paging', {})
        query = Index(self.request, entity, self.whitelist,
                      paging.get('per_page', DEF_PER_PAGE), paging.get('max_per_page', MAX_PER_PAGE))
        self.set_header('Link', query.generate_links())

        objects = [self.generate_entity_output(e) for e in query.get_result_set()]
        self.ctx.document[entity.plural_name] = objects

    def create_action(self):
        """
        create a new entity from the input parameters
        """
        self.set_status_code(201)
        entity = self.generate_entity()
        self.save_entity(entity, True)

        # the saved entity may have been altered by the store
        self._show(self.look_up_entity(entity.id))

    def show_action(self):
        """
        return the entity identified in the path
        """
        self._show(self._entity_from_path())

    def update_action(self):
        """
        update the entity identified in the path from the input parameters
        """
        entity = self._entity_from_path()
        if self.save_entity(entity, False):
            self._show(self.look_up_entity(entity.id))
        else:
            self.set_status_code(304)

    def delete_action(self):
        """
        delete the entity identified in the path
        """
        entity = self._entity_from_path()
        self.set_status_code(204)
        Delete(entity).process(self.acl, self.ctx.who)

    def options_action(self):
        """
        respond to a CORS preflight request
        """
        self.set_header('Access-Control-Allow-Methods', ALLOW_METHODS)
        self.set_header('Access-Control-Allow-Headers', ALLOW_HEADERS)
        self.set_status_code(200)

class ResourceServiceApp(ServiceApp):
    """
    a web service serving a single REST resource.  In addition to the common
    :py:class:`~apigen.web.rest.base.ServiceApp` configuration, the following properties are
    supported:

    ``disabled_actions``
        _list[str]_ (optional).  the names of actions ("index", "create", "show", "update",
        "delete", "options") that should be refused with a 405 status
    ``paging``
        _dict_ (optional).  controls the paging of collection listings via ``per_page``, the
        default page size, and ``max_per_page``, the largest page size a client may request.
    """

    def __init__(self, appname: str, entity_factory: Callable[[], ControllerModel],
                 log: logging.Logger, config: Mapping=None, login: LoginChecker=None,
                 whitelist: Union[Callable, Iterable[str]]=None, acl: Acl=None,
                 output: Output=None):
        """
        :param str appname:  a name for the resource service
        :param entity_factory:  a function that returns a new, blank entity
        :param Logger  log:  the logger to use
        :param dict config:  the service configuration
        :param LoginChecker login:  the login checker; if not given, all clients are accepted
                                    as anonymous
        :param whitelist:  the query parameter names to allow and ignore in collection listings
        :param Acl     acl:  the authorization service
        :param Output  output:  the output service
        :raises ConfigurationException:  if the given collaborators are incomplete or of the wrong
                                         type
        """
        super(ResourceServiceApp, self).__init__(appname, log, config)
        if not callable(entity_factory):
            raise ConfigurationException(appname+": entity_factory must be callable")
        if login is None:
            login = AnonymousLogin(appname)
        if not isinstance(login, LoginChecker):
            raise ConfigurationException("The login checker must implement: "+LoginChecker.__name__)
        check_services(acl, output)

        self.entity_factory = entity_factory
        self.login = login
        self.whitelist = whitelist
        self.acl = acl
        self.output = output

    def create_handler(self, env: dict, start_resp: Callable, path: str, who=None) -> Handler:
        return ResourceHandler(self, path, env, start_resp, who, self.cfg, self.log)
