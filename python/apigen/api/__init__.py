"""
apigen.api:  the generic REST resource controller and its collaborators.

The :py:class:`~apigen.api.controller.ResourceServiceApp` turns an entity factory into a web
resource supporting listing, creation, retrieval, update and deletion of entities.  The other
modules provide the pieces it is assembled from: the entity interface (:py:mod:`.models`), login
checkers (:py:mod:`.login`), authorization services (:py:mod:`.acl`), output services
(:py:mod:`.output`), the errors it reports (:py:mod:`.errors`), and the helpers that carry out the
entity-level work of each action (:py:mod:`.helpers`).  :py:mod:`.wsgi` assembles a complete WSGI
application from configuration.
"""
from .errors import ErrorRecord, TransportError, EntityValidationError, AuthorizationError
from .models import ControllerModel
from .controller import ResourceServiceApp, ResourceHandler, check_services
