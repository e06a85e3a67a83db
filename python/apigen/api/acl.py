"""
The authorization services consulted before an entity is created, updated, or deleted.

An :py:class:`Acl` decides whether a requesting :py:class:`~apigen.base.agent.Agent` may carry out
a named operation on an entity.  When it may not, the reason is appended to the entity's messages
and an :py:class:`~apigen.api.errors.AuthorizationError` is raised; the resource controller turns
this into a 401 response.
"""
from abc import ABCMeta, abstractmethod
from collections.abc import Mapping
from typing import Iterable

from apigen.base.agent import Agent
from apigen.base.config import ConfigurationException
from .errors import AuthorizationError
from .models import ControllerModel

__all__ = [ "Acl", "PermissiveAcl", "OwnerAcl", "OP_CREATE", "OP_UPDATE", "OP_DELETE",
            "create_acl" ]

OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"

class Acl(metaclass=ABCMeta):
    """
    the interface to an authorization service
    """

    def authorize(self, entity: ControllerModel, operation: str, who: Agent=None):
        """
        ensure that the given agent is allowed to carry out an operation on an entity
        :param ControllerModel entity:  the entity to be operated on
        :param str operation:  the name of the operation (e.g. "create", "update", "delete")
        :param Agent     who:  the agent requesting the operation
        :raises AuthorizationError:  if the agent is not allowed
        """
        if not self.authorized(entity, operation, who):
            actor = who.actor if who else Agent.ANONYMOUS
            entity.append_message("%s is not authorized to %s this %s" %
                                  (actor, operation, entity.entity_name))
            raise AuthorizationError(entity)

    @abstractmethod
    def authorized(self, entity: ControllerModel, operation: str, who: Agent=None) -> bool:
        """
        return True if the given agent is allowed to carry out the operation on the entity
        """
        raise NotImplementedError()

class PermissiveAcl(Acl):
    """
    an authorization service that allows everything
    """

    def authorized(self, entity: ControllerModel, operation: str, who: Agent=None) -> bool:
        return True

class OwnerAcl(Acl):
    """
    an authorization service that allows an entity to be modified only by its owner.  In
    particular:

      *  any operation listed as public is allowed for everyone, including anonymous users;
      *  superusers are allowed everything;
      *  any non-anonymous agent may create an entity (and thereby becomes its owner);
      *  otherwise, an operation is allowed only if the agent's actor is the entity's owner.
    """

    def __init__(self, superusers: Iterable[str]=None, public_ops: Iterable[str]=None):
        self.superusers = set(superusers or [])
        self.public_ops = set(public_ops or [])

    def authorized(self, entity: ControllerModel, operation: str, who: Agent=None) -> bool:
        if operation in self.public_ops:
            return True
        if who is None or who.anonymous or who.agent_class == Agent.INVALID:
            return False
        if who.actor in self.superusers:
            return True
        if operation == OP_CREATE:
            return True
        return entity.owner is not None and entity.owner == who.actor

def create_acl(config: Mapping) -> Acl:
    """
    create the authorization service described by the given ``acl`` configuration
    """
    if not config:
        config = {}
    acltype = config.get('type', 'permissive')
    if acltype == "permissive":
        return PermissiveAcl()
    if acltype == "owner":
        return OwnerAcl(config.get('superusers'), config.get('public_ops'))
    raise ConfigurationException("acl.type: unrecognized value: "+str(acltype))
