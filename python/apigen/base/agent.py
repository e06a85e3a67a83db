"""
a representation of the client making a request on an apigen resource.

An :py:class:`Agent` is produced by a login checker once the client's credentials have been
examined; it is then handed to the authorization service when an operation on an entity requires
a capability check.
"""
from collections import OrderedDict
from collections.abc import Mapping
from typing import Iterable, Tuple

class Agent(object):
    """
    the identity of a client making a request.  It combines the *vehicle*, the service or software
    component through which the request arrived, with the *actor*, the (possibly anonymous)
    identity on whose behalf it is made.

    Authorization decisions are based on the agent's :py:attr:`agent_class`, assigned according
    to how the client authenticated, and its :py:attr:`groups`, which always start with the class.
    """
    # actor types
    USER = "user"
    AUTO = "auto"       # a functional identity
    UNKN = ""
    ACTOR_TYPES = (USER, AUTO, UNKN)

    # agent classes
    PUBLIC = "public"
    ADMIN = "admin"
    INVALID = "invalid"   # presented credentials that could not be verified

    ANONYMOUS = "anonymous"

    def __init__(self, vehicle: str, actortype: str, actorid: str = None, agclass: str = None,
                 groups: Iterable[str] = None, **kwargs):
        """
        :param str   vehicle:  the name of the service component the request arrived through
        :param str actortype:  the kind of actor: USER, AUTO, or UNKN
        :param str   actorid:  the actor's identifier (e.g. a user name); default: ANONYMOUS
        :param str   agclass:  the agent class; default: PUBLIC
        :param groups:         the names of permission groups the actor belongs to
        :param kwargs:         other properties of the actor, typically taken from its credentials;
                               those with None values are dropped.
        """
        if actortype not in self.ACTOR_TYPES:
            raise ValueError("Agent: unrecognized actor type: " + repr(actortype))
        self.vehicle = vehicle
        self.actor_type = actortype
        self.actor = actorid or self.ANONYMOUS
        self.agent_class = agclass or self.PUBLIC
        self._groups = frozenset(groups or [])
        self._props = dict((k, v) for k, v in kwargs.items() if v is not None)

    @property
    def id(self) -> str:
        return "%s/%s" % (self.vehicle, self.actor)

    @property
    def groups(self) -> Tuple[str]:
        """
        the agent class followed by the actor's permission groups in sorted order
        """
        return (self.agent_class,) + tuple(sorted(self._groups))

    def is_in_group(self, group: str) -> bool:
        return group == self.agent_class or group in self._groups

    @property
    def anonymous(self) -> bool:
        return self.actor == self.ANONYMOUS

    def get_prop(self, propname: str, defval=None):
        return self._props.get(propname, defval)

    def to_dict(self) -> Mapping:
        """
        return a summary of this agent suitable for logging or serializing
        """
        out = OrderedDict()
        out['vehicle'] = self.vehicle
        out['actor'] = self.actor
        out['type'] = self.actor_type
        out['class'] = self.agent_class
        if self._groups:
            out['groups'] = sorted(self._groups)
        return out

    def __str__(self):
        return self.id

    def __repr__(self):
        return "<Agent %s>" % self.id
