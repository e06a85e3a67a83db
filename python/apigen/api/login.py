"""
The login checkers that establish the identity of the client making a request.

A :py:class:`LoginChecker` examines a :py:class:`~apigen.web.rest.base.Request` and returns an
:py:class:`~apigen.base.agent.Agent` representing the client.  If the client presented credentials
that cannot be accepted (or presented none where they are required), it raises a
:py:class:`~apigen.api.errors.TransportError` with status 401, which causes the resource controller
to skip the requested action entirely.

Credentials are looked for as a Bearer token in the ``Authorization`` HTTP header or, failing that,
as the value of a query parameter (``token`` by default).
"""
import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Mapping
from typing import List

import jwt

from apigen.base.agent import Agent
from apigen.base.config import ConfigurationException
from apigen.web.rest.base import Request
from .errors import TransportError, STATUS_CODE_UNAUTHORIZED

__all__ = [ "LoginChecker", "AnonymousLogin", "AuthKeyLogin", "JWTLogin", "create_login_checker" ]

DEF_TOKEN_PARAM = "token"

_RESERVED_CLAIMS = ("sub", "exp", "groups", "vehicle", "actortype", "actorid", "agclass")

class LoginChecker(metaclass=ABCMeta):
    """
    the interface for validating the client's login credentials
    """

    @abstractmethod
    def validate_login(self, request: Request) -> Agent:
        """
        determine the identity of the client making the given request
        :return:  the Agent representing the client
        :raises TransportError:  (with code 401) if the client's credentials are not acceptable
        """
        raise NotImplementedError()

class AnonymousLogin(LoginChecker):
    """
    a login checker that accepts every request as coming from an anonymous user
    """

    def __init__(self, svcname: str="apigen"):
        self.svcname = svcname

    def validate_login(self, request: Request) -> Agent:
        return Agent(self.svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC)

class TokenLogin(LoginChecker):
    """
    a base class for login checkers that look for a token from the client.  The following
    configuration properties are supported:

    ``token_param``
        _str_ (optional).  The name of the query parameter that may carry the token when it is not
        given in the ``Authorization`` header (default: "token").  Set to an empty value to accept
        only the header.
    ``raise_on_anonymous``
        _bool_ (optional).  If True, a request without a token is rejected; otherwise (the
        default), the client is treated as an anonymous user.
    ``raise_on_invalid``
        _bool_ (optional).  If True (the default), a request with an unacceptable token is
        rejected; otherwise, the client is treated as an anonymous user with an ``invalid`` agent
        class.
    """

    def __init__(self, svcname: str, config: Mapping=None, log: logging.Logger=None):
        if config is None:
            config = {}
        self.svcname = svcname
        self.cfg = config
        if not log:
            log = logging.getLogger(svcname).getChild("login")
        self.log = log

    def get_token(self, request: Request) -> str:
        """
        return the token provided by the client or None if one was not provided
        """
        auth = (request.get_header('Authorization') or "x").split()
        if len(auth) >= 2 and auth[0] == "Bearer" and auth[1]:
            return auth[1]
        qp = self.cfg.get('token_param', DEF_TOKEN_PARAM)
        if qp:
            return request.get_query(qp) or None
        return None

    def validate_login(self, request: Request) -> Agent:
        token = self.get_token(request)
        if not token:
            self.log.debug("Client did not provide an authentication token")
            if self.cfg.get('raise_on_anonymous', False):
                raise TransportError("Authentication token required", STATUS_CODE_UNAUTHORIZED)
            return Agent(self.svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC)

        try:
            return self.agent_for(token)
        except TransportError as ex:
            self.log.warning("Login rejected: %s", ex.message)
            if self.cfg.get('raise_on_invalid', True):
                raise
            return Agent(self.svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.INVALID,
                         invalid_reason=ex.message)

    @abstractmethod
    def agent_for(self, token: str) -> Agent:
        """
        return the Agent that the given token identifies
        :raises TransportError:  if the token is not acceptable
        """
        raise NotImplementedError()

class AuthKeyLogin(TokenLogin):
    """
    a login checker that accepts a set of opaque, pre-shared keys.  The keys are given by the
    ``authorized`` configuration property, a list of objects with the following properties:

    ``auth_key``
       _str_ (required).  A recognized key
    ``user``
       _str_ (optional).  the identifier to assign as the agent's actor when the key is presented
    ``client``
       _str_ (optional).  a name for the client, set as the agent's class
    """

    def __init__(self, svcname: str, config: Mapping=None, log: logging.Logger=None):
        super(AuthKeyLogin, self).__init__(svcname, config, log)
        authorized = self.cfg.get('authorized')
        if not isinstance(authorized, list) or not all(isinstance(c, Mapping) for c in authorized):
            raise ConfigurationException("authentication.authorized: must be a list of objects")

    def agent_for(self, token: str) -> Agent:
        for client in self.cfg['authorized']:
            if client.get("auth_key") == token:
                return Agent(self.svcname, Agent.AUTO, client.get('user', 'authorized'),
                             client.get('client'))
        raise TransportError("Unrecognized authentication token", STATUS_CODE_UNAUTHORIZED)

class JWTLogin(TokenLogin):
    """
    a login checker that accepts JSON Web Tokens.  Besides those of :py:class:`TokenLogin`, the
    following configuration properties are supported:

    ``key``
        _str_ (required).  The secret key shared with the token generator used to sign the token.
    ``algorithm``
        _str_ (optional).  The name of the signing algorithm (default: "HS256").
    ``require_expiration``
        _bool_ (optional).  If True (default), a token that does not include an expiration time
        is rejected.

    The token's ``sub`` claim becomes the agent's actor; its other claims are attached as agent
    properties.
    """

    def __init__(self, svcname: str, config: Mapping=None, log: logging.Logger=None):
        super(JWTLogin, self).__init__(svcname, config, log)
        if not self.cfg.get('key'):
            raise ConfigurationException("authentication.key: required for JWT authentication")

    def agent_for(self, token: str) -> Agent:
        try:
            claims = jwt.decode(token, self.cfg['key'],
                                algorithms=[self.cfg.get("algorithm", "HS256")])
        except jwt.InvalidTokenError as ex:
            raise TransportError("Invalid authentication token", STATUS_CODE_UNAUTHORIZED, ex)

        # expiration itself was checked by jwt.decode()
        if self.cfg.get('require_expiration', True) and not claims.get('exp'):
            raise TransportError("Non-expiring authentication token rejected",
                                 STATUS_CODE_UNAUTHORIZED)

        subj = claims.get('sub')
        if not subj:
            self.log.warning("User token is missing subject identifier; defaulting to anonymous")
            subj = Agent.ANONYMOUS
        # claims named like Agent's own parameters cannot become actor properties
        md = dict((k,v) for k,v in claims.items() if k not in _RESERVED_CLAIMS)
        groups = claims.get('groups')
        if isinstance(groups, str):
            groups = [groups]
        return Agent(self.svcname, Agent.USER, subj, None, groups, **md)

def create_login_checker(svcname: str, config: Mapping, log: logging.Logger=None) -> LoginChecker:
    """
    create the login checker described by the given ``authentication`` configuration
    """
    if not config:
        config = {}
    authtype = config.get('type', 'none')
    if authtype == "none":
        return AnonymousLogin(svcname)
    if authtype == "authkey":
        return AuthKeyLogin(svcname, config, log)
    if authtype == "jwt":
        return JWTLogin(svcname, config, log)
    raise ConfigurationException("authentication.type: unrecognized value: "+str(authtype))
