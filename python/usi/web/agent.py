"""
The representation of the client identity making a request on a web service
"""
from collections import OrderedDict
from typing import Iterable

PUBLIC_AGENT_CLASS = "public"
INVALID_AGENT_CLASS = "invalid"
ANONYMOUS_USER = "anonymous"

class Agent(object):
    """
    a class describing the client making a request on the service.  An agent's identifier has
    two main parts: a *vehicle*--the software that is handling the request on the client's
    behalf--and an *actor*--an authenticated identity, either human or functional--that the
    request is made under.

    The :py:attr:`agent_class` classifies the agent according to how it authenticated; in
    particular, an agent whose credentials were presented but not recognized carries the class
    ``INVALID``, and one that presented no credentials is ``ANONYMOUS`` with class ``PUBLIC``.
    """
    USER: str = "user"
    AUTO: str = "auto"  # for functional identities
    UNKN: str = ""
    PUBLIC: str = PUBLIC_AGENT_CLASS
    INVALID: str = INVALID_AGENT_CLASS
    ANONYMOUS: str = ANONYMOUS_USER
    default_class = PUBLIC_AGENT_CLASS

    def __init__(self, vehicle: str, actortype: str, actorid: str = None, agclass: str = None,
                 agents: Iterable[str] = None, **kwargs):
        """
        create an agent
        :param str   vehicle:  a name for the software component that this agent originates from.
        :param str actortype:  one of USER, AUTO, or UNKN, indicating the type of actor the identifier
                               represents
        :param str   actorid:  the unique identifier for the actor (often called a "username")
        :param str   agclass:  an agent classification name (see :py:attr:`agent_class`).
        :param list[str] agents:  the list of upstream agents that this agent is acting on behalf of
                               (optional).
        :param kwargs:  arbitrary key-value pairs that will be saved as custom properties of the agent
        """
        self._vehicle = vehicle

        if actortype not in (self.USER, self.AUTO, self.UNKN):
            raise ValueError("Actor: actortype not one of "+str((self.USER, self.AUTO, self.UNKN)))
        self._actor_type = actortype
        if not agclass:
            agclass = self.default_class
        self._agclass = agclass

        self._agents = []
        if agents:
            self._agents = list(agents)
        self._actor = actorid or self.ANONYMOUS
        self._md = OrderedDict((k,v) for k,v in kwargs.items() if v is not None)

    @property
    def actor(self) -> str:
        """
        an identifier for the specific client actor making a request
        """
        return self._actor

    @property
    def actor_type(self) -> str:
        return self._actor_type

    @property
    def vehicle(self) -> str:
        """
        the name of the software handling the request on behalf of the actor
        """
        return self._vehicle

    @property
    def agent_class(self) -> str:
        """
        the classification of the agent, assigned according to how it authenticated
        """
        return self._agclass

    @property
    def delegated(self) -> tuple:
        """
        the agents that this agent is acting on behalf of
        """
        return tuple(self._agents)

    @property
    def is_authenticated(self) -> bool:
        """
        True if this agent represents a client that presented recognized credentials
        """
        return self._agclass != self.INVALID and self._actor != self.ANONYMOUS

    def get_prop(self, propname: str, defval=None):
        """
        return the value of a custom property attached to this agent
        """
        return self._md.get(propname, defval)

    def __str__(self):
        return "%s/%s" % (self.vehicle, self.actor)
