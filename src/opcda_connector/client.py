"""
The remote client facade: the operations the connector needs from an OPC DA
client library, expressed as abstract classes.

Every operation that talks to the server is a coroutine. These are the only
places where the connector gives up control of the event loop.

Implementations raise ClientError (or a subclass) when an operation fails.
They may fire a SessionLostEvent on RemoteClient.events when the session
drops without being asked to.
"""
from abc import ABCMeta, abstractmethod

from opcda_connector.support.events import EventSource


class ClientError(Exception):
    """ An operation on the remote server failed. """

    def __init__(self, message=None, code=None):
        super().__init__(message)
        self.code = code


class DataSource:
    """ Where a synchronous read takes its values from. """
    cache = 1
    device = 2


class SessionLostEvent:
    """ The session to the server was closed by something other than the connector. """

    def __init__(self, client, reason=None):
        self.client = client
        self.reason = reason


class GroupParameters:
    """ The settings of a group subscription on the server. """

    def __init__(self, active=True, update_rate=1000, time_bias=0, deadband=0):
        self.active = active
        self.update_rate = update_rate
        self.time_bias = time_bias
        self.deadband = deadband

    def __eq__(self, other):
        return isinstance(other, GroupParameters) and self.__dict__ == other.__dict__

    def __repr__(self):
        return "GroupParameters(%r)" % self.__dict__


class ItemDefinition:
    """ An item to add to a group, and the client handle it is known by locally. """

    def __init__(self, item_id, client_handle):
        self.item_id = item_id
        self.client_handle = client_handle

    def __eq__(self, other):
        return isinstance(other, ItemDefinition) and \
            (self.item_id, self.client_handle) == (other.item_id, other.client_handle)

    def __repr__(self):
        return "ItemDefinition(%r, %r)" % (self.item_id, self.client_handle)


class AddResult:
    """ The outcome of adding one item. server_handle is only meaningful when status_code is 0. """

    def __init__(self, status_code, server_handle=None):
        self.status_code = status_code
        self.server_handle = server_handle

    @property
    def succeeded(self):
        return self.status_code == 0

    def __repr__(self):
        return "AddResult(%r, %r)" % (self.status_code, self.server_handle)


class ItemWrite:
    """ A value to write to the item with the given server handle. """

    def __init__(self, server_handle, value):
        self.server_handle = server_handle
        self.value = value

    def __eq__(self, other):
        return isinstance(other, ItemWrite) and \
            (self.server_handle, self.value) == (other.server_handle, other.value)

    def __repr__(self):
        return "ItemWrite(%r, %r)" % (self.server_handle, self.value)


class Releasable(metaclass=ABCMeta):
    """ A remote object that holds server resources until end() is called. """

    @abstractmethod
    async def end(self):
        raise NotImplementedError


class ItemManager(Releasable):

    @abstractmethod
    async def add(self, items) -> list:
        """
        Adds items to the group.
        :param items: a list of ItemDefinition
        :return: a list of AddResult, positionally aligned with items
        """
        raise NotImplementedError


class SyncIO(Releasable):

    @abstractmethod
    async def read(self, source, server_handles) -> list:
        """
        Reads the current state of the given items.
        :param source: a DataSource value
        :param server_handles: the server handles of the items to read
        :return: a list of ReadResult, one per item the server answered for
        """
        raise NotImplementedError

    @abstractmethod
    async def write(self, writes) -> list:
        """
        Writes values to items.
        :param writes: a list of ItemWrite
        :return: a status code per write
        """
        raise NotImplementedError


class Browser(Releasable):

    @abstractmethod
    async def browse_all_flat(self) -> list:
        """ lists every item id in the server address space """
        raise NotImplementedError


class RemoteGroup(Releasable):
    """ A group subscription on the server. """

    @abstractmethod
    async def get_item_manager(self) -> ItemManager:
        raise NotImplementedError

    @abstractmethod
    async def get_sync_io(self) -> SyncIO:
        raise NotImplementedError


class RemoteServer(metaclass=ABCMeta):
    """ The server object instantiated within a session. """

    @abstractmethod
    async def add_group(self, name, parameters: GroupParameters) -> RemoteGroup:
        raise NotImplementedError

    @abstractmethod
    async def get_browser(self) -> Browser:
        raise NotImplementedError


class RemoteClient(metaclass=ABCMeta):
    """ Opens sessions and creates server objects. """

    def __init__(self):
        self.events = EventSource()

    @abstractmethod
    async def open_session(self, domain, username, password, timeout):
        """
        Authenticates with the remote host.
        :return: an opaque session handle
        """
        raise NotImplementedError

    @abstractmethod
    async def create_server_object(self, session, clsid, address) -> RemoteServer:
        """ Instantiates the server identified by clsid on the host at address. """
        raise NotImplementedError

    @abstractmethod
    async def close_server_object(self, server: RemoteServer):
        raise NotImplementedError

    @abstractmethod
    async def close_session(self, session):
        raise NotImplementedError
