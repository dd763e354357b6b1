"""
The connection to one OPC DA server.

A ServerConnection owns the session and the server object, and the groups
registered with it. Each time the connection is established, every group is
added to the server and configured. Groups that stop receiving data ask the
connection to reconnect, which tears everything down and sets it up again.

    disconnected -> connecting -> online
         ^              |           |
         +--------------+-----------+   (failure, reconnect, shutdown)
"""
import asyncio
import logging

from opcda_connector.client import ClientError, RemoteClient, SessionLostEvent
from opcda_connector.errors import ConfigurationError, DuplicateGroupError, ServerConnectionError
from opcda_connector.group import GroupSession
from opcda_connector.status import ConnectionState, ConnectionStatus
from opcda_connector.support.events import EventSource

logger = logging.getLogger(__name__)

default_timeout = 7000      # ms


class ConnectionConfiguration:
    """
    Where the server is and how to authenticate with it. Supplied once and not changed afterwards.

    :param address: the host name or IP address of the server
    :param domain: the authentication domain, may be empty
    :param username: credentials
    :param password: credentials
    :param clsid: the class id of the OPC server to instantiate
    :param timeout: the session timeout in ms
    :param verbose: log full tracebacks for server errors
    """

    def __init__(self, address=None, domain=None, username=None, password=None, clsid=None,
                 timeout=default_timeout, verbose=False):
        self._address = address
        self._domain = domain or ''
        self._username = username
        self._password = password
        self._clsid = clsid
        try:
            self._timeout = int(timeout)
        except (TypeError, ValueError):
            self._timeout = default_timeout
        self._verbose = bool(verbose)

    @property
    def address(self):
        return self._address

    @property
    def domain(self):
        return self._domain

    @property
    def username(self):
        return self._username

    @property
    def password(self):
        return self._password

    @property
    def clsid(self):
        return self._clsid

    @property
    def timeout(self):
        return self._timeout

    @property
    def verbose(self):
        return self._verbose

    def check(self):
        """ raises ConfigurationError when something needed to connect is missing """
        if not self._username or not self._password:
            raise ConfigurationError("missing credentials for server %s" % self._address)
        missing = [name for name in ('address', 'clsid') if not getattr(self, name)]
        if missing:
            raise ConfigurationError("missing %s in server configuration" % ", ".join(missing))
        return self

    def __repr__(self):
        # the password is not shown
        return "ConnectionConfiguration(address=%r, domain=%r, username=%r, clsid=%r)" % \
               (self._address, self._domain, self._username, self._clsid)


class ServerConnection:
    """
    Supervises the session to one server and the groups polling it.

    The connection is established by connect(). It is not retried automatically when it
    fails; instead a stalled group calls request_reconnect(). Status changes are passed
    to every group and fired on events.

    :param config: a ConnectionConfiguration. Checked on construction.
    :param client: the RemoteClient used to open sessions
    :param group_factory: creates groups in create_group()
    :param autostart: start connecting straight away, in connect_task. Needs a running event loop.
    """

    def __init__(self, config: ConnectionConfiguration, client: RemoteClient, group_factory=GroupSession,
                 autostart=False, log=logger):
        self.config = config.check()
        self.client = client
        self.events = EventSource()     # fired with the new status each time it changes
        self.groups = {}                # group name -> GroupSession
        self.logger = log
        self._group_factory = group_factory
        self._state = ConnectionState.disconnected
        self._status = ConnectionStatus.unknown
        self._session = None
        self._server = None
        self._reconnect_task = None
        self._closed = False
        client.events.add(self._client_events)
        self.connect_task = asyncio.ensure_future(self.connect()) if autostart else None

    @property
    def state(self):
        return self._state

    @property
    def online(self):
        return self._state == ConnectionState.online

    def get_status(self):
        return self._status

    def _update_status(self, status):
        if status == self._status:
            return
        self._status = status
        for group in list(self.groups.values()):
            group.on_server_status(status)
        self.events.fire(status)

    def _report(self, message, e):
        """ logs a server error, with the traceback when verbose or debugging """
        if self.config.verbose or self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s" % (message, e))
        else:
            self.logger.error("%s: %s" % (message, e))

    def _client_events(self, event):
        if isinstance(event, SessionLostEvent) and self._state != ConnectionState.disconnected:
            self.logger.warning("session to server %s was lost: %s" % (self.config.address, event.reason))
            self._state = ConnectionState.disconnected
            self._session = self._server = None
            self._update_status(ConnectionStatus.offline)

    async def connect(self):
        """
        Opens the session, instantiates the server and attaches every registered group.
        Failures are logged; the connection is left disconnected and offline.
        While a reconnect is running, waits for it instead.
        :return: True when the connection is online
        """
        if self._closed:
            return False
        reconnect = self._reconnect_task
        if reconnect is not None:
            await asyncio.shield(reconnect)
            return self.online
        if self._state != ConnectionState.disconnected:
            self.logger.warning("server %s is already %s" % (self.config.address, self._state))
            return self.online
        return await self._connect()

    async def _connect(self):
        config = self.config
        self._state = ConnectionState.connecting
        self._update_status(ConnectionStatus.connecting)
        try:
            self._session = await self.client.open_session(config.domain, config.username, config.password,
                                                            config.timeout)
            self._server = await self.client.create_server_object(self._session, config.clsid, config.address)
            await self._attach_all()
        except Exception as e:
            self._report("error connecting to server %s" % config.address, e)
            await self._disconnect()
            self._update_status(ConnectionStatus.offline)
            return False

        if self._closed:
            # shut down while connecting
            await self._disconnect()
            return False
        self._state = ConnectionState.online
        self.logger.info("connected to server %s" % config.address)
        self._update_status(ConnectionStatus.online)
        return True

    async def _attach(self, group):
        group_handle = await self._server.add_group(group.name, group.parameters)
        await group.update_instance(group_handle)

    async def _attach_all(self):
        """ attaches every group, including those registered while attaching the others """
        attached = []
        pending = list(self.groups.values())
        while pending:
            for group in pending:
                attached.append(group)
                if self.groups.get(group.name) is group:
                    await self._attach(group)
            pending = [g for g in self.groups.values() if not any(g is a for a in attached)]

    async def _attach_registered(self, group):
        try:
            await self._attach(group)
        except Exception as e:
            self._report("error adding group %s to server %s" % (group.name, self.config.address), e)
            return
        group.on_server_status(self._status)

    async def _disconnect(self):
        """ tears down the groups and releases the server object and session, best-effort """
        self._state = ConnectionState.disconnected
        server, session = self._server, self._session
        self._server = self._session = None
        for group in list(self.groups.values()):
            await group.teardown()
        if server is not None:
            try:
                await self.client.close_server_object(server)
            except Exception as e:
                self._report("error releasing server object of %s" % self.config.address, e)
        if session is not None:
            try:
                await self.client.close_session(session)
            except Exception as e:
                self._report("error closing session to %s" % self.config.address, e)

    def request_reconnect(self):
        """
        Schedules a teardown followed by a new connect. Requests made while a reconnect
        or a connect is already running, or after shutdown, are dropped.
        :return: the reconnect task, or None when the request was dropped
        """
        if self._closed:
            self.logger.debug("reconnect to %s ignored, connection is shut down" % self.config.address)
            return None
        if self._reconnect_task is not None:
            return None
        if self._state == ConnectionState.connecting:
            self.logger.debug("reconnect to %s ignored, already connecting" % self.config.address)
            return None
        self._reconnect_task = asyncio.ensure_future(self._reconnect())
        return self._reconnect_task

    async def _reconnect(self):
        try:
            self.logger.info("reconnecting to server %s" % self.config.address)
            await self._disconnect()
            if not self._closed:
                await self._connect()
        finally:
            self._reconnect_task = None

    @property
    def reconnecting(self):
        return self._reconnect_task is not None

    def register_group(self, group):
        """
        Adds a group to this connection. When the connection is already online the group is
        attached in a new task, which is returned.
        :raises DuplicateGroupError: when a group with the same name is registered
        """
        if group.name in self.groups:
            raise DuplicateGroupError("group %s is already registered with server %s" %
                                      (group.name, self.config.address))
        self.groups[group.name] = group
        if self.online:
            return asyncio.ensure_future(self._attach_registered(group))

    def create_group(self, config, **kwargs):
        """ creates a group that reconnects and unregisters through this connection, and registers it """
        group = self._group_factory(config, reconnect=self.request_reconnect, unregister=self.unregister_group,
                                    **kwargs)
        self.register_group(group)
        return group

    def unregister_group(self, group):
        if self.groups.get(group.name) is group:
            del self.groups[group.name]

    async def shutdown(self):
        """ Tears down every group and closes the session. Later reconnect requests are ignored. """
        self._closed = True
        self.client.events.remove(self._client_events)
        await self._disconnect()
        self._update_status(ConnectionStatus.unknown)
        self.logger.info("disconnected from server %s" % self.config.address)


async def browse_items(client: RemoteClient, config: ConnectionConfiguration, log=logger):
    """
    Lists the ids of every item the server exposes, using a session of its own.
    :raises ServerConnectionError: when the server cannot be browsed
    """
    config.check()
    session = server = browser = None
    try:
        session = await client.open_session(config.domain, config.username, config.password, config.timeout)
        server = await client.create_server_object(session, config.clsid, config.address)
        browser = await server.get_browser()
        return await browser.browse_all_flat()
    except ClientError as e:
        raise ServerConnectionError("unable to browse server %s: %s" % (config.address, e)) from e
    finally:
        for release, resource in ((lambda r: r.end(), browser),
                                  (client.close_server_object, server),
                                  (client.close_session, session)):
            if resource is None:
                continue
            try:
                await release(resource)
            except Exception as e:
                log.error("error releasing browse resources of %s: %s" % (config.address, e))
