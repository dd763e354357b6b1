"""
Group sessions: polling a set of items at a fixed rate.

A GroupSession is configured against a group subscription on the server each
time the server connection is (re)established. It adds its items, keeps the
client handle -> item id mapping, and then reads all items on every tick of
its timer. Each batch of readings is compared with the cached readings and
the differences are published on the group's channels.

Only one read is outstanding at a time. Ticks that arrive while a read is
still running, or while the server is not online, are counted as deferred.
Once more than max_deferred_cycles ticks in a row are deferred, the group
stops polling and asks the server connection to reconnect.
"""
import asyncio
import logging

from opcda_connector.client import ClientError, DataSource, GroupParameters, ItemDefinition, ItemWrite
from opcda_connector.errors import ConfigurationError, describe_status_code
from opcda_connector.readings import ItemChange, has_changed
from opcda_connector.status import ConnectionStatus
from opcda_connector.support.events import ChannelEvents
from opcda_connector.support.timer import PeriodicTimer

logger = logging.getLogger(__name__)

# module settings - see opcda_connector.config.config.configure_module
default_update_rate = 1000      # ms, used when the configured rate is not a number
min_update_rate = 100           # ms
max_deferred_cycles = 10


class GroupChannels:
    """
    The channels a group publishes on, besides the per-item channels which are
    named after the item id.
    """
    all = '__ALL__'                 # every cycle, the snapshot of all cached readings
    all_changed = '__ALL_CHANGED__'  # the same snapshot, only when something changed
    changed = '__CHANGED__'         # an ItemChange for each item that changed
    status = '__STATUS__'           # the server connection status


def _parse_number(value, convert, default):
    try:
        result = convert(value)
    except (TypeError, ValueError):
        return default
    return default if result != result else result  # NaN


class GroupConfiguration:
    """
    The static description of a group.

    :param name: unique within a server connection
    :param update_rate: the requested poll interval in ms
    :param deadband: passed to the server subscription as is
    :param active: inactive groups are added to the server but not polled
    :param items: the item ids to poll, in order
    """

    def __init__(self, name, update_rate=None, deadband=None, active=True, items=()):
        if not name:
            raise ConfigurationError("a group must have a name")
        self.name = name
        self.update_rate = _parse_number(update_rate, lambda v: int(float(v)), default_update_rate)
        self.deadband = max(_parse_number(deadband, float, 0), 0)
        self.active = bool(active)
        self.items = list(items)

    @property
    def parameters(self) -> GroupParameters:
        return GroupParameters(active=self.active, update_rate=self.update_rate, time_bias=0,
                               deadband=self.deadband)

    def __repr__(self):
        return "GroupConfiguration(%r)" % self.__dict__


class GroupSession:
    """
    The runtime state of one group.

    :param config: the GroupConfiguration
    :param reconnect: called without arguments when the group has stalled and the
        connection should be rebuilt. Typically ServerConnection.request_reconnect.
    :param unregister: called with this group on shutdown, to remove it from its server connection.
    :param timer_factory: creates the poll timer, given the interval in seconds and the callable.
    """

    def __init__(self, config: GroupConfiguration, reconnect=None, unregister=None, timer_factory=PeriodicTimer,
                 min_rate=None, max_deferred=None, describe_status=describe_status_code, log=logger):
        self.config = config
        self.events = ChannelEvents()
        self.logger = log
        self.min_update_rate = min_update_rate if min_rate is None else min_rate
        self.max_deferred_cycles = max_deferred_cycles if max_deferred is None else max_deferred
        self.update_rate = config.update_rate       # the effective rate, set on configure
        self._reconnect = reconnect
        self._unregister = unregister
        self._timer_factory = timer_factory
        self._describe_status = describe_status
        self._timer = None
        self._group = None
        self._item_manager = None
        self._sync_io = None
        self._status = ConnectionStatus.unknown
        self._online = False
        self._generation = 0
        self._read_in_progress = False
        self._read_deferred = 0
        self._reconnect_requested = False
        self._read_task = None
        self._cache = {}            # item id -> last Reading
        self._cache_generation = {}  # item id -> generation of the read that cached it
        self._reset_handles()

    def _reset_handles(self):
        self._client_handle_ptr = 1
        self._client_handles = {}   # client handle -> item id
        self._server_handles = []   # aligned with the items that were added successfully
        self._item_handles = {}     # item id -> server handle

    @property
    def name(self):
        return self.config.name

    @property
    def parameters(self) -> GroupParameters:
        return self.config.parameters

    @property
    def cache(self):
        return dict(self._cache)

    @property
    def server_handles(self):
        return tuple(self._server_handles)

    @property
    def client_handles(self):
        return dict(self._client_handles)

    @property
    def deferred_cycles(self):
        return self._read_deferred

    @property
    def read_in_progress(self):
        return self._read_in_progress

    @property
    def polling(self):
        return self._timer is not None and self._timer.running()

    def get_status(self):
        return self._status

    def on(self, channel, handler):
        self.events.on(channel, handler)
        return self

    def remove_listener(self, channel, handler):
        self.events.remove_listener(channel, handler)
        return self

    async def configure(self, group_handle):
        """
        Binds this group to a newly created group subscription, adds the items and starts polling.
        Failing to add items is not fatal: the group polls whatever was added.
        """
        self._stop_timer()
        self._generation += 1
        self._group = group_handle
        self._reset_handles()
        self._online = True
        self._read_in_progress = False
        self._read_deferred = 0
        self._reconnect_requested = False
        try:
            self._item_manager = await group_handle.get_item_manager()
            self._sync_io = await group_handle.get_sync_io()
            await self._add_items()
        except ClientError as e:
            self.logger.error("error setting up group %s: %s" % (self.name, e))
        # polling starts regardless, so items added later are picked up
        self._start_polling()

    async def _add_items(self):
        items = self.config.items
        if not items:
            self.logger.warning("group %s has no items" % self.name)
            return
        definitions = []
        for item_id in items:
            definitions.append(ItemDefinition(item_id, self._client_handle_ptr))
            self._client_handle_ptr += 1
        results = await self._item_manager.add(definitions)
        for definition, result in zip(definitions, results):
            if result.status_code != 0:
                self.logger.error("error adding item '%s' to group %s: %s" %
                                  (definition.item_id, self.name, self._describe_status(result.status_code)))
            else:
                self._server_handles.append(result.server_handle)
                self._client_handles[definition.client_handle] = definition.item_id
                self._item_handles[definition.item_id] = result.server_handle

    def _start_polling(self):
        rate = self.config.update_rate
        if rate < self.min_update_rate:
            self.logger.warning("update rate of group %s is below the minimum, using %dms" %
                                (self.name, self.min_update_rate))
            rate = self.min_update_rate
        self.update_rate = rate
        if self.config.active:
            self._timer = self._timer_factory(rate / 1000.0, self.cycle)
            self._timer.start()
            self.cycle()

    def _stop_timer(self):
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.stop()

    def cycle(self):
        """
        Called on each timer tick. Starts a read of all items, unless one is
        already running or the server is not online.
        """
        if self._online and not self._read_in_progress:
            if not self._server_handles:
                return
            self._read_in_progress = True
            self._read_deferred = 0
            self._read_task = asyncio.ensure_future(
                self._read(self._sync_io, list(self._server_handles), self._client_handles, self._generation))
        else:
            self._read_deferred += 1
            if self._read_deferred > self.max_deferred_cycles:
                self._stalled()

    def _stalled(self):
        if self._reconnect_requested:
            return
        self._reconnect_requested = True
        self.logger.warning("no response from server for group %s after %d cycles" %
                            (self.name, self._read_deferred))
        self._stop_timer()
        if self._reconnect is not None:
            self._reconnect()

    async def _read(self, sync_io, server_handles, client_handles, generation):
        try:
            results = await sync_io.read(DataSource.device, server_handles)
        except Exception as e:
            self._read_failed(e, generation)
            return
        try:
            self._read_complete(results, client_handles, generation)
        except Exception:
            self.logger.exception("error publishing readings of group %s" % self.name)

    def _read_failed(self, e, generation):
        if generation == self._generation:
            self._read_in_progress = False
        self.logger.error("error reading items of group %s: %s" % (self.name, e))

    def _read_complete(self, results, client_handles, generation):
        """
        Updates the cache with the readings and then notifies listeners.
        A read that was started before the group was torn down or reconfigured
        does not affect the current polling state. It still updates the cache, except
        for items that a read of a newer generation has already refreshed.
        """
        current = generation == self._generation
        if current:
            self._read_in_progress = False

        changes = []
        for result in results:
            item_id = client_handles.get(result.client_handle)
            if item_id is None:
                self.logger.warning("server replied with an unknown client handle %s in group %s" %
                                    (result.client_handle, self.name))
                continue
            if self._cache_generation.get(item_id, 0) > generation:
                continue    # already refreshed by a newer generation
            if has_changed(self._cache.get(item_id), result.reading):
                changes.append(ItemChange(item_id, result.reading))
            self._cache[item_id] = result.reading
            self._cache_generation[item_id] = generation

        snapshot = dict(self._cache)
        for change in changes:
            self.events.emit(change.item_id, change.reading)
            self.events.emit(GroupChannels.changed, change)
        self.events.emit(GroupChannels.all, snapshot)
        if changes:
            self.events.emit(GroupChannels.all_changed, snapshot)

        if current and self._read_deferred and self._online and self.polling:
            self.cycle()

    async def teardown(self):
        """ Stops polling and releases the server resources held by this group. """
        self._stop_timer()
        self._generation += 1
        self._reset_handles()
        self._online = False
        self._read_in_progress = False
        self._read_deferred = 0
        sync_io, item_manager, group = self._sync_io, self._item_manager, self._group
        self._sync_io = self._item_manager = self._group = None
        await self._release(sync_io, "synchronous I/O")
        await self._release(item_manager, "item manager")
        await self._release(group, "group subscription")

    async def _release(self, resource, description):
        if resource is None:
            return
        try:
            await resource.end()
        except Exception as e:
            self.logger.error("error releasing %s of group %s: %s" % (description, self.name, e))

    async def update_instance(self, group_handle):
        """ Replaces the group subscription, after a new connection to the server. """
        await self.teardown()
        await self.configure(group_handle)

    def on_server_status(self, status):
        self._status = status
        self._online = status == ConnectionStatus.online
        self.events.emit(GroupChannels.status, status)

    async def write_var(self, name, value):
        """
        Writes a value to one of the group's items. Problems are logged; nothing is returned.
        """
        sync_io = self._sync_io
        if sync_io is None or not self._online:
            self.logger.error("cannot write item '%s' of group %s: not connected" % (name, self.name))
            return
        server_handle = self._item_handles.get(name)
        if server_handle is None:
            self.logger.error("cannot write item '%s': it is not part of group %s" % (name, self.name))
            return
        try:
            codes = await sync_io.write([ItemWrite(server_handle, value)])
        except Exception as e:
            self.logger.error("error writing item '%s' of group %s: %s" % (name, self.name, e))
            return
        for code in codes:
            if code != 0:
                self.logger.error("write of item '%s' returned error: %s" % (name, self._describe_status(code)))

    async def shutdown(self):
        """ Removes the group from its server connection, releases its resources and clears the cache. """
        unregister = self._unregister
        self._unregister = None
        if unregister is not None:
            unregister(self)
        await self.teardown()
        self._cache.clear()
        self._cache_generation.clear()
