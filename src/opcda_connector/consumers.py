"""
Bindings between a group and the pipeline that consumes it.

A GroupReader listens on a group's channels and turns readings into messages,
which are passed to a send callable. A GroupWriter does the reverse: each
message it is given is written to an item of the group.

Messages are plain dicts. A message for a single item looks like

    {'payload': 42, 'quality': 192, 'timestamp': ..., 'topic': 'Random.Int4'}

Both bindings optionally report a StatusIndicator to a status callable whenever
the group status changes or a message passes through.
"""
import asyncio
import logging

from opcda_connector.errors import ConfigurationError, describe_status_code
from opcda_connector.group import GroupChannels
from opcda_connector.status import ConnectionStatus, status_indicator

logger = logging.getLogger(__name__)


class ReadModes:
    all = 'all'                 # one message with the whole snapshot
    single = 'single'           # one message for the selected item
    all_split = 'all-split'     # one message per item

    modes = (all, single, all_split)


def reading_message(item_id, reading):
    msg = {
        'payload': reading.value,
        'quality': reading.quality,
        'timestamp': reading.timestamp,
        'topic': item_id
    }
    if reading.error_code:
        msg['error_code'] = reading.error_code
    return msg


class _GroupBinding:
    """ Subscription bookkeeping and status reporting shared by readers and writers. """

    def __init__(self, group, status=None, log=logger):
        self.group = group
        self.logger = log
        self._status = status
        self._subscriptions = []
        self._last_value = None
        self._subscribe(GroupChannels.status, self._on_group_status)
        self._show_status(group.get_status())

    def _subscribe(self, channel, handler):
        self.group.on(channel, handler)
        self._subscriptions.append((channel, handler))

    def _on_group_status(self, status):
        self._show_status(status)

    def _show_status(self, status):
        if self._status is not None:
            self._status(status_indicator(status, self._last_value))

    def close(self):
        """ stops listening to the group """
        for channel, handler in self._subscriptions:
            self.group.remove_listener(channel, handler)
        self._subscriptions = []


class GroupReader(_GroupBinding):
    """
    Sends the readings of a group.

    :param group: the GroupSession to read from
    :param send: called with each message
    :param mode: one of ReadModes. Unknown modes are read as ReadModes.all.
    :param item: the item to send in ReadModes.single
    :param diff: only send what changed since the previous cycle
    """

    def __init__(self, group, send, mode=ReadModes.all, item=None, diff=False, status=None, log=logger):
        if mode not in ReadModes.modes:
            mode = ReadModes.all
        if mode == ReadModes.single and not item:
            raise ConfigurationError("an item is required to read a single item of group %s" % group.name)
        self.send = send
        self.mode = mode
        self.item = item
        self.diff = diff
        super().__init__(group, status, log)

        if diff:
            if mode == ReadModes.all_split:
                self._subscribe(GroupChannels.changed, self._on_change)
            elif mode == ReadModes.single:
                self._subscribe(item, self._on_item)
            else:
                self._subscribe(GroupChannels.all_changed, self._on_snapshot)
        else:
            if mode == ReadModes.all_split:
                self._subscribe(GroupChannels.all, self._on_split)
            elif mode == ReadModes.single:
                self._subscribe(GroupChannels.all, self._on_select)
            else:
                self._subscribe(GroupChannels.all, self._on_snapshot)

    def _on_snapshot(self, snapshot):
        self._last_value = None
        self.send({'payload': snapshot})
        self._show_status(self.group.get_status())

    def _on_select(self, snapshot):
        reading = snapshot.get(self.item)
        if reading is not None:
            self._on_item(reading)

    def _on_item(self, reading):
        self._send_reading(self.item, reading, reading.value)

    def _on_split(self, snapshot):
        for item_id, reading in snapshot.items():
            self._send_reading(item_id, reading)

    def _on_change(self, change):
        self._send_reading(change.item_id, change.reading)

    def _send_reading(self, item_id, reading, hint=None):
        msg = reading_message(item_id, reading)
        if reading.error_code:
            self.logger.error("read of item '%s' returned error: %s" %
                              (item_id, describe_status_code(reading.error_code)))
            self.send(msg)
            self._show_status(ConnectionStatus.badvalues)
            return
        self._last_value = hint
        self.send(msg)
        self._show_status(self.group.get_status())


class GroupWriter(_GroupBinding):
    """
    Writes message payloads to the items of a group.

    :param item: the item to write. When not given, each message names its item under 'item'.
    """

    def __init__(self, group, item=None, status=None, log=logger):
        self.item = item
        super().__init__(group, status, log)

    def input(self, msg):
        """
        Writes msg['payload'] to the item. Messages without an item are ignored.
        :return: the task performing the write, or None
        """
        name = self.item or msg.get('item')
        if not name:
            self.logger.debug("ignoring message without an item for group %s" % self.group.name)
            return None
        value = msg.get('payload')
        self._last_value = value
        task = asyncio.ensure_future(self.group.write_var(name, value))
        self._show_status(self.group.get_status())
        return task
