"""
Synchronous event delivery.

An EventSource keeps an ordered list of handlers and calls each one in turn.
ChannelEvents groups several event sources under channel names, so listeners
can subscribe to just the notifications they are interested in.
"""


class EventSource(object):
    """ An ordered list of handlers that are called when an event is fired. """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        # iterate over a copy so handlers may unsubscribe while being notified
        for handler in self.handlers():
            handler(*args, **kwargs)

    def fire_all(self, events):
        for e in events:
            self.fire(e)


class ChannelEvents(object):
    """
    A registry of named channels, each backed by an EventSource.

    Listeners subscribe with on(channel, handler) and unsubscribe with
    remove_listener(channel, handler). emit(channel, ...) calls the handlers of
    that channel only, in the order they were registered. Emitting on a channel
    nobody listens to does nothing.
    """

    def __init__(self):
        self._channels = {}     # channel name -> EventSource

    def on(self, channel, handler):
        source = self._channels.get(channel)
        if source is None:
            source = self._channels[channel] = EventSource()
        source.add(handler)
        return self

    def remove_listener(self, channel, handler):
        source = self._channels.get(channel)
        if source is not None:
            source.remove(handler)
            if not len(source):
                del self._channels[channel]
        return self

    def listeners(self, channel):
        source = self._channels.get(channel)
        return source.handlers() if source is not None else ()

    def channels(self):
        """ the names of the channels that presently have listeners """
        return tuple(self._channels)

    def emit(self, channel, *args, **kwargs):
        source = self._channels.get(channel)
        if source is not None:
            source.fire(*args, **kwargs)
