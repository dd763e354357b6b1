"""
Connection states and the status values reported to consumers.
"""


class ConnectionState(object):
    """ The states of a ServerConnection. """

    disconnected = 'disconnected'
    connecting = 'connecting'
    online = 'online'


class ConnectionStatus(object):
    """ The status reported on the group status channel and by get_status(). """

    unknown = 'unknown'
    connecting = 'connecting'
    online = 'online'
    badvalues = 'badvalues'
    offline = 'offline'

    all = (unknown, connecting, online, badvalues, offline)


class StatusIndicator(object):
    """
    What a host needs to render the status of a unit: the status itself and
    an optional hint, usually the last value read or written.
    """

    def __init__(self, status, hint=None):
        self.status = status
        self.hint = hint

    def __eq__(self, other):
        return isinstance(other, StatusIndicator) and \
            (self.status, self.hint) == (other.status, other.hint)

    def __repr__(self):
        return "StatusIndicator(%r, %r)" % (self.status, self.hint)


def status_indicator(status, value=None):
    """
    Builds the indicator for a status and last value. Only scalar values are
    kept as a hint; anything else (mappings, sequences, None) is dropped.
    Unrecognized statuses are reported as unknown.

    >>> status_indicator('online', 12)
    StatusIndicator('online', 12)
    >>> status_indicator('online', [1, 2])
    StatusIndicator('online', None)
    >>> status_indicator('bogus')
    StatusIndicator('unknown', None)
    """
    if status not in ConnectionStatus.all:
        status = ConnectionStatus.unknown
    hint = value if isinstance(value, (str, int, float, bool)) else None
    return StatusIndicator(status, hint)
