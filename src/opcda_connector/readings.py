"""
Item readings and change detection.

A Reading is the value, quality and timestamp of one item as returned by a
synchronous read. has_changed() decides whether a new reading is worth
notifying about, given the reading previously cached for the same item.
"""


class Reading(object):
    """ The state of an item at the time it was read. Readings are not modified once created. """

    __slots__ = ('value', 'quality', 'timestamp', 'error_code')

    def __init__(self, value, quality, timestamp=None, error_code=0):
        """
        :param value: a scalar, or an ordered sequence of scalars for array items
        :param quality: the quality reported by the server
        :param timestamp: when the server sampled the value
        :param error_code: the status code for this item's read. 0 means success.
        """
        self.value = value
        self.quality = quality
        self.timestamp = timestamp
        self.error_code = error_code

    def __eq__(self, other):
        return isinstance(other, Reading) and \
            (self.value, self.quality, self.timestamp, self.error_code) == \
            (other.value, other.quality, other.timestamp, other.error_code)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return "Reading(value=%r, quality=%r, timestamp=%r, error_code=%r)" % \
               (self.value, self.quality, self.timestamp, self.error_code)


class ReadResult(object):
    """ One entry in the response to a synchronous read: the client handle of the item and its reading. """

    __slots__ = ('client_handle', 'reading')

    def __init__(self, client_handle, reading: Reading):
        self.client_handle = client_handle
        self.reading = reading

    def __repr__(self):
        return "ReadResult(%r, %r)" % (self.client_handle, self.reading)


class ItemChange(object):
    """ Payload of the changed channel: the item that changed and its new reading. """

    __slots__ = ('item_id', 'reading')

    def __init__(self, item_id, reading: Reading):
        self.item_id = item_id
        self.reading = reading

    def __eq__(self, other):
        return isinstance(other, ItemChange) and \
            (self.item_id, self.reading) == (other.item_id, other.reading)

    def __repr__(self):
        return "ItemChange(%r, %r)" % (self.item_id, self.reading)


def _is_sequence(value):
    return isinstance(value, (list, tuple))


def _strictly_equal(a, b):
    """
    Equality without the implicit conversions between booleans and numbers.
    Sequences nested inside a value only match when they are the same object.

    >>> _strictly_equal(1, True)
    False
    >>> _strictly_equal(1, 1.0)
    True
    >>> _strictly_equal([1], [1])
    False
    """
    if a is b:
        return True
    if _is_sequence(a) or _is_sequence(b):
        return False
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def values_equal(a, b):
    """
    Compares two item values.

    Scalars are compared with _strictly_equal. Two ordered sequences are equal
    when they have the same length and the elements at each position are strictly
    equal.

    >>> values_equal([1, 2, 3], [1, 2, 3])
    True
    >>> values_equal([1, 2, 3], [1, 2])
    False
    >>> values_equal(None, 0)
    False
    """
    if a is b:
        return True
    if a is None or b is None:
        return False
    if _is_sequence(a) and _is_sequence(b):
        if len(a) != len(b):
            return False
        for x, y in zip(a, b):
            if not _strictly_equal(x, y):
                return False
        return True
    return _strictly_equal(a, b)


def has_changed(previous: Reading, current: Reading):
    """
    Determines if an item changed between two readings.

    The timestamp and error code are not considered: a reading that only has a
    newer timestamp is not a change.
    :param previous: the cached reading, or None if the item was not read before
    :param current: the reading just received
    :return: True when the quality or the value differs
    """
    if previous is current:
        return False
    if previous is None or current is None:
        return True
    return previous.quality != current.quality or not values_equal(previous.value, current.value)
