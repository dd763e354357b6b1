""" Support code that is not specific to OPC: events and timers. """
