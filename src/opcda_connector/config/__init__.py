""" Loading configuration files. """
