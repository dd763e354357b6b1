"""
Configuration files.

Configurations are read with configobj. A configuration called `plant` is assembled
from these files, later ones overriding earlier ones:

- plant.default.cfg
- plant.<os>.cfg, e.g. plant.windows.cfg
- ~/plant.cfg
- plant.cfg

and is then validated against a schema, by default plant.schema.cfg when it exists.

A connection configuration has a [server] section and a [groups] section with one
subsection per group:

    [server]
    address = 192.168.1.10
    clsid = F8582CF2-88FB-11D0-B850-00C0F0104305
    username = operator
    password = secret

    [groups]
    [[boiler]]
    update_rate = 500
    items = Boiler.Temperature, Boiler.Pressure
"""
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from configobj.validate import Validator, ValidateError

from opcda_connector.errors import ConfigurationError
from opcda_connector.group import GroupConfiguration
from opcda_connector.server import ConnectionConfiguration

# The default extension for configuration files
config_extension = '.cfg'

# the schema of connection configurations, shipped with this package
connection_schema = os.path.join(os.path.dirname(__file__), 'connection.schema' + config_extension)


def config_flavor(name, flavor=None):
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a single configuration file.
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an IOError is raised.
    :return: The ConfigObj instance for the file. Empty when the file doesn't exist.
    """
    if not must_exist and not os.path.exists(file):
        return ConfigObj()
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def describe_validation(config, result):
    """ lists the values that failed validation, one per line """
    problems = []
    for sections, key, error in flatten_errors(config, result):
        where = '.'.join(sections + ([key] if key is not None else []))
        if key is None:
            problems.append("section %s is missing" % where)
        else:
            problems.append("%s: %s" % (where, error or "missing value"))
    return "\n".join(problems)


def load_config(name, directory, schema=None):
    """
    Loads and merges all the configuration files for the given name, and validates the result.
    :param name:        the base name of the configuration files
    :param directory:   the location of the configuration files
    :param schema:      the configspec file to validate with. Defaults to <name>.schema.cfg
        in the directory, when present; otherwise the configuration is not validated.
    :raises ConfigurationError: when the configuration fails validation
    """
    if schema is None:
        schema = config_filename(config_flavor(name, 'schema'), directory)
        if not os.path.exists(schema):
            schema = None

    config = ConfigObj(configspec=schema) if schema else ConfigObj()
    for flavor in ('default', os_name()):
        config.merge(load_config_file_base(config_filename(config_flavor(name, flavor), directory), False))
    config.merge(load_config_file_base(os.path.expanduser('~/' + name + config_extension), False))
    config.merge(load_config_file_base(config_filename(name, directory), False))

    if schema:
        result = config.validate(Validator(), preserve_errors=True)
        if result is not True:
            raise ConfigurationError("the config file %s failed validation:\n%s" %
                                     (name, describe_validation(config, result)))
    return config


def load_connection_config(name, directory):
    """ loads a connection configuration, validated with the connection schema """
    return load_config(name, directory, connection_schema)


def connection_from_config(conf: Section) -> ConnectionConfiguration:
    server = conf.get('server') or {}
    return ConnectionConfiguration(address=server.get('address'), domain=server.get('domain'),
                                   username=server.get('username'), password=server.get('password'),
                                   clsid=server.get('clsid'), timeout=server.get('timeout', 7000),
                                   verbose=server.get('verbose', False))


def groups_from_config(conf: Section):
    """ builds a GroupConfiguration for each subsection of [groups], in file order """
    groups = conf.get('groups') or {}
    return [GroupConfiguration(name, update_rate=section.get('update_rate'), deadband=section.get('deadband'),
                               active=section.get('active', True), items=section.get('items', ()))
            for name, section in groups.items()]


def fetch_conf_path(conf: Section, path):
    """
    Retrieves a nested configuration section.
    :param path:   the names of the sections to descend through
    :return: The section, or None when any part of the path is missing.
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


_checks = {bool: 'boolean', int: 'integer', float: 'float'}


def apply_conf(conf: Section, target):
    """
    Sets the attributes of target that have a value in conf. Values are converted to the type
    of the attribute they replace when it is a bool, int or float.
    :raises ConfigurationError: when a value cannot be converted
    """
    validator = Validator()
    for k, v in conf.items():
        if isinstance(v, Section) or not hasattr(target, k):
            continue
        check = _checks.get(type(getattr(target, k)))
        if check:
            try:
                v = validator.check(check, v)
            except ValidateError as e:
                raise ConfigurationError("invalid value for %s: %s" % (k, e))
        setattr(target, k, v)


def apply_conf_path(conf: Section, path, target):
    conf = fetch_conf_path(conf, path)
    if conf:
        apply_conf(conf, target)


def fq_module_name(module):
    if not module.__package__:
        raise ConfigurationError('module %s has no package defined' % module.__name__)
    return module.__name__


def configure_module(module, config_name=None, directory=None):
    """
    Applies module level settings, e.g. the polling limits in opcda_connector.group.
    The settings are read from the configuration named after the module (or config_name),
    found in the module's directory (or directory), in the section nested after the module's
    fully qualified name:

        [opcda_connector]
        [[group]]
        min_update_rate = 200
    """
    fqname = fq_module_name(module)
    if not config_name:
        config_name = fqname.split('.')[-1]
    if directory is None:
        directory = os.path.dirname(module.__file__)
    conf = load_config(config_name, directory)
    apply_conf_path(conf, fqname.split('.'), module)
