import os
import sys
import unittest
from unittest.mock import Mock

from configobj import ConfigObj, ConfigObjError
from hamcrest import assert_that, is_, equal_to, has_property, is_not, calling, raises, contains_string, \
    contains_exactly

from opcda_connector import group
from opcda_connector.config.config import configure_module, config_filename, config_flavor, load_config_file_base, \
    load_config, load_connection_config, connection_from_config, groups_from_config, map_os_name, fetch_conf_path, \
    apply_conf, apply_conf_path, fq_module_name
from opcda_connector.errors import ConfigurationError

min_update_rate = 100
max_deferred_cycles = 10
verbose = False
label = None

this_module = sys.modules[__name__]
here = os.path.dirname(__file__)


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        this_module.min_update_rate = 100
        this_module.max_deferred_cycles = 10
        this_module.verbose = False
        this_module.label = None

    def test_config_file_not_found(self):
        assert_that(calling(load_config_file_base).with_args('blah'), raises(IOError))

    def test_optional_config_file_not_found(self):
        assert_that(load_config_file_base('blah', must_exist=False), is_(equal_to(ConfigObj())))

    def test_config_file_invalid_syntax(self):
        assert_that(calling(load_config_file_base).with_args(os.path.join(here, 'config_test_invalid_syntax.cfg')),
                    raises(ConfigObjError, "Section too nested at line 1. at .*config_test_invalid_syntax.cfg"))

    def test_config_file_invalid_schema(self):
        assert_that(calling(load_config).with_args('config_test_invalid_schema', here),
                    raises(ConfigurationError, "the config file config_test_invalid_schema failed validation"))

    def test_validation_problems_are_listed(self):
        try:
            load_config('config_test_invalid_schema', here)
            self.fail("expected validation to fail")
        except ConfigurationError as e:
            assert_that(str(e), contains_string("limits.count: "))
            assert_that(str(e), contains_string("limits.level: missing value"))

    def test_can_retrieve_config_file(self):
        file = config_filename(config_flavor('config_test', "default"), here)
        assert_that(os.path.exists(file), is_(True), "expected config path %s to exist" % file)

    def test_layers_are_merged(self):
        conf = load_config('config_test', here)
        section = fetch_conf_path(conf, ['opcda_connector', 'config', 'config_test'])
        assert_that(section['label'], is_('plant'))
        assert_that(section['missing_value'], is_('1'))

    def test_can_apply_module(self):
        configure_module(this_module)
        assert_that(min_update_rate, is_(250))
        assert_that(max_deferred_cycles, is_(5))
        assert_that(verbose, is_(True))
        assert_that(label, is_('plant'))
        assert_that(this_module, is_not(has_property("missing_value")))

    def test_configure_module_with_name(self):
        configure_module(this_module, 'config_test_alt')
        assert_that(label, is_('alt'))
        assert_that(min_update_rate, is_(100))

    def test_configure_module_invalid_value(self):
        assert_that(calling(configure_module).with_args(this_module, 'config_test_bad_value'),
                    raises(ConfigurationError, "invalid value for min_update_rate"))

    def test_configure_group_module(self):
        saved = group.min_update_rate, group.max_deferred_cycles
        try:
            configure_module(group, 'tuning', here)
            assert_that(group.min_update_rate, is_(50))
            assert_that(group.max_deferred_cycles, is_(3))
            sut = group.GroupSession(group.GroupConfiguration("g"))
            assert_that(sut.min_update_rate, is_(50))
            assert_that(sut.max_deferred_cycles, is_(3))
        finally:
            group.min_update_rate, group.max_deferred_cycles = saved

    def test_fq_module_name(self):
        module = Mock()
        module.__name__ = 'one.two.three'
        module.__package__ = 'one.two'
        assert_that(fq_module_name(module), is_('one.two.three'))

    def test_fq_module_name_no_package(self):
        module = Mock()
        module.__package__ = None
        assert_that(calling(fq_module_name).with_args(module), raises(ConfigurationError, '.*no package'))

    def test_map_os_name(self):
        assert_that(map_os_name('Windows'), is_('windows'))
        assert_that(map_os_name('Darwin'), is_('osx'))
        assert_that(map_os_name('Linux'), is_('linux'))

    def test_non_existent_config_path(self):
        assert_that(fetch_conf_path(ConfigObj(), ['abcd']), is_(None))

    def test_non_existent_apply_config_path(self):
        target = Mock(spec=[])
        apply_conf_path(ConfigObj(), ['abcd'], target)
        assert_that(target, is_not(has_property('abcd')))

    def test_apply_conf_skips_sections(self):
        target = Mock(spec=['nested', 'value'])
        target.nested = 'untouched'
        target.value = None
        apply_conf(ConfigObj({'nested': {'a': '1'}, 'value': 'x'}), target)
        assert_that(target.nested, is_('untouched'))
        assert_that(target.value, is_('x'))


class ConnectionConfigTest(unittest.TestCase):

    def setUp(self):
        self.conf = load_connection_config('plant', here)

    def test_server(self):
        sut = connection_from_config(self.conf)
        assert_that(sut.address, is_('192.168.1.10'))
        assert_that(sut.domain, is_('PLANT'))
        assert_that(sut.username, is_('operator'))
        assert_that(sut.password, is_('secret'))
        assert_that(sut.clsid, is_('F8582CF2-88FB-11D0-B850-00C0F0104305'))
        assert_that(sut.timeout, is_(5000))
        assert_that(sut.verbose, is_(False))
        sut.check()

    def test_groups(self):
        boiler, tank = groups_from_config(self.conf)
        assert_that(boiler.name, is_('boiler'))
        assert_that(boiler.update_rate, is_(500))
        assert_that(boiler.active, is_(True))
        assert_that(boiler.items, contains_exactly('Boiler.Temperature', 'Boiler.Pressure'))
        assert_that(tank.name, is_('tank'))
        assert_that(tank.update_rate, is_(1000))
        assert_that(tank.deadband, is_(0.5))
        assert_that(tank.active, is_(False))
        assert_that(tank.items, contains_exactly('Tank.Level'))

    def test_invalid(self):
        try:
            load_connection_config('plant_invalid', here)
            self.fail("expected validation to fail")
        except ConfigurationError as e:
            assert_that(str(e), contains_string("server.timeout"))
            assert_that(str(e), contains_string("groups.boiler.update_rate"))

    def test_empty_configuration(self):
        conf = load_connection_config('nothing_here', here)
        assert_that(groups_from_config(conf), is_([]))
        sut = connection_from_config(conf)
        assert_that(sut.timeout, is_(7000))
        assert_that(calling(sut.check), raises(ConfigurationError))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
