import unittest
from unittest.mock import AsyncMock, Mock

from hamcrest import assert_that, is_, calling, raises, empty, none, has_entries, not_none, contains_string

from opcda_connector.consumers import GroupReader, GroupWriter, ReadModes, reading_message
from opcda_connector.errors import ConfigurationError
from opcda_connector.group import GroupChannels, GroupConfiguration, GroupSession
from opcda_connector.readings import ItemChange, Reading
from opcda_connector.status import ConnectionStatus, StatusIndicator


class ReadingMessageTest(unittest.TestCase):

    def test_message(self):
        assert_that(reading_message("A", Reading(5, 192, 1000)),
                    is_({'payload': 5, 'quality': 192, 'timestamp': 1000, 'topic': "A"}))

    def test_error_code(self):
        assert_that(reading_message("A", Reading(None, 0, 1000, 0xC0040007)),
                    has_entries(error_code=0xC0040007, topic="A"))


class GroupReaderTest(unittest.TestCase):

    def setUp(self):
        self.group = GroupSession(GroupConfiguration("g", items=("A", "B")))
        self.group.on_server_status(ConnectionStatus.online)
        self.send = Mock()
        self.status = Mock()
        self.logger = Mock()
        self.a = Reading(1, 192, 10)
        self.b = Reading(2, 192, 10)
        self.snapshot = {"A": self.a, "B": self.b}

    def reader(self, **kwargs):
        return GroupReader(self.group, self.send, status=self.status, log=self.logger, **kwargs)

    def emit(self, channel, *args):
        self.group.events.emit(channel, *args)

    def sent(self):
        return [c[0][0] for c in self.send.call_args_list]

    def test_initial_status(self):
        self.reader()
        self.status.assert_called_once_with(StatusIndicator(ConnectionStatus.online))

    def test_all(self):
        self.reader()
        self.emit(GroupChannels.all, self.snapshot)
        assert_that(self.sent(), is_([{'payload': self.snapshot}]))

    def test_all_diff(self):
        self.reader(diff=True)
        self.emit(GroupChannels.all, self.snapshot)
        self.send.assert_not_called()
        self.emit(GroupChannels.all_changed, self.snapshot)
        assert_that(self.sent(), is_([{'payload': self.snapshot}]))

    def test_single(self):
        self.reader(mode=ReadModes.single, item="B")
        self.emit(GroupChannels.all, self.snapshot)
        assert_that(self.sent(), is_([reading_message("B", self.b)]))
        self.status.assert_called_with(StatusIndicator(ConnectionStatus.online, 2))

    def test_single_missing_from_snapshot(self):
        self.reader(mode=ReadModes.single, item="C")
        self.emit(GroupChannels.all, self.snapshot)
        self.send.assert_not_called()

    def test_single_diff(self):
        self.reader(mode=ReadModes.single, item="A", diff=True)
        self.emit("B", self.b)
        self.emit("A", self.a)
        assert_that(self.sent(), is_([reading_message("A", self.a)]))

    def test_single_requires_item(self):
        assert_that(calling(self.reader).with_args(mode=ReadModes.single), raises(ConfigurationError))

    def test_split(self):
        self.reader(mode=ReadModes.all_split)
        self.emit(GroupChannels.all, self.snapshot)
        assert_that(self.sent(), is_([reading_message("A", self.a), reading_message("B", self.b)]))

    def test_split_diff(self):
        self.reader(mode=ReadModes.all_split, diff=True)
        self.emit(GroupChannels.changed, ItemChange("B", self.b))
        assert_that(self.sent(), is_([reading_message("B", self.b)]))

    def test_unknown_mode_reads_all(self):
        self.reader(mode="everything")
        self.emit(GroupChannels.all, self.snapshot)
        assert_that(self.sent(), is_([{'payload': self.snapshot}]))

    def test_reading_with_error(self):
        self.reader(mode=ReadModes.single, item="A", diff=True)
        self.emit("A", Reading(None, 0, 10, 0xC0040007))
        assert_that(self.sent()[0], has_entries(error_code=0xC0040007, topic="A"))
        assert_that(self.logger.error.call_args[0][0], contains_string("read of item 'A' returned error"))
        self.status.assert_called_with(StatusIndicator(ConnectionStatus.badvalues))

    def test_group_status(self):
        self.reader(mode=ReadModes.single, item="A", diff=True)
        self.emit("A", self.a)
        self.group.on_server_status(ConnectionStatus.offline)
        self.status.assert_called_with(StatusIndicator(ConnectionStatus.offline, 1))

    def test_close(self):
        sut = self.reader(mode=ReadModes.single, item="A", diff=True)
        sut.close()
        assert_that(self.group.events.channels(), is_(empty()))
        self.emit("A", self.a)
        self.send.assert_not_called()

    def test_without_status(self):
        GroupReader(self.group, self.send)
        self.emit(GroupChannels.all, self.snapshot)
        self.send.assert_called_once_with({'payload': self.snapshot})


class GroupWriterTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.group = GroupSession(GroupConfiguration("g", items=("A", "B")))
        self.group.write_var = AsyncMock()
        self.status = Mock()

    async def test_write_configured_item(self):
        sut = GroupWriter(self.group, "A", status=self.status)
        task = sut.input({'payload': 12, 'item': "B"})
        assert_that(task, is_(not_none()))
        await task
        self.group.write_var.assert_awaited_once_with("A", 12)
        self.status.assert_called_with(StatusIndicator(ConnectionStatus.unknown, 12))

    async def test_write_item_from_message(self):
        sut = GroupWriter(self.group)
        await sut.input({'payload': [1, 2], 'item': "B"})
        self.group.write_var.assert_awaited_once_with("B", [1, 2])

    async def test_message_without_item(self):
        sut = GroupWriter(self.group)
        assert_that(sut.input({'payload': 1}), is_(none()))
        self.group.write_var.assert_not_called()

    async def test_close(self):
        sut = GroupWriter(self.group, "A", status=self.status)
        sut.close()
        self.group.on_server_status(ConnectionStatus.online)
        self.status.assert_called_once_with(StatusIndicator(ConnectionStatus.unknown))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
