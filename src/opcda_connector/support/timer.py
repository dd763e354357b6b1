"""
Runs a callable periodically on the asyncio event loop.
"""
import asyncio
import logging

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """ Invokes a function at a fixed rate on the running event loop, much like setInterval.

        The next tick is scheduled before the function is called, so a slow or failing
        function does not change the rate. Exceptions raised by the function are logged
        and passed to exception_handler(); the timer keeps running.

        Calling stop() from within the function cancels the tick already scheduled.
    """

    def __init__(self, interval, fn, args=(), loop=None, log=logger):
        """
        :param interval the period in seconds
        :param fn the function to call on each tick
        :param args arguments to pass to fn
        :param loop the event loop. Defaults to the loop running when start() is called.
        """
        self.interval = interval
        self.fn = fn
        self.args = args
        self.logger = log
        self._loop = loop
        self._handle = None

    def start(self):
        """ Schedules the first tick one interval from now. Does nothing if already started. """
        if self._handle is None:
            if self._loop is None:
                self._loop = asyncio.get_running_loop()
            self._schedule()

    def _schedule(self):
        self._handle = self._loop.call_later(self.interval, self._tick)

    def _tick(self):
        self._schedule()
        try:
            self.fn(*self.args)
        except Exception as e:
            self.exception_handler(e)

    def exception_handler(self, e):
        self.logger.exception(e)

    def running(self):
        return self._handle is not None

    def stop(self):
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()
