"""This module defines logging capabilities for kubestrap."""

import logging
import sys
import time

from kubestrap.util.hue import (bad, red, info as infomsg, yellow, run, grey,
                                que, good, green)

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3

LEVEL_NAMES = {
    'quiet': 0,
    'error': 1,
    'warning': 2,
    'info': 3,
    'debug': 4}

# kubestrap verbosity -> Python logging level
_PYTHON_LEVELS = {1: logging.ERROR,
                  2: logging.WARNING,
                  3: logging.INFO,
                  4: logging.DEBUG}


def parse_level(level):
    """Turns a verbosity given as name or number into an int.

    Args:
        level (str or int): ``quiet``, ``error``, ``warning``, ``info``,
            ``debug`` or the matching number 0-4.

    Returns:
        The verbosity as int.

    Raises:
        ValueError if the level is unknown.
    """
    try:
        return LEVEL_NAMES[level]
    except (KeyError, TypeError):
        pass

    try:
        level = int(level)
    except (TypeError, ValueError):
        raise ValueError(f"log level {level} is not supported")

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")
    return level


def get_logger(name):
    """Returns a Python logger writing plain messages to STDOUT.

    Only a single handler is attached per logger name, so repeated calls
    don't duplicate output.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """

    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    if not log.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(sh)

    return log


def set_level(logger, level):
    """Sets the logging level of a Python logger.

    Level 0 disables the logger, 1-4 map to ERROR, WARNING, INFO
    and DEBUG.

    Args:
        logger: A Python logger object.
        level (int): The kubestrap verbosity.

    Raises:
        ValueError if log level is unsupported.
    """

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    if level == 0:
        logger.disabled = True
        return

    logger.disabled = False
    logger.setLevel(_PYTHON_LEVELS[level])


class Singleton(type):
    """Metaclass returning one instance per logger name.

    Calling ``Logger("a")`` twice returns the same object, while
    ``Logger("b")`` gets its own. Each module can therefore hold a
    module level ``LOGGER`` without adding handlers twice.

    Example:
        >>> log1 = Logger(__name__)
        >>> log2 = Logger(__name__)
        >>> id(log1) == id(log2)
        True
    """
    _instances = {}

    def __call__(cls, name, *args, **kwargs):
        key = (cls, name)
        if key not in cls._instances:
            cls._instances[key] = super(Singleton, cls).__call__(
                name, *args, **kwargs)
        else:
            cls._instances[key].__init__(name, *args, **kwargs)

        return cls._instances[key]


class Logger(metaclass=Singleton):
    """Colored logging for the command line.

    Before using, make sure to set Logger.LOG_LEVEL to the desired
    level, or call :meth:`Logger.set_global_level` to change the level
    of every logger already created.

    The different levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    All functions except for :meth:`.Logger.question` support ``f``-,
    ``%``-, and ``format``-Style formatting.

    Example:
        >>> log = Logger(__name__)
        >>> log.info("hello world")
        [~] hello world
        >>> log.success("%s joined", "k8s-worker-1")
        [+] k8s-worker-1 joined

    Attributes:
        LOG_LEVEL (int): The log level to be used across the application.

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL

    def __init__(self, name):
        self.name = name
        self.logger = get_logger(name)

    @classmethod
    def set_global_level(cls, level):
        """Changes the level for all loggers, present and future.

        Args:
            level (str or int): A level name or number.
        """
        level = parse_level(level)
        cls.LOG_LEVEL = level
        for (kls, _), inst in Singleton._instances.items():
            if issubclass(kls, cls):
                set_level(inst.logger, level)

    @property
    def level(self):
        """Returns the Python log level equivalent, 0 if disabled."""
        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        set_level(self.logger, parse_level(level))

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a message on error level, red with ``[-]`` if colored.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored.
        """

        if color:
            msg = bad(red(msg))

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, yellow with ``[!]`` if colored.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored.
        """

        if color:
            msg = infomsg(yellow(msg))

        self.logger.warning(msg, *args, **kwargs)

    def warn(self, msg, *args, color=True, **kwargs):
        """Alias for :meth:`.Logger.warning`."""

        self.warning(msg, *args, **kwargs, color=color)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, grey with ``[~]`` if colored.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored.
        """

        if color:
            msg = run(grey(msg))

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level.

        If colored, the message is grey with the current timestamp in
        brackets as prefix, e.g. ``[20190426-155611] test``.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored.
        """

        if color:
            now = time.strftime("%Y%m%d-%H%M%S")
            msg = grey(f"[{now}] {msg}")

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Indicates a success, printed on info level.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored green with ``[+]``.
        """

        if color:
            msg = good(green(msg))

        self.logger.info(msg, *args, **kwargs)

    @staticmethod
    def question(msg, color=True):
        """Outputs a question, regardless of the log level.

        This function does not support the %-formatting syntax.

        Args:
            msg (str): The message to be printed.
            color (bool): If the message should be prefixed with ``[?]``.
        """

        if color:
            msg = que(msg)

        print(msg)
