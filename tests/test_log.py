import logging

from colorama import Fore

from log import ColoredFormatter, setup_logging


def make_record(name, level=logging.INFO, msg="Host %s is now ON."):
    return logging.LogRecord(name, level, __file__, 1, msg, ("worker1",), None)


def test_records_carry_simulated_date(env):
    env.run(until=12.5)
    formatter = ColoredFormatter(env)

    message = formatter.format(make_record("power_meter"))
    assert "[12.50] power_meter: Host worker1 is now ON." in message
    assert message.startswith(Fore.YELLOW)


def test_warnings_are_red_and_unknown_components_plain():
    formatter = ColoredFormatter()

    assert formatter.format(make_record("wms", logging.WARNING)).startswith(Fore.RED)
    assert formatter.format(make_record("datacenter")) == "[-] datacenter: Host worker1 is now ON."


def test_setup_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(logging.DEBUG)
        handler = setup_logging(logging.WARNING)
        assert root.handlers == [handler]
        assert root.level == logging.WARNING
        assert isinstance(handler.formatter, ColoredFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
