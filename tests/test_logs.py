import io

from dccnet.logs import LogLevel, configure, get_logger


def test_message_format():
    out = io.StringIO()
    configure(LogLevel.DEBUG, out)
    get_logger("test").info("hello")
    assert out.getvalue() == "INFO: hello\n"


def test_levels_below_threshold_are_dropped():
    out = io.StringIO()
    configure(LogLevel.ERROR, out)
    log = get_logger("test")
    log.info("quiet")
    log.warning("quiet too")
    log.error("loud")
    assert out.getvalue() == "ERROR: loud\n"


def test_disabled_drops_everything():
    out = io.StringIO()
    configure(LogLevel.DISABLED, out)
    get_logger().error("nothing")
    assert out.getvalue() == ""


def test_reconfigure_replaces_stream():
    first = io.StringIO()
    second = io.StringIO()
    configure(LogLevel.DEBUG, first)
    configure(LogLevel.DEBUG, second)
    get_logger("x").warning("once")
    assert first.getvalue() == ""
    assert second.getvalue() == "WARNING: once\n"


def test_level_order_decides_what_is_shown():
    out = io.StringIO()
    configure(LogLevel.WARNING, out)
    log = get_logger("order")
    log.debug("d")
    log.info("i")
    log.warning("w")
    log.error("e")
    assert out.getvalue() == "WARNING: w\nERROR: e\n"


def test_child_logger_shares_root():
    assert get_logger("frame").name.startswith(get_logger().name + ".")