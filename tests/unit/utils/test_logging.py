import io
import logging

from miniapp_factory.utils.logging import EMOJI_MAP, get_logger, setup_logging


def _capture(level=logging.DEBUG) -> io.StringIO:
    buf = io.StringIO()
    setup_logging(level=level, stream=buf)
    return buf


def test_get_logger_namespaces_subsystems():
    assert get_logger("providers.fallback").name == "miniapp_factory.providers.fallback"
    assert get_logger("miniapp_factory.tools").name == "miniapp_factory.tools"


def test_formatter_adds_emoji_level_and_logger_name():
    buf = _capture()
    get_logger("unit").info("hello")

    out = buf.getvalue()
    assert EMOJI_MAP["INFO"] in out
    assert "[INFO    ]" in out
    assert "(miniapp_factory.unit) hello" in out


def test_formatter_appends_extra_fields():
    buf = _capture()
    get_logger("unit").info("chain built", extra={"steps": 3, "label": "groq:x"})

    out = buf.getvalue()
    assert "| steps=3 label='groq:x'" in out


def test_formatter_redacts_secret_extras():
    buf = _capture()
    get_logger("unit").warning(
        "calling provider", extra={"api_key": "sk-live-123", "auth_token": "abc"}
    )

    out = buf.getvalue()
    assert "sk-live-123" not in out
    assert "abc" not in out
    assert "api_key='***'" in out


def test_formatter_includes_exception_traceback():
    buf = _capture()
    try:
        raise ValueError("kaput")
    except ValueError:
        get_logger("unit").error("failed", exc_info=True)

    out = buf.getvalue()
    assert "Traceback" in out
    assert "ValueError: kaput" in out


def test_setup_logging_accepts_level_names_and_quiets_http_stack():
    buf = _capture(level="debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    get_logger("unit").debug("visible")
    assert "visible" in buf.getvalue()


def test_setup_logging_filters_below_level():
    buf = _capture(level=logging.WARNING)
    get_logger("unit").info("hidden")
    get_logger("unit").warning("shown")

    out = buf.getvalue()
    assert "hidden" not in out
    assert "shown" in out
