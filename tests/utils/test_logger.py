from utils.logger import Logger
from models.enums import LogCategory, LogLevel


def test_details_render_as_tree(capsys):
    logger = Logger(use_colors=False)
    logger.info(LogCategory.BUTTON, "Press accepted", button="17", presses=3)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].endswith("BUTTON    ✓ Press accepted")
    assert lines[1].strip() == "├─ button: 17"
    assert lines[2].strip() == "└─ presses: 3"


def test_min_level_filters(capsys):
    logger = Logger(min_level=LogLevel.WARN, use_colors=False)
    bound = logger.for_category(LogCategory.HARDWARE)
    bound.info("hidden")
    bound.debug("hidden too")
    bound.warn("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "HARDWARE  ⚠ shown" in out


def test_exc_info_appends_traceback(capsys):
    logger = Logger(use_colors=False).for_category(LogCategory.SYSTEM)
    try:
        raise RuntimeError("callback failed")
    except RuntimeError:
        logger.error("Dispatch failed", exc_info=True)

    out = capsys.readouterr().out
    assert "✗ Dispatch failed" in out
    assert "RuntimeError: callback failed" in out


def test_with_category_rebinds(capsys):
    logger = Logger(use_colors=False).for_category(LogCategory.SYSTEM)
    logger.with_category(LogCategory.CONFIG).info("loaded")
    assert "CONFIG" in capsys.readouterr().out
