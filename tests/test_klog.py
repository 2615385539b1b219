import logging

import pytest

from kubeletkit.klog import FieldMap, KlogLogger, new, process_fields, set_verbosity

BACKEND = "tests.klog"


@pytest.fixture
def verbosity():
    previous = set_verbosity(0)
    yield
    set_verbosity(previous)


@pytest.mark.parametrize(
    "fields, expected",
    [
        (None, ""),
        ({}, ""),
        ({"one": 1}, " [one=1]"),
        ({"one": 1, "two": 2}, " [one=1 two=2]"),
    ],
)
def test_field_map_string(fields, expected):
    fm = FieldMap(fields)
    assert fm.processed_fields == ""
    actual = str(fm)
    if fm.fields:
        assert fm.processed_fields == actual
    assert actual == expected


def test_field_map_computed_once():
    fm = FieldMap({"one": 1})
    first = str(fm)
    fm.fields["two"] = 2
    assert str(fm) == first


def test_process_fields_sorted():
    assert process_fields({"two": 2, "one": 1}) == " [one=1 two=2]"


def test_info_appends_fields(caplog):
    caplog.set_level(logging.DEBUG, logger=BACKEND)
    KlogLogger({"one": 1}, logging.getLogger(BACKEND)).info("hello")
    assert [r.getMessage() for r in caplog.records] == ["hello [one=1]"]
    assert caplog.records[0].levelno == logging.INFO


def test_formatted_levels(caplog):
    caplog.set_level(logging.DEBUG, logger=BACKEND)
    logger = KlogLogger({"one": 1}, logging.getLogger(BACKEND))
    logger.warnf("n=%d", 2)
    logger.errorf("s=%s", "x")
    assert [r.getMessage() for r in caplog.records] == ["n=2 [one=1]", "s=x [one=1]"]
    assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.ERROR]


def test_debug_gated_by_verbosity(caplog, verbosity):
    caplog.set_level(logging.DEBUG, logger=BACKEND)
    logger = KlogLogger({"k": "v"}, logging.getLogger(BACKEND))
    logger.debug("dbg")
    assert caplog.records == []
    set_verbosity(4)
    logger.debug("dbg")
    logger.debugf("%s", "dbg")
    assert [r.getMessage() for r in caplog.records] == ["dbg [k=v]", "dbg [k=v]"]


def test_with_fields_merges_without_mutating(caplog):
    caplog.set_level(logging.DEBUG, logger=BACKEND)
    base = KlogLogger({"one": 1}, logging.getLogger(BACKEND))
    child = base.with_fields({"one": 3, "two": 2})
    assert base.fields.fields == {"one": 1}
    assert child.fields.fields == {"one": 3, "two": 2}
    child.info("m")
    assert caplog.records[0].getMessage() == "m [one=3 two=2]"


def test_with_error_uses_err_key():
    err = ValueError("boom")
    logger = new({}).with_error(err)
    assert logger.fields.fields == {"err": err}
    assert str(logger.fields) == " [err=boom]"


def test_with_field_single():
    logger = new(None).with_field("one", 1)
    assert str(logger.fields) == " [one=1]"


def test_fatal_exits(caplog):
    caplog.set_level(logging.DEBUG, logger=BACKEND)
    logger = KlogLogger(None, logging.getLogger(BACKEND))
    with pytest.raises(SystemExit) as exc:
        logger.fatalf("bad %s", "thing")
    assert exc.value.code == 255
    assert caplog.records[0].levelno == logging.CRITICAL