import logging

from stocksync.core.logging_config import MASK, SecretMaskingFilter


def make_record(msg, *args):
    return logging.LogRecord("stocksync.test", logging.INFO, __file__, 1, msg, args, None)


def test_masks_configured_secrets():
    masking = SecretMaskingFilter(["shpat_abcdef123", None, ""])
    record = make_record("token=%s sent", "shpat_abcdef123")

    assert masking.filter(record) is True
    assert record.getMessage() == f"token={MASK} sent"


def test_leaves_clean_messages_alone():
    masking = SecretMaskingFilter(["shpat_abcdef123"])
    record = make_record("Stock for %s: %d -> %d", "P1", 10, 7)

    masking.filter(record)

    assert record.args == ("P1", 10, 7)
    assert record.getMessage() == "Stock for P1: 10 -> 7"


def test_ignores_short_values():
    masking = SecretMaskingFilter(["abc"])
    record = make_record("abc def")

    masking.filter(record)

    assert record.getMessage() == "abc def"
