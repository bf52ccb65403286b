import hashlib
import hmac

import pytest

from bbnotify.utils import (
    ELLIPSIS,
    clean_html,
    short_hash,
    strip_markup,
    title_case,
    truncate,
    verify_signature,
)


def test_strip_markup_removes_tags():
    assert strip_markup("<b>hi</b> <i>there</i>") == "hi there"


def test_strip_markup_is_not_nesting_aware():
    # The first ">" closes the tag, whatever sits in the attribute.
    assert strip_markup('<a title="x>y">link</a>') == 'y">link'


@pytest.mark.parametrize("text", ["", "short", "x" * 10])
def test_truncate_keeps_text_within_limit(text):
    assert truncate(text, 10) == text


@pytest.mark.parametrize("length", [11, 50, 1000])
def test_truncate_cuts_long_text(length):
    text = "".join(chr(ord("a") + i % 26) for i in range(length))
    result = truncate(text, 10)
    assert len(result) == 10
    assert result.endswith(ELLIPSIS)
    assert result.count(ELLIPSIS) == 1
    assert result[:-1] == text[:9]


def test_truncate_default_limit_is_256():
    assert len(truncate("y" * 300)) == 256


def test_clean_html_strips_before_truncating():
    html = "<p>" + "z" * 1030 + "</p>"
    result = clean_html(html)
    assert len(result) == 1024
    assert not result.startswith("<")


def test_title_case():
    assert title_case(None) == "None"
    assert title_case(None, fallback="-") == "-"
    assert title_case("") == ""
    assert title_case("IN PROGRESS") == "In Progress"
    assert title_case("on hold") == "On Hold"
    assert title_case("mAjOr") == "Major"


def test_short_hash():
    assert short_hash("4f1c2d9e8b7a6") == "4f1c2d9"


def test_verify_signature():
    body = b'{"push": {}}'
    digest = hmac.new(b"s3cret", msg=body, digestmod=hashlib.sha256).hexdigest()
    assert verify_signature("s3cret", body, f"sha256={digest}") is True
    assert verify_signature("s3cret", body, "sha256=deadbeef") is False
    assert verify_signature("s3cret", body, None) is False
    assert verify_signature("s3cret", body, digest) is False
