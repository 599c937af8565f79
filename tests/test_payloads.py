import pytest

from apiprobe.config import PayloadCategory, ProbeRequest, ProbeResponse
from apiprobe.core import evaluate_oracle
from apiprobe.errors import UnknownCategoryError
from apiprobe.payloads import (
    PAYLOAD_CORPUS,
    corpus_summary,
    custom_payload,
    get_payloads,
    load_payloads_file,
    parse_categories,
)

REQUEST = ProbeRequest(url="http://api.test/", method="GET")


def response(body="", status=200):
    return ProbeResponse(request=REQUEST, status_code=status, body=body)


def test_every_category_has_payloads():
    summary = corpus_summary()
    assert set(summary) == {c.value for c in PayloadCategory}
    assert all(count > 0 for count in summary.values())


def test_custom_payloads_do_not_touch_corpus():
    before = len(PAYLOAD_CORPUS[PayloadCategory.XSS])
    extra = [custom_payload("xss", "<b>x</b>"), custom_payload("injection", "1' --")]

    payloads = get_payloads("xss", extra)
    assert payloads[-1].value == "<b>x</b>"
    assert payloads[-1].custom
    assert len(payloads) == before + 1
    assert len(PAYLOAD_CORPUS[PayloadCategory.XSS]) == before


def test_duplicate_custom_payload_is_ignored():
    existing = PAYLOAD_CORPUS[PayloadCategory.XSS][0].value
    payloads = get_payloads(PayloadCategory.XSS, [custom_payload("xss", existing)])
    assert len(payloads) == len(PAYLOAD_CORPUS[PayloadCategory.XSS])


def test_category_parsing():
    assert parse_categories(["XSS", "injection", "xss"]) == [PayloadCategory.XSS, PayloadCategory.INJECTION]
    with pytest.raises(UnknownCategoryError):
        parse_categories(["xss", "ldap"])


def test_load_payloads_file(tmp_path):
    path = tmp_path / "xss.txt"
    path.write_text("# reflected\n<u>a</u>\n\n  # indented comment\n\"><svg>\n")

    payloads = load_payloads_file(path, "xss")
    assert [p.value for p in payloads] == ["<u>a</u>", "\"><svg>"]
    assert load_payloads_file(tmp_path / "missing.txt", "xss") == []


@pytest.mark.parametrize("category,body,status,payload", [
    (PayloadCategory.INJECTION, "You have an error in your SQL syntax", 200, "'"),
    (PayloadCategory.INJECTION, "Internal error", 500, "'"),
    (PayloadCategory.XSS, "hello <svg onload=alert(1)>", 200, "<svg onload=alert(1)>"),
    (PayloadCategory.TRAVERSAL, "root:x:0:0:root:/root:/bin/bash", 200, "../../etc/passwd"),
    (PayloadCategory.COMMAND, "uid=0(root) gid=0(root)", 200, "; id"),
    (PayloadCategory.XXE, "unexpected entity", 200, "<!ENTITY x>"),
    (PayloadCategory.FORMAT_STRING, "value: (null)", 200, "%s%s"),
    (PayloadCategory.FORMAT_STRING, "crash", 500, "%n%n"),
])
def test_oracles_match(category, body, status, payload):
    assert evaluate_oracle(category, response(body, status), payload).matched


@pytest.mark.parametrize("category,body,status,payload", [
    (PayloadCategory.INJECTION, '{"results": []}', 200, "' OR '1'='1"),
    (PayloadCategory.INJECTION, "Internal failure", 500, "'"),
    (PayloadCategory.XSS, "escaped &lt;svg&gt;", 200, "<svg onload=alert(1)>"),
    (PayloadCategory.TRAVERSAL, "x" * 2000, 200, "../../etc/passwd"),
    (PayloadCategory.COMMAND, "user id updated", 200, "; id"),
    (PayloadCategory.XXE, "unexpected entity", 400, "<!ENTITY x>"),
    (PayloadCategory.FORMAT_STRING, "ok", 200, "%s%s"),
])
def test_oracles_ignore_benign_responses(category, body, status, payload):
    assert not evaluate_oracle(category, response(body, status), payload).matched


def test_transport_error_never_matches():
    failed = ProbeResponse(request=REQUEST, transport_error=True, error="ConnectError")
    for category in PayloadCategory:
        assert not evaluate_oracle(category, failed, "<script>").matched
