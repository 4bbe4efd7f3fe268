from __future__ import annotations

import re


_PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")
_SLUG_STRIP = re.compile(r"[^\w\s-]")
_SLUG_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_phone(raw: str) -> str | None:
    """
    Basic phone normalization and validation.

    Accepts digits and an optional leading '+'. Returns normalized phone
    (digits with optional '+') or None if the value looks invalid.
    """

    value = raw.strip().replace(" ", "").replace("-", "")
    if not _PHONE_REGEX.match(value):
        return None
    return value


def slugify(name: str) -> str:
    """
    URL slug for public profile pages: "Rahul  Sharma!" -> "rahul-sharma".
    """

    value = _SLUG_STRIP.sub("", name.lower().strip())
    value = _SLUG_SEPARATORS.sub("-", value)
    return value.strip("-")


def unique_slug(name: str, taken: set[str]) -> str:
    """
    Return the slug for `name`, suffixed with -1, -2, ... until it is not in `taken`.
    """

    base = slugify(name)
    slug = base
    counter = 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug
