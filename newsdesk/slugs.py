import re

# Bosnian/Croatian/Serbian letters that have a plain ASCII base form.
_TRANSLITERATION = str.maketrans({"č": "c", "ć": "c", "đ": "d", "š": "s", "ž": "z"})

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_COLLAPSE_RE = re.compile(r"[\s-]+")


def generate_slug(title: str) -> str:
    """
    Return a URL-safe, lowercase slug derived from *title*.

    >>> generate_slug("Šta je novo u Čapljini?")
    'sta-je-novo-u-capljini'

    The result contains only ``[a-z0-9-]`` with no leading, trailing or
    doubled hyphens, and ``generate_slug(generate_slug(t)) == generate_slug(t)``.
    Uniqueness is the caller's concern.
    """
    slug = title.lower().translate(_TRANSLITERATION)
    slug = _SLUG_STRIP_RE.sub("", slug)
    slug = _SLUG_COLLAPSE_RE.sub(" ", slug).strip()
    return slug.replace(" ", "-")
