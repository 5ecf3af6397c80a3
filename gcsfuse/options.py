"""Parsing of mount(8)-style option strings."""


def parse_options(s: str) -> dict:
    """Parse "user,foo=bar=baz,qux" into a name-to-value mapping.

    The first equals sign separates name and value; there is no escaping.
    """
    result = {}
    for part in s.split(","):
        name, _, value = part.partition("=")
        result[name] = value
    return result