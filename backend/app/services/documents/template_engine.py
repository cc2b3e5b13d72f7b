"""
Template Engine

Replaces $token placeholders in a stamp template. Tokens are a closed set:
a token is looked up in the variable map and nothing else. There are no
conditionals, loops or nested expansion, and substituted values are never
scanned again.

Unknown tokens are removed rather than left as "$token", so template syntax
can never leak into a court document. The image markers ($firma, $sello) are
layout instructions, not variables: they become image_marker() placeholders
for the layout engine. Values cannot produce a placeholder.
"""
import re
from typing import Dict, Iterable, List, Mapping

from ..errors import ValidationError
from .images import IMAGE_MARKERS, MARKER_DELIMITER, image_marker

TOKEN_PATTERN = re.compile(r"\$(\w+)")

# Expression-style syntax from other template languages. Rejected outright.
UNSUPPORTED_SYNTAX = re.compile(r"\$\{|\{\{|\{%")


def validate_template(template: str) -> None:
    if template is None or not str(template).strip():
        raise ValidationError("Template is empty")
    match = UNSUPPORTED_SYNTAX.search(template)
    if match:
        raise ValidationError(
            f"Unsupported template syntax '{match.group(0)}' at position {match.start()}; "
            "only $variable placeholders are allowed"
        )


def _compile(keys: Iterable[str]) -> re.Pattern:
    # Longest key first so "$rolId" can never be read as "$rol" + "Id".
    ordered = sorted({k for k in keys if k}, key=len, reverse=True)
    known = "|".join(re.escape(k) for k in ordered)
    if known:
        return re.compile(rf"\$(?:(?P<key>{known})(?!\w)|(?P<other>\w+))")
    return re.compile(r"\$(?P<other>\w+)")


def render_template(
    template: str,
    variables: Mapping[str, str],
    preserve: Iterable[str] = IMAGE_MARKERS,
) -> str:
    """
    Substitute every $token in one pass.

    Known keys take their mapped value, tokens named in ``preserve`` become
    image placeholders, any other token becomes "".
    """
    validate_template(template)
    keep = set(preserve)
    pattern = _compile(variables.keys())

    def _replace(match: re.Match) -> str:
        key = match.group("key") if "key" in pattern.groupindex else None
        if key is not None:
            value = variables.get(key)
            return "" if value is None else str(value).replace(MARKER_DELIMITER, "")
        if match.group("other") in keep:
            return image_marker(match.group("other"))
        return ""

    return pattern.sub(_replace, template)


def find_tokens(template: str) -> List[str]:
    """Distinct tokens used by a template, in order of first appearance."""
    seen: Dict[str, None] = {}
    for match in TOKEN_PATTERN.finditer(template or ""):
        seen.setdefault(match.group(1), None)
    return list(seen)


def unknown_tokens(
    template: str,
    variables: Mapping[str, str],
    preserve: Iterable[str] = IMAGE_MARKERS,
) -> List[str]:
    """Tokens the variable map cannot fill (they will render as "")."""
    keep = set(preserve)
    return [t for t in find_tokens(template) if t not in variables and t not in keep]
