"""
Installation verification by filesystem inspection.

A catalog entry lists candidate install locations as path templates with
environment-variable placeholders:

    %ProgramFiles%\\Git\\cmd\\git.exe
    ${env:LOCALAPPDATA}\\Programs\\Microsoft VS Code\\Code.exe
    $env:LOCALAPPDATA\\Discord\\app-*\\Discord.exe

The first template that resolves to an existing file proves the install.
A wildcard segment matches version-numbered directories; the highest
version is tried first, with numeric runs compared as numbers.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(
    r"%(?P<percent>[^%\\/]+)%"
    r"|\$\{env:(?P<braced>[^}]+)\}"
    r"|\$env:(?P<bare>\w+(?:\(x86\))?)",
    re.IGNORECASE,
)
_DRIVE = re.compile(r"^([A-Za-z]:)/*")
_WILDCARD_CHARS = ("*", "?", "[")
_DIGITS = re.compile(r"(\d+)")


@dataclass
class VerificationResult:
    """
    Result of verifying an installation.

    Attributes:
        success: Whether any candidate path exists
        matched_path: First existing path
        checked: Expanded candidates that were checked, in order
    """

    success: bool
    matched_path: Optional[Path] = None
    checked: List[str] = field(default_factory=list)


def expand_path_template(template: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Expand environment-variable placeholders in a path template.

    Supports %VAR%, ${env:VAR} and $env:VAR. Names are case-insensitive.
    Unknown variables are left in place, so the path will not exist.

    Args:
        template: Path template
        environ: Environment (defaults to os.environ)

    Returns:
        Expanded path string

    Example:
        >>> expand_path_template("%ProgramFiles%\\\\Foo", {"PROGRAMFILES": "C:\\\\Program Files"})
        'C:\\\\Program Files\\\\Foo'
    """
    env = {k.upper(): v for k, v in (os.environ if environ is None else environ).items()}

    def substitute(match: re.Match) -> str:
        name = match.group("percent") or match.group("braced") or match.group("bare")
        value = env.get(name.upper())
        if value is None:
            logger.debug(f"Unknown environment variable in path template: {name}")
            return match.group(0)
        return value

    return _PLACEHOLDER.sub(substitute, template)


def resolve_verification_path(path: str) -> Optional[Path]:
    """
    Find an existing file for an expanded path, honoring wildcards.

    Args:
        path: Expanded path, optionally with a wildcard segment

    Returns:
        Existing path, or None
    """
    anchor, parts = _split_path(path)
    if not parts:
        return None

    wildcard_index = next(
        (i for i, part in enumerate(parts) if any(c in part for c in _WILDCARD_CHARS)),
        None,
    )

    if wildcard_index is None:
        candidate = Path(anchor, *parts)
        return candidate if candidate.exists() else None

    base = Path(anchor, *parts[:wildcard_index]) if anchor or wildcard_index else Path(".")
    pattern = "/".join(parts[wildcard_index:])
    if not base.is_dir():
        return None

    # Newest version directory first
    matches = sorted(base.glob(pattern), key=_version_key, reverse=True)
    for candidate in matches:
        if candidate.exists():
            return candidate
    return None


def verify_installation(
    templates: Iterable[str], environ: Optional[Mapping[str, str]] = None
) -> VerificationResult:
    """
    Check candidate install locations in order.

    Args:
        templates: Path templates
        environ: Environment used for placeholder expansion

    Returns:
        VerificationResult with the first existing path
    """
    result = VerificationResult(success=False)
    for template in templates:
        expanded = expand_path_template(template, environ)
        result.checked.append(expanded)
        found = resolve_verification_path(expanded)
        if found is not None:
            logger.debug(f"Verification path found: {found}")
            result.success = True
            result.matched_path = found
            return result

    logger.debug(f"No verification path exists ({len(result.checked)} checked)")
    return result


def _version_key(path: Path):
    # app-1.10 sorts after app-1.9
    return [
        int(part) if index % 2 else part.lower()
        for index, part in enumerate(_DIGITS.split(str(path)))
    ]


def _split_path(path: str):
    normalized = path.replace("\\", "/")
    drive = _DRIVE.match(normalized)
    if drive:
        anchor = drive.group(1) + os.sep
        rest = normalized[drive.end():]
    elif normalized.startswith("/"):
        anchor = os.sep
        rest = normalized.lstrip("/")
    else:
        anchor = ""
        rest = normalized
    return anchor, [part for part in rest.split("/") if part]
