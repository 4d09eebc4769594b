"""Validation and compilation of user-declared redirects, rewrites and headers."""

import json
import logging
import re
from typing import Any, Literal

from pageforge.errors import ConfigError
from pageforge.routing.path_to_regexp import path_to_regexp

logger = logging.getLogger(__name__)

RouteType = Literal["redirect", "rewrite", "header"]

PERMANENT_REDIRECT_STATUS = 308
TEMPORARY_REDIRECT_STATUS = 307
ALLOWED_STATUS_CODES = (301, 302, 303, 307, 308)

_REWRITE_DESTINATION_RE = re.compile(r"^(/|https://|http://)")


def get_redirect_status(route: dict[str, Any]) -> int:
    status = route.get("statusCode")
    if status:
        return int(status)
    return PERMANENT_REDIRECT_STATUS if route.get("permanent") else TEMPORARY_REDIRECT_STATUS


def _check_redirect(route: dict[str, Any]) -> tuple[list[str], bool]:
    problems: list[str] = []
    bad_status = False
    status = route.get("statusCode")
    if status and status not in ALLOWED_STATUS_CODES:
        bad_status = True
        problems.append("`statusCode` is not undefined or valid statusCode")
    if not isinstance(route.get("permanent"), bool) and not status:
        problems.append("`permanent` is not set to `true` or `false`")
    return problems, bad_status


def _check_header(route: dict[str, Any]) -> list[str]:
    headers = route.get("headers")
    if not isinstance(headers, list):
        return ["`headers` field must be an array"]
    problems: list[str] = []
    for header in headers:
        if not isinstance(header, dict):
            problems.append('`headers` items must be object with { key: "", value: "" }')
            break
        if not isinstance(header.get("key"), str):
            problems.append("`key` in header item must be string")
            break
        if not isinstance(header.get("value"), str):
            problems.append("`value` in header item must be string")
            break
    return problems


def _allowed_keys(kind: RouteType) -> set[str]:
    if kind == "header":
        return {"source", "headers"}
    if kind == "redirect":
        return {"source", "destination", "statusCode", "permanent"}
    return {"source", "destination"}


def check_custom_routes(routes: object, kind: RouteType) -> None:
    """Validate every rule; raise one ConfigError describing all invalid ones."""
    if not isinstance(routes, list):
        raise ConfigError(f"{kind}s must be an array, received {type(routes).__name__}")

    allowed = _allowed_keys(kind)
    messages: list[str] = []
    had_bad_status = False

    for route in routes:
        if not isinstance(route, dict):
            messages.append(
                f"The route {json.dumps(route)} is not a valid object with `source` and "
                "`destination`"
            )
            continue

        invalid_keys = [key for key in route if key not in allowed]
        problems: list[str] = []

        source = route.get("source")
        if not source:
            problems.append("`source` is missing")
        elif not isinstance(source, str):
            problems.append("`source` is not a string")
        elif not source.startswith("/"):
            problems.append("`source` does not start with /")

        if kind == "header":
            problems.extend(_check_header(route))
        else:
            destination = route.get("destination")
            if not destination:
                problems.append("`destination` is missing")
            elif not isinstance(destination, str):
                problems.append("`destination` is not a string")
            elif kind == "rewrite" and not _REWRITE_DESTINATION_RE.match(destination):
                problems.append("`destination` does not start with / for rewrite")

        if kind == "redirect":
            redirect_problems, bad_status = _check_redirect(route)
            problems.extend(redirect_problems)
            had_bad_status = had_bad_status or bad_status

        if isinstance(source, str) and source.startswith("/"):
            try:
                regex, _ = path_to_regexp(source, strict=True, delimiter="/")
                re.compile(regex, re.IGNORECASE)
            except ValueError as exc:
                problems.append(f"`source` parse failed: {exc}")
            except re.error as exc:
                problems.append(f"`source` does not compile to a valid regex: {exc}")

        if invalid_keys or problems:
            detail = ", ".join(problems)
            if invalid_keys:
                plural = "" if len(invalid_keys) == 1 else "s"
                joiner = "," if problems else ""
                detail += f"{joiner} invalid field{plural}: {','.join(invalid_keys)}"
            messages.append(f"{detail} for route {json.dumps(route, sort_keys=True)}")

    if not messages:
        return
    for message in messages:
        logger.error(message)
    plural = "" if len(messages) == 1 else "s"
    if had_bad_status:
        allowed_codes = ", ".join(str(code) for code in ALLOWED_STATUS_CODES)
        messages.append(f"Valid redirect statusCode values are {allowed_codes}")
    raise ConfigError(f"Invalid {kind}{plural} found:\n" + "\n".join(messages))


def build_custom_route(route: dict[str, Any], kind: RouteType) -> dict[str, Any]:
    """Return the manifest descriptor for one validated rule."""
    regex, _ = path_to_regexp(route["source"], strict=True, delimiter="/")
    descriptor = dict(route)
    if kind == "redirect":
        descriptor["statusCode"] = get_redirect_status(route)
        descriptor.pop("permanent", None)
    descriptor["regex"] = regex
    return descriptor
