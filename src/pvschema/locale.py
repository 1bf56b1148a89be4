"""
Contains the locale formatter which turns issues into human readable messages.
The locale table is process-wide state. It is consulted when a parse finishes, not when a schema is built.
"""
import dataclasses
import logging
from typing import Optional

from .errors import Issue, IssueCode
from .types import LocaleTable

_logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Invalid input"

_installed_locale: Optional[LocaleTable] = None


def configure_locale(locale: Optional[LocaleTable]) -> None:
    """
    Replaces the process-wide locale table. Pass `None` to uninstall it again; every issue will then render to
    `FALLBACK_MESSAGE`.
    """
    global _installed_locale  # pylint: disable=global-statement
    _installed_locale = locale
    if locale is None:
        _logger.debug("Locale uninstalled")
    else:
        _logger.debug("Installed locale with %d message renderers", len(locale))


def get_locale() -> Optional[LocaleTable]:
    """Returns the currently installed locale table or `None`"""
    return _installed_locale


def render_message(issue: Issue, locale: Optional[LocaleTable] = None) -> str:
    """
    Renders the message of a single issue using `locale` or, if omitted, the installed locale table.
    Codes missing in the table render to `FALLBACK_MESSAGE`.
    """
    if locale is None:
        locale = _installed_locale
    if locale is None:
        return FALLBACK_MESSAGE
    renderer = locale.get(issue.code)
    if renderer is None:
        return FALLBACK_MESSAGE
    return renderer(issue)


def finalize_issue(issue: Issue, locale: Optional[LocaleTable] = None) -> Issue:
    """
    Returns a copy of `issue` with its message rendered. Sub-issues of `invalid_union` issues are rendered as well.
    Issues which already carry a message (set by a custom check message) are left as they are.
    """
    if issue.code == IssueCode.INVALID_UNION and "errors" in issue.params:
        rendered_errors = tuple(
            tuple(finalize_issue(sub_issue, locale) for sub_issue in member_issues)
            for member_issues in issue.params["errors"]
        )
        issue = dataclasses.replace(issue, params=issue.params.set("errors", rendered_errors))
    if issue.message is not None:
        return issue
    return dataclasses.replace(issue, message=render_message(issue, locale))


def finalize_issues(issues: tuple[Issue, ...], locale: Optional[LocaleTable] = None) -> tuple[Issue, ...]:
    """Renders the messages of all issues, preserving their order"""
    return tuple(finalize_issue(issue, locale) for issue in issues)

