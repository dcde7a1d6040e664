"""
Quick-add input parser for Tasker.

Turns one line of free text into a ParsedTaskInput. Four token families are
recognized, each introduced by a sigil:

    @  due date   "@today", "@next week", "@03/15/2024", "@2024-03-15"
    !  priority   "!1".."!4", "!low", "!medium", "!high", "!none"
    #  tag        "#errands" (single word)
    ~  list       "~work", "~side projects"

Tokenizing happens in a single regex pass that yields typed spans. Each
family is then resolved independently (the last occurrence wins), and every
span is cut out of the original string by offset to form the title. Tokens
that fail to resolve leave their field unset; parsing never raises.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from dateutil import parser as date_parser

from tasker.logging_config import get_logger
from tasker.models import ParsedTaskInput, Priority, Suggestion, SuggestionType
from tasker.utils.datetime_utils import (
    add_days,
    add_months,
    end_of_day,
    format_date,
    is_same_day,
    to_local_naive,
)

logger = get_logger(__name__)


class NamedRef(Protocol):
    """Anything with an id and a name (TaskList, Tag)."""

    id: str
    name: str


DUE_SIGIL = "@"
PRIORITY_SIGIL = "!"
TAG_SIGIL = "#"
LIST_SIGIL = "~"
SIGILS = DUE_SIGIL + PRIORITY_SIGIL + TAG_SIGIL + LIST_SIGIL

# A word is a run of characters that are neither whitespace nor a sigil.
_WORD = r"[^\s@!#~]+"
_WORDS = rf"{_WORD}(?:\s+{_WORD})*"

_TOKEN_PATTERN = re.compile(
    rf"@(?P<due>{_WORDS})"
    r"|!(?P<priority>(?i:[1-4]|low|medium|high|none))\b"
    r"|#(?P<tag>\w+)"
    rf"|~(?P<list>{_WORDS})"
)

_US_DATE_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")

PRIORITY_MAP: Dict[str, Priority] = {
    "1": Priority.LOW,
    "2": Priority.MEDIUM,
    "3": Priority.HIGH,
    "4": Priority.HIGH,
    "low": Priority.LOW,
    "medium": Priority.MEDIUM,
    "high": Priority.HIGH,
    "none": Priority.NONE,
}

DUE_DATE_KEYWORDS: Dict[str, Callable[[datetime], datetime]] = {
    "today": lambda now: now,
    "tomorrow": lambda now: add_days(now, 1),
    "next week": lambda now: add_days(now, 7),
    "next month": lambda now: add_months(now, 1),
}

PRIORITY_SUGGESTIONS = ["low", "medium", "high", "none"]


@dataclass(frozen=True)
class Token:
    """A typed span of the input string."""

    family: str
    value: str
    start: int
    end: int


def tokenize(text: str) -> List[Token]:
    """
    Scan text for every sigil token.

    Returns:
        Tokens in input order, with their spans in the original string
    """
    tokens = []
    for match in _TOKEN_PATTERN.finditer(text):
        family = match.lastgroup
        tokens.append(Token(family, match.group(family), match.start(), match.end()))
    return tokens


def parse(
    text: str,
    known_lists: Iterable[NamedRef] = (),
    now: Optional[datetime] = None,
) -> ParsedTaskInput:
    """
    Parse one line of quick-add text into a structured task intent.

    Args:
        text: Raw input line
        known_lists: Lists the '~' token may resolve against
        now: Reference time for relative due dates (defaults to local now)

    Returns:
        ParsedTaskInput; fields whose tokens are absent or unresolvable are None

    Example:
        >>> parsed = parse("Buy milk !high #errands")
        >>> parsed.title, parsed.priority, parsed.tags
        ('Buy milk', <Priority.HIGH: 'high'>, ['errands'])
    """
    if now is None:
        now = datetime.now()

    tokens = tokenize(text)
    by_family: Dict[str, List[str]] = {}
    for token in tokens:
        by_family.setdefault(token.family, []).append(token.value)

    result = ParsedTaskInput()

    if "priority" in by_family:
        result.priority = PRIORITY_MAP[by_family["priority"][-1].lower()]

    if "due" in by_family:
        result.due_date = resolve_due_date(by_family["due"][-1], now)

    if "tag" in by_family:
        result.tags = [name.lower() for name in by_family["tag"]]

    if "list" in by_family:
        result.list_id = resolve_list(by_family["list"][-1], known_lists)

    result.title = _strip_tokens(text, tokens)

    logger.debug(
        f"Parsed input: title='{result.title}', priority={result.priority}, "
        f"due_date={result.due_date}, tags={result.tags}, list_id={result.list_id}"
    )
    return result


def _strip_tokens(text: str, tokens: List[Token]) -> str:
    pieces = []
    cursor = 0
    for token in tokens:
        pieces.append(text[cursor:token.start])
        cursor = token.end
    pieces.append(text[cursor:])
    return " ".join("".join(pieces).split())


def resolve_due_date(value: str, now: datetime) -> Optional[datetime]:
    """
    Resolve the text of a '@' token into an end-of-day due date.

    Keywords are tried first, then numeric dates (MM/DD/YYYY, MM-DD-YYYY,
    YYYY-MM-DD), then a generic date parse.

    Returns:
        Due datetime at 23:59:59.999, or None if the text is not a date
    """
    key = " ".join(value.lower().split()).rstrip(".,;:")

    keyword = DUE_DATE_KEYWORDS.get(key)
    if keyword is not None:
        return end_of_day(keyword(now))

    numeric = _US_DATE_PATTERN.match(key)
    if numeric:
        month, day, year = (int(part) for part in numeric.groups())
        return _build_date(year, month, day)

    numeric = _ISO_DATE_PATTERN.match(key)
    if numeric:
        year, month, day = (int(part) for part in numeric.groups())
        return _build_date(year, month, day)

    try:
        parsed = date_parser.parse(key, default=now.replace(tzinfo=None))
    except (ValueError, OverflowError):
        logger.debug(f"Unrecognized due date text: '{value}'")
        return None
    return end_of_day(to_local_naive(parsed))


def _build_date(year: int, month: int, day: int) -> Optional[datetime]:
    # datetime() rejects days that don't exist in the month (e.g. 02/30)
    try:
        return end_of_day(datetime(year, month, day))
    except ValueError:
        logger.debug(f"Invalid calendar date: {year}-{month}-{day}")
        return None


def resolve_list(value: str, known_lists: Iterable[NamedRef]) -> Optional[str]:
    """
    Match the text of a '~' token against known list names.

    An exact (case-insensitive) name match wins over a substring match;
    within each pass the first list in order wins. Trailing sentence
    punctuation is ignored.

    Returns:
        Matching list id, or None
    """
    name = " ".join(value.lower().split()).rstrip(".,;:")
    if not name:
        return None
    candidates = list(known_lists)

    for task_list in candidates:
        if task_list.name.lower() == name:
            return task_list.id

    for task_list in candidates:
        if name in task_list.name.lower():
            return task_list.id

    logger.debug(f"No list matches '{value}'")
    return None


def suggest(
    text: str,
    known_lists: Iterable[NamedRef] = (),
    known_tags: Iterable[NamedRef] = (),
) -> Optional[Suggestion]:
    """
    Offer completions for the token being typed at the end of text.

    Only the last whitespace-delimited word is inspected. If it starts with
    a sigil, the candidates for that family are returned: fixed keyword
    lists for '@' and '!', live tag or list names for '#' and '~'.

    Returns:
        Suggestion, or None if the last word is not a sigil token
    """
    last_word = re.split(r"\s", text)[-1]
    if not last_word:
        return None

    sigil = last_word[0]
    if sigil == DUE_SIGIL:
        return Suggestion(type=SuggestionType.DUE_DATE, candidates=list(DUE_DATE_KEYWORDS))
    if sigil == PRIORITY_SIGIL:
        return Suggestion(type=SuggestionType.PRIORITY, candidates=list(PRIORITY_SUGGESTIONS))
    if sigil == TAG_SIGIL:
        return Suggestion(type=SuggestionType.TAG, candidates=[tag.name for tag in known_tags])
    if sigil == LIST_SIGIL:
        return Suggestion(type=SuggestionType.LIST, candidates=[lst.name for lst in known_lists])
    return None


def format_parsed_input(parsed: ParsedTaskInput, now: Optional[datetime] = None) -> str:
    """
    Render a parsed record back into quick-add syntax for previews.

    Example:
        >>> format_parsed_input(ParsedTaskInput(title="Pay rent", priority=Priority.HIGH))
        'Pay rent !high'
    """
    if now is None:
        now = datetime.now()

    formatted = parsed.title

    if parsed.priority and parsed.priority != Priority.NONE:
        formatted += f" !{parsed.priority.value}"

    if parsed.due_date:
        if is_same_day(parsed.due_date, now):
            formatted += " @today"
        elif is_same_day(parsed.due_date, add_days(now, 1)):
            formatted += " @tomorrow"
        else:
            formatted += f" @{format_date(parsed.due_date)}"

    if parsed.tags:
        formatted += " " + " ".join(f"#{tag}" for tag in parsed.tags)

    return formatted
