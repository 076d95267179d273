"""Turn a raw first user message into a short session label.

The heuristic is deliberately loose: it peels URLs, paths and conversational
filler off the front of the first line, then tidies and truncates what is left.
"Can you check the logs" becomes "Logs", which is accepted behaviour.
"""

import re

DEFAULT_MAX_LENGTH = 35
ELLIPSIS = "…"

_URL_PATTERN = re.compile(r"https?://\S+\s*,?\s*")
_RELATIVE_PATH_PATTERN = re.compile(r"\.\.?/\S+\s*")
_LEADING_ABSOLUTE_PATH_PATTERN = re.compile(r"^/\S+\s*")

_TRIM_CHARS = ",.:;?-() \t"

_FILLER_PASSES = 3

# Order matters: within one pass each prefix sees the result of the previous strip
FILLER_PREFIXES = (
    "I want to ",
    "I'd like to ",
    "Can you ",
    "Could you ",
    "Please ",
    "Let's ",
    "We need to ",
    "Read ",
    "Take a look at ",
    "Go through ",
    "Given ",
    "Looking at ",
    "You're a ",
    "At github ",
    "I made ",
    "I have ",
    "I need ",
    "Help me ",
    "Show me ",
    "Find ",
    "Identify ",
    "Research ",
    "Change ",
    "Create ",
    "Build ",
    "Write ",
    "Run ",
    "Check ",
    "and ",
    "the ",
    "that ",
    "this ",
)


def _strip_fillers(line: str) -> str:
    for _ in range(_FILLER_PASSES):
        for prefix in FILLER_PREFIXES:
            if line.lower().startswith(prefix.lower()):
                line = line[len(prefix):]
    return line


def _truncate(line: str, max_length: int) -> str:
    if len(line) <= max_length:
        return line
    cut = line[:max_length]
    last_space = cut.rfind(" ")
    if last_space != -1:
        cut = cut[:last_space]
    return cut + ELLIPSIS


def extract_topic(message: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Extract a short topic from a user message.

    Args:
        message: Raw message text, possibly multi-line.
        max_length: Length above which the topic is truncated.

    Returns:
        A label of at most max_length characters plus an ellipsis, with the
        first letter capitalised. Empty when nothing meaningful remains.
    """
    if not message:
        return ""

    line = message.split("\n", 1)[0]
    line = _URL_PATTERN.sub("", line)
    line = _RELATIVE_PATH_PATTERN.sub("", line)
    line = _LEADING_ABSOLUTE_PATH_PATTERN.sub("", line, count=1)

    line = _strip_fillers(line)

    line = line.strip(_TRIM_CHARS)
    if line:
        line = line[0].upper() + line[1:]

    return _truncate(line, max_length)
