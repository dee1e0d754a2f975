"""
Delimited-text (CSV) tokenizer.

Dialect:
- `,` separates fields unless it sits inside double quotes;
- inside quotes, `""` stands for one literal `"`;
- whitespace outside quotes is trimmed, quoted text is kept verbatim.

One physical line is one record. A quoted field cannot contain a line
break; a quote left open at the end of a line is reported as an error
rather than glued onto the next line.
"""

from typing import Iterator, List, Tuple

from errors import DelimitedTextError


def parse_line(line: str) -> List[str]:
    """Split one line into its field strings."""

    fields: List[str] = []
    # (char, was_quoted) pairs so trimming can skip quoted whitespace
    chars: List[Tuple[str, bool]] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                chars.append(('"', True))
                i += 2
                continue
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            fields.append(_finish_field(chars))
            chars = []
        else:
            chars.append((ch, in_quotes))
        i += 1

    if in_quotes:
        raise DelimitedTextError("Unterminated quoted field")

    fields.append(_finish_field(chars))
    return fields


def _finish_field(chars: List[Tuple[str, bool]]) -> str:
    start, end = 0, len(chars)
    while start < end and not chars[start][1] and chars[start][0].isspace():
        start += 1
    while end > start and not chars[end - 1][1] and chars[end - 1][0].isspace():
        end -= 1
    return "".join(ch for ch, _ in chars[start:end])


def split_lines(text: str) -> Iterator[Tuple[int, str]]:
    """Yield `(line_number, line)` for every non-blank physical line.

    Line numbers are 1-based and count blank lines too, so they match
    what an editor shows for the same file.
    """

    for number, line in enumerate(text.splitlines(), start=1):
        if line.strip():
            yield number, line
