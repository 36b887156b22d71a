# backend/guest_invite/services/csv_rows.py
from typing import List


def parse_csv_line(line: str) -> List[str]:
    """
    Split one line of comma-delimited text into trimmed fields.

    - commas inside double quotes do not split
    - "" inside a quoted field is a literal quote
    - an unbalanced quote just keeps us "in quotes" until end of line
    """
    out: List[str] = []
    current: List[str] = []
    in_quotes = False

    i = 0
    n = len(line or "")
    while i < n:
        ch = line[i]

        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if ch == "," and not in_quotes:
            out.append("".join(current).strip())
            current = []
            i += 1
            continue

        current.append(ch)
        i += 1

    out.append("".join(current).strip())
    return out
