from errors import EmptyInputError


def normalize_log_text(raw: str, max_chars: int) -> str:
    """Strip every line, drop blank ones and cap the result at ``max_chars``.

    When the text is too long the most recent lines are kept: leading lines
    are dropped whole, and only a single oversized last line is cut to its
    last ``max_chars`` characters.
    """
    lines = [line.strip() for line in (raw or "").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        raise EmptyInputError("Log content is empty")

    text = "\n".join(lines)
    if len(text) <= max_chars:
        return text

    kept = []
    size = 0
    for line in reversed(lines):
        # +1 for the joining newline
        added = len(line) + (1 if kept else 0)
        if size + added > max_chars:
            break
        kept.append(line)
        size += added

    if not kept:
        return lines[-1][-max_chars:]
    return "\n".join(reversed(kept))
