def to_normal_str(text):
    """
    Make sure we return a normal string, no matter if we got bytes or
    str.  CRLF is normalized to LF.
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = text.decode("utf-8", errors="replace")
    text = text.replace("\r\n", "\n")
    return text
