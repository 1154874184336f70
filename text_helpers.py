import html
import re
from html.parser import HTMLParser


EMPTY_PARAGRAPH = "<p></p>"
SAFE_URL_PREFIXES = ("http://", "https://", "mailto:")


def _html_to_plain_text(raw_html: str) -> str:
    if not raw_html:
        return ""
    text = str(raw_html)
    text = re.sub(r"(?i)<\s*br\s*/?\s*>", "\n", text)
    text = re.sub(r"(?i)</\s*(p|div|li|h[1-6]|blockquote|pre)\s*>", "\n", text)
    text = re.sub(r"(?i)</\s*(ul|ol)\s*>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    text = text.replace("\r", "\n").replace("\xa0", " ")
    raw_lines = [line.rstrip() for line in text.split("\n")]
    cleaned_lines = []
    blank_streak = 0
    for line in raw_lines:
        if not line.strip():
            blank_streak += 1
            if blank_streak > 1:
                continue
            cleaned_lines.append("")
            continue
        blank_streak = 0
        cleaned_lines.append(re.sub(r"\s+", " ", line).strip())
    return "\n".join(cleaned_lines).strip()


class _NoteHTMLSanitizer(HTMLParser):
    """Keep the markup the rich-text editor emits; drop everything else."""

    _allowed_tags = {
        "p",
        "br",
        "ul",
        "ol",
        "li",
        "strong",
        "b",
        "em",
        "i",
        "u",
        "s",
        "del",
        "mark",
        "blockquote",
        "pre",
        "code",
        "h1",
        "h2",
        "h3",
        "span",
        "a",
        "img",
    }
    _void_tags = {"br", "img"}
    # Text inside these is dropped along with the tag.
    _dropped_content_tags = {"script", "style"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self._parts = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        tag = tag.lower()
        if tag in self._dropped_content_tags:
            self._skip_depth += 1
            return
        if tag not in self._allowed_tags:
            return
        attrs_dict = {name.lower(): (value or "") for name, value in attrs}
        clean_attrs = []
        if tag == "a":
            href = attrs_dict.get("href", "").strip()
            if href.lower().startswith(SAFE_URL_PREFIXES):
                clean_attrs.append(f'href="{html.escape(href, quote=True)}"')
                clean_attrs.append('target="_blank" rel="noopener noreferrer"')
        if tag == "img":
            src = attrs_dict.get("src", "").strip()
            if not src.lower().startswith(("http://", "https://")):
                return
            clean_attrs.append(f'src="{html.escape(src, quote=True)}"')
            alt = attrs_dict.get("alt", "").strip()
            if alt:
                clean_attrs.append(f'alt="{html.escape(alt, quote=True)}"')
        attr_text = f" {' '.join(clean_attrs)}" if clean_attrs else ""
        self._parts.append(f"<{tag}{attr_text}>")

    def handle_endtag(self, tag):
        tag = tag.lower()
        if tag in self._dropped_content_tags:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if tag in self._allowed_tags and tag not in self._void_tags:
            self._parts.append(f"</{tag}>")

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag.lower() in self._dropped_content_tags:
            self._skip_depth = max(0, self._skip_depth - 1)

    def handle_data(self, data):
        if data and not self._skip_depth:
            self._parts.append(html.escape(data, quote=False))

    def get_html(self) -> str:
        return "".join(self._parts).strip()


def _sanitize_note_html(raw_html: str) -> str:
    sanitizer = _NoteHTMLSanitizer()
    sanitizer.feed(raw_html or "")
    sanitizer.close()
    return sanitizer.get_html()


def is_blank_note_html(raw_html) -> bool:
    """True for empty content and the editor's lone empty paragraph."""
    value = (raw_html or "").strip()
    return value in ("", EMPTY_PARAGRAPH)


_EMPTY_ELEMENT_RE = re.compile(r"<(strong|b|em|i|u|s|del|mark|code|span|a|p|h[1-3]|li|ul|ol|blockquote|pre)\b[^>]*></\1>", re.I)


class _NoteHTMLSplitter(HTMLParser):
    """
    Cut note HTML at a text offset. Tags open at the cut are closed in the
    first half and reopened in the second; <br> counts as one character.
    """

    _void_tags = {"br", "img", "hr"}

    def __init__(self, offset):
        super().__init__(convert_charrefs=True)
        self._remaining = max(0, offset)
        self._open = []
        self.before = []
        self.after = []
        self._cut = False

    def _out(self):
        return self.after if self._cut else self.before

    def _cut_here(self):
        self._cut = True
        self.before.extend(f"</{tag}>" for tag, _ in reversed(self._open))
        self.after.extend(markup for _, markup in self._open)

    def handle_starttag(self, tag, attrs):
        tag = tag.lower()
        markup = self.get_starttag_text()
        if tag == "br" and not self._cut:
            if self._remaining == 0:
                # Enter on a line break: the break itself goes away.
                self._cut_here()
                return
            self._remaining -= 1
        self._out().append(markup)
        if tag not in self._void_tags:
            self._open.append((tag, markup))

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag.lower() not in self._void_tags and self._open:
            self._open.pop()

    def handle_endtag(self, tag):
        tag = tag.lower()
        if tag in self._void_tags:
            return
        for idx in range(len(self._open) - 1, -1, -1):
            if self._open[idx][0] == tag:
                del self._open[idx:]
                break
        self._out().append(f"</{tag}>")

    def handle_data(self, data):
        if not data:
            return
        if not self._cut and self._remaining < len(data):
            self.before.append(html.escape(data[:self._remaining], quote=False))
            self._cut_here()
            data = data[self._remaining:]
        elif not self._cut:
            self._remaining -= len(data)
        self._out().append(html.escape(data, quote=False))


def _finish_half(parts) -> str:
    value = "".join(parts)
    previous = None
    while previous != value:
        previous, value = value, _EMPTY_ELEMENT_RE.sub("", value)
    if not _html_to_plain_text(value) and "<img" not in value.lower():
        return ""
    return value.strip()


def split_note_html(raw_html: str, offset: int):
    """Split note HTML at a plain-text offset into (before, after), keeping inline markup."""
    splitter = _NoteHTMLSplitter(int(offset))
    splitter.feed(raw_html or "")
    splitter.close()
    return _finish_half(splitter.before), _finish_half(splitter.after)
