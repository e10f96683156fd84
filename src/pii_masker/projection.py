"""Text projection for structured (rich text) surfaces.

A structured source is a tree of ``Element`` nodes whose leaves are
``TextNode`` fragments.  ``project()`` flattens it into plain text plus one
``FragmentMapping`` per non-empty fragment:

    root = parse_html("<p>Mail <b>jane</b>@example.com</p><p>bye</p>")
    plain, mappings = project(root)
    plain                         # "Mail jane@example.com\\nbye"

Block elements and <br> insert a single newline that belongs to no
fragment, so consecutive mappings may have a one-character gap.  Mappings
are only valid until the tree is edited; re-project after every edit.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from html import escape
from typing import Iterator, NamedTuple, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .types import FragmentMapping

BLOCK_TAGS = frozenset({
    "p", "div", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "blockquote", "hr", "pre",
})
LINE_BREAK_TAG = "br"
VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})


@dataclass(eq=False)
class TextNode:
    """One text-bearing fragment.  Identity matters, equality is by object."""
    text: str = ""


@dataclass(eq=False)
class Element:
    tag: str
    attrs: list[tuple[str, str | None]] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)

    def append(self, child: Node) -> Node:
        self.children.append(child)
        return child


Node = Union[Element, TextNode]


class Projection(NamedTuple):
    plain_text: str
    mappings: list[FragmentMapping]


def _walk(node: Node) -> Iterator[Node]:
    """Pre-order, document-order traversal."""
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, Element):
            stack.extend(reversed(current.children))


def iter_text_nodes(root: Node) -> Iterator[TextNode]:
    for node in _walk(root):
        if isinstance(node, TextNode):
            yield node


def project(root: Node | None) -> Projection:
    """Flatten root into (plain_text, mappings).  Never mutates the tree."""
    if root is None:
        return Projection("", [])

    parts: list[str] = []
    mappings: list[FragmentMapping] = []
    length = 0
    ends_with_newline = False

    for node in _walk(root):
        if isinstance(node, TextNode):
            if not node.text:
                continue
            mappings.append(FragmentMapping(node, length, length + len(node.text)))
            parts.append(node.text)
            length += len(node.text)
            ends_with_newline = node.text.endswith("\n")
        else:
            tag = node.tag.lower()
            if tag == LINE_BREAK_TAG or tag in BLOCK_TAGS:
                if length > 0 and not ends_with_newline:
                    parts.append("\n")
                    length += 1
                    ends_with_newline = True

    return Projection("".join(parts), mappings)


def fragment_for_offset(
    mappings: list[FragmentMapping], offset: int
) -> tuple[TextNode, int] | None:
    """Translate a flat offset into (fragment, local offset).

    Returns None for offsets that fall on an inserted newline or outside
    every fragment.
    """
    for mapping in mappings:
        if mapping.start <= offset < mapping.end:
            return mapping.fragment, offset - mapping.start
    return None


# ---------------------------------------------------------------------------
# HTML in / out
# ---------------------------------------------------------------------------

def _convert(node: Tag, parent: Element) -> None:
    for child in node.children:
        if isinstance(child, PreformattedString):
            continue                      # comments, CDATA, doctype
        if isinstance(child, NavigableString):
            text = str(child)
            if parent.children and isinstance(parent.children[-1], TextNode):
                parent.children[-1].text += text
            else:
                parent.append(TextNode(text))
        elif isinstance(child, Tag):
            attrs = [
                (name, " ".join(value) if isinstance(value, list) else value)
                for name, value in child.attrs.items()
            ]
            _convert(child, parent.append(Element(child.name.lower(), attrs)))


def parse_html(markup: str) -> Element:
    """Parse an HTML fragment into a tree rooted at a synthetic '#root' element."""
    root = Element("#root")
    _convert(BeautifulSoup(markup, "html.parser"), root)
    return root


def to_html(node: Node) -> str:
    """Serialise a tree built by parse_html (or by hand) back to HTML."""
    if isinstance(node, TextNode):
        return escape(node.text, quote=False)
    inner = "".join(to_html(child) for child in node.children)
    if node.tag == "#root":
        return inner
    attrs = "".join(
        f" {name}" if value is None else f' {name}="{escape(value)}"'
        for name, value in node.attrs
    )
    if node.tag in VOID_TAGS:
        return f"<{node.tag}{attrs}>"
    return f"<{node.tag}{attrs}>{inner}</{node.tag}>"
