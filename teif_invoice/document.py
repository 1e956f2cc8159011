"""
Invoice document tree.

A document is a tree of two node types: an Element holds named children,
a Leaf holds text. Both may carry attributes. Repeated children with the
same name render as sibling XML elements, in insertion order.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass
class Leaf:
    name: str
    text: str = ""
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class Element:
    name: str
    children: list["Node"] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)

    def add(self, *nodes: Optional["Node"]) -> "Element":
        """Append nodes, skipping None and empty elements. Returns self for chaining."""
        for node in nodes:
            if node is None:
                continue
            if isinstance(node, Element) and not node.children:
                continue
            self.children.append(node)
        return self

    def children_named(self, name: str) -> list["Node"]:
        return [child for child in self.children if child.name == name]

    def find(self, path: str) -> Optional["Node"]:
        """
        First node at a slash-separated path below this element.

        Example:
            document.find("InvoiceBody/Bgm/DocumentIdentifier")
        """
        node: Node = self
        for name in path.split("/"):
            if not isinstance(node, Element):
                return None
            matches = node.children_named(name)
            if not matches:
                return None
            node = matches[0]
        return node


Node = Union[Element, Leaf]


def leaf(name: str, text: Optional[str], **attrs: str) -> Optional[Leaf]:
    """A leaf, or None when the text is empty so optional fields drop out."""
    if not text:
        return None
    return Leaf(name=name, text=text, attrs=dict(attrs))


def element(name: str, *children: Optional[Node], **attrs: str) -> Element:
    return Element(name=name, attrs=dict(attrs)).add(*children)
