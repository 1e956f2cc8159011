"""
XML serialization of invoice document trees.
"""

from lxml import etree

from .document import Element, Leaf, Node

XML_ENCODING = "UTF-8"


def _to_etree(node: Node, parent=None) -> etree._Element:
    if parent is None:
        xml_node = etree.Element(node.name)
    else:
        xml_node = etree.SubElement(parent, node.name)

    for name, value in node.attrs.items():
        if not isinstance(value, str):
            raise TypeError(f"Attribute {node.name}@{name} must be a string, got {type(value).__name__}")
        xml_node.set(name, value)

    if isinstance(node, Leaf):
        if not isinstance(node.text, str):
            raise TypeError(f"Text of {node.name} must be a string, got {type(node.text).__name__}")
        xml_node.text = node.text
    else:
        for child in node.children:
            _to_etree(child, xml_node)

    return xml_node


def serialize(document: Element) -> str:
    """
    Render a document tree as indented UTF-8 XML with a declaration.

    Raises:
        TypeError: if a leaf text or attribute value is not a string
    """
    root = _to_etree(document)
    return etree.tostring(
        root,
        xml_declaration=True,
        encoding=XML_ENCODING,
        pretty_print=True,
    ).decode("utf-8")


def _from_etree(xml_node: etree._Element) -> Node:
    attrs = dict(xml_node.attrib)
    children = [child for child in xml_node if isinstance(child.tag, str)]
    if not children:
        return Leaf(name=xml_node.tag, text=(xml_node.text or "").strip(), attrs=attrs)
    return Element(name=xml_node.tag, children=[_from_etree(child) for child in children], attrs=attrs)


def deserialize(xml_text: str) -> Element:
    """
    Parse serialized invoice XML back into a document tree.

    Raises:
        ValueError: if the text is not well-formed or has no child elements
    """
    try:
        root = etree.fromstring(xml_text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise ValueError(f"Malformed invoice XML: {e}") from e

    document = _from_etree(root)
    if not isinstance(document, Element):
        raise ValueError(f"Invoice XML root <{root.tag}> has no child elements")
    return document
