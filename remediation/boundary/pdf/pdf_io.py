"""
PDF byte I/O helpers.

Documents travel through the blob store as bytes; these helpers open and
serialize them with pikepdf. Saves use deterministic document IDs so the
same input always produces the same bytes.

Dependencies: pikepdf
System role: Shared PDF (de)serialization for tasks and adapters
"""

import io
from collections.abc import Iterator

import pikepdf


def open_pdf(data: bytes) -> pikepdf.Pdf:
    """
    Open a PDF from bytes.

    Raises:
        pikepdf.PdfError: Bytes are not a readable PDF (includes encrypted files)
    """
    return pikepdf.open(io.BytesIO(data))


def save_pdf(pdf: pikepdf.Pdf) -> bytes:
    """Serialize a PDF to bytes with a deterministic /ID."""
    buffer = io.BytesIO()
    pdf.save(buffer, deterministic_id=True)
    return buffer.getvalue()


def tag_name(obj) -> str:
    """Return a PDF name value without its leading slash ('' when absent)."""
    if obj is None:
        return ""
    return str(obj).lstrip("/")


def as_dictionary(obj) -> pikepdf.Dictionary | None:
    """Return obj when it is a PDF dictionary, else None (malformed entries)."""
    return obj if isinstance(obj, pikepdf.Dictionary) else None


def as_list(value) -> list:
    """Children of a /K entry as a list; a single child becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, pikepdf.Array):
        return list(value)
    return [value]


def iter_struct_elements(struct_root) -> Iterator[pikepdf.Dictionary]:
    """
    Walk a structure tree depth-first, yielding structure elements.

    Marked-content ids and object references are skipped. Already visited
    elements are not revisited, which guards against malformed cycles.
    """
    if not isinstance(struct_root, pikepdf.Dictionary):
        return
    stack = [struct_root.get("/K")]
    seen: set[tuple[int, int]] = set()
    while stack:
        node = stack.pop()
        if node is None:
            continue
        if isinstance(node, pikepdf.Array):
            stack.extend(reversed(list(node)))
            continue
        if not isinstance(node, pikepdf.Dictionary):
            continue
        if tag_name(node.get("/Type")) in ("OBJR", "MCR"):
            continue
        if node.is_indirect:
            if node.objgen in seen:
                continue
            seen.add(node.objgen)
        if node.get("/S") is not None:
            yield node
        stack.append(node.get("/K"))


def page_images(page: pikepdf.Page) -> list[str]:
    """Names of image XObjects painted by a page, in resource order."""
    resources = page.obj.get("/Resources")
    if resources is None:
        return []
    xobjects = resources.get("/XObject")
    if xobjects is None:
        return []
    return [
        str(name)
        for name, xobject in xobjects.items()
        if tag_name(xobject.get("/Subtype")) == "Image"
    ]


def page_link_annotations(page: pikepdf.Page) -> list[pikepdf.Dictionary]:
    """Link annotations on a page, in /Annots order."""
    annots = page.obj.get("/Annots")
    if annots is None:
        return []
    return [annot for annot in annots if tag_name(annot.get("/Subtype")) == "Link"]


def link_uri(annot: pikepdf.Dictionary) -> str:
    """Target URI of a link annotation ('' for internal destinations)."""
    action = annot.get("/A")
    if action is None:
        return ""
    uri = action.get("/URI")
    return str(uri) if uri is not None else ""
