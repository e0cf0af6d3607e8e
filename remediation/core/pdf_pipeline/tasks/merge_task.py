"""
Merge task: enriched chunks -> one merged document.

All-or-nothing: every enriched chunk is loaded and validated against the
manifest before anything is assembled, and the merged key is written
only once the whole document has been serialized.

The structure tree is rebuilt rather than copied: each chunk's elements
are recreated under a single Document element and their page and
annotation references are pointed at the merged pages.

Dependencies: pikepdf
System role: Fan-in stage after all chunks succeeded
"""

import logging
from contextlib import ExitStack

import pikepdf

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.pdf.pdf_io import as_dictionary, as_list, open_pdf, save_pdf, tag_name
from remediation.core.exceptions import BlobNotFoundError, IncompleteMergeError

from ..keys import KeyLayout
from ..models import JobContext
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

_COPIED_TEXT_KEYS = ("/Alt", "/ActualText", "/T", "/Lang", "/E")


class MergeTask:
    """Concatenate a job's enriched chunks in manifest order."""

    def __init__(
        self,
        blob_store: BlobStore,
        layout: KeyLayout,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._layout = layout
        self._retry_policy = retry_policy or RetryPolicy()

    def merge(self, context: JobContext) -> str:
        """
        Merge every enriched chunk of the job.

        Args:
            context: Job context carrying the manifest

        Returns:
            str: Merged document key

        Raises:
            IncompleteMergeError: A chunk is missing, unreadable or has the
                wrong number of pages
        """
        manifest = context.require_manifest()
        merged_key = self._layout.merged_key(context.folder_path, context.base_name)

        with ExitStack() as stack:
            chunks = self._load_chunks(context, stack)

            try:
                merged = stack.enter_context(pikepdf.new())
                self._assemble(merged, chunks)
                payload = save_pdf(merged)
            except pikepdf.PdfError as e:
                raise IncompleteMergeError(f"Cannot assemble merged document: {e}") from e

        call_with_retry(
            self._blob_store.put,
            merged_key,
            payload,
            policy=self._retry_policy,
            operation="merge.write",
        )
        logger.info(
            f"{__name__}:merge - Merged {manifest.total_chunks} chunks "
            f"({manifest.page_count} pages)",
            extra={"job_id": context.job_id, "merged_key": merged_key},
        )
        return merged_key

    def _load_chunks(self, context: JobContext, stack: ExitStack) -> list[pikepdf.Pdf]:
        """Open every enriched chunk; collect all problems before failing."""
        manifest = context.require_manifest()
        chunks: list[pikepdf.Pdf] = []
        bad: list[int] = []
        problems: list[str] = []

        for descriptor in manifest.chunks:
            index = descriptor.chunk_index
            key = self._layout.enriched_key(context.folder_path, context.base_name, index)
            try:
                data, _ = call_with_retry(
                    self._blob_store.get,
                    key,
                    policy=self._retry_policy,
                    operation="merge.read_chunk",
                )
            except BlobNotFoundError:
                bad.append(index)
                problems.append(f"chunk {index} missing")
                continue

            try:
                pdf = stack.enter_context(open_pdf(data))
            except pikepdf.PdfError as e:
                bad.append(index)
                problems.append(f"chunk {index} unreadable ({e})")
                continue

            if len(pdf.pages) != descriptor.page_count:
                bad.append(index)
                problems.append(
                    f"chunk {index} has {len(pdf.pages)} pages, expected {descriptor.page_count}"
                )
                continue
            chunks.append(pdf)

        if bad:
            raise IncompleteMergeError(
                f"Cannot merge: {'; '.join(problems)}",
                missing_chunks=bad,
                details={"job_id": context.job_id},
            )
        return chunks

    def _assemble(self, merged: pikepdf.Pdf, chunks: list[pikepdf.Pdf]) -> None:
        page_map: dict[tuple[int, int], pikepdf.Object] = {}
        annot_map: dict[tuple[int, int], pikepdf.Object] = {}

        for chunk in chunks:
            offset = len(merged.pages)
            merged.pages.extend(chunk.pages)
            for position, page in enumerate(chunk.pages):
                target = merged.pages[offset + position]
                page_map[page.obj.objgen] = target.obj
                source_annots = page.obj.get("/Annots")
                target_annots = target.obj.get("/Annots")
                if source_annots is None or target_annots is None:
                    continue
                for annot, copied in zip(source_annots, target_annots):
                    if annot.is_indirect:
                        annot_map[annot.objgen] = copied

        first = chunks[0].Root
        merged.Root["/MarkInfo"] = pikepdf.Dictionary(Marked=True)
        if first.get("/Lang") is not None:
            merged.Root["/Lang"] = pikepdf.String(str(first.Lang))
        prefs = as_dictionary(first.get("/ViewerPreferences"))
        if prefs is not None and prefs.get("/DisplayDocTitle") is not None:
            merged.Root["/ViewerPreferences"] = pikepdf.Dictionary(
                DisplayDocTitle=bool(prefs.DisplayDocTitle)
            )

        struct_root = merged.make_indirect(pikepdf.Dictionary(Type=pikepdf.Name.StructTreeRoot))
        document = merged.make_indirect(
            pikepdf.Dictionary(
                Type=pikepdf.Name.StructElem,
                S=pikepdf.Name.Document,
                P=struct_root,
                K=pikepdf.Array(),
            )
        )
        struct_root["/K"] = document

        seen: set[tuple[int, int]] = set()
        for chunk in chunks:
            chunk_root = chunk.Root.get("/StructTreeRoot")
            if chunk_root is None:
                continue
            for node in _top_level_children(chunk_root):
                copied = _copy_node(merged, node, document, page_map, annot_map, seen)
                if copied is not None:
                    document["/K"].append(copied)

        merged.Root["/StructTreeRoot"] = struct_root


def _top_level_children(chunk_root) -> list:
    """Children of a chunk's Document element (or of the root itself)."""
    nodes = as_list(chunk_root.get("/K"))
    if len(nodes) == 1 and isinstance(nodes[0], pikepdf.Dictionary):
        if tag_name(nodes[0].get("/S")) == "Document":
            return as_list(nodes[0].get("/K"))
    return nodes


def _copy_node(merged, node, parent, page_map, annot_map, seen):
    """Recreate one structure node inside the merged document."""
    if isinstance(node, int):
        return node
    if not isinstance(node, pikepdf.Dictionary):
        return None

    node_type = tag_name(node.get("/Type"))
    if node_type == "OBJR":
        annot = node.get("/Obj")
        target = annot_map.get(annot.objgen) if annot is not None and annot.is_indirect else None
        if target is None:
            return None
        objr = pikepdf.Dictionary(Type=pikepdf.Name.OBJR, Obj=target)
        page = node.get("/Pg")
        if page is not None and page.objgen in page_map:
            objr["/Pg"] = page_map[page.objgen]
        return objr
    if node_type == "MCR":
        page = node.get("/Pg")
        if page is None or page.objgen not in page_map or node.get("/MCID") is None:
            return None
        return pikepdf.Dictionary(
            Type=pikepdf.Name.MCR, Pg=page_map[page.objgen], MCID=int(node.MCID)
        )

    if node.get("/S") is None:
        return None
    if node.is_indirect:
        if node.objgen in seen:
            return None
        seen.add(node.objgen)

    element = merged.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name.StructElem,
            S=pikepdf.Name(str(node.S)),
            P=parent,
        )
    )
    for key in _COPIED_TEXT_KEYS:
        if node.get(key) is not None:
            element[key] = pikepdf.String(str(node[key]))
    page = node.get("/Pg")
    if page is not None and page.objgen in page_map:
        element["/Pg"] = page_map[page.objgen]

    children = [
        copied
        for child in as_list(node.get("/K"))
        if (copied := _copy_node(merged, child, element, page_map, annot_map, seen)) is not None
    ]
    if len(children) == 1:
        element["/K"] = children[0]
    elif children:
        element["/K"] = pikepdf.Array(children)
    return element
