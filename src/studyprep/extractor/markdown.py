"""Artifact writers: markdown with YAML frontmatter, or JSON.

The markdown form is meant for people: one section per chunk, each headed
with its page range, and the document-level metadata and topic list in YAML
frontmatter. The JSON form is the full ``model_dump`` of the artifact.

Public API:
    render_markdown(artifact, source_name)  -> str
    write_markdown_file(path, artifact, source_name)  -> None
    write_json_file(path, artifact)  -> None
    write_artifact(path, artifact, source_name)  -> None
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

import frontmatter

from studyprep.extractor.types import Chunk, ExtractionArtifact

logger = logging.getLogger(__name__)


def _chunk_title(index: int, chunk: Chunk) -> str:
    if chunk.page_start == chunk.page_end:
        pages = f"page {chunk.page_start}"
    else:
        pages = f"pages {chunk.page_start}-{chunk.page_end}"
    title = f"## Chunk {index} ({pages}, {chunk.extraction_method.value}"
    if chunk.confidence is not None:
        title += f", confidence {chunk.confidence:.0f}"
    return title + ")"


def render_markdown(artifact: ExtractionArtifact, source_name: str) -> str:
    """Render *artifact* as markdown text with YAML frontmatter.

    Frontmatter keys:

    - ``source_pdf``: Original PDF filename
    - ``extraction_date``: UTC ISO-8601 timestamp
    - ``total_pages``, ``chunk_count``, ``token_count``
    - ``topics``: Detected headings
    - every field of the artifact metadata
    """
    body = "\n\n".join(
        f"{_chunk_title(i, chunk)}\n\n{chunk.content}"
        for i, chunk in enumerate(artifact.chunks, start=1)
    )

    post = frontmatter.Post(body)
    post.metadata["source_pdf"] = source_name
    post.metadata["extraction_date"] = datetime.datetime.now(datetime.UTC).isoformat()
    post.metadata["total_pages"] = artifact.total_pages
    post.metadata["chunk_count"] = len(artifact.chunks)
    post.metadata["token_count"] = artifact.token_count
    post.metadata["topics"] = list(artifact.topics)
    post.metadata.update(artifact.metadata.model_dump(mode="json", exclude_none=True))
    return frontmatter.dumps(post)


def write_markdown_file(md_path: Path, artifact: ExtractionArtifact, source_name: str) -> None:
    """Write *artifact* to *md_path* as markdown with YAML frontmatter."""
    md_path.parent.mkdir(parents=True, exist_ok=True)

    with open(md_path, "w", encoding="utf-8") as f:
        f.write(render_markdown(artifact, source_name))

    logger.info(
        "Wrote extraction to %s (%d chunks, %d pages)",
        md_path.name,
        len(artifact.chunks),
        artifact.total_pages,
    )


def write_json_file(json_path: Path, artifact: ExtractionArtifact) -> None:
    """Write the full artifact record to *json_path*."""
    json_path.parent.mkdir(parents=True, exist_ok=True)
    json_path.write_text(artifact.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Wrote extraction record to %s", json_path.name)


def write_artifact(path: Path, artifact: ExtractionArtifact, source_name: str) -> None:
    """Write *artifact* as JSON for ``.json`` paths, markdown otherwise."""
    if path.suffix.lower() == ".json":
        write_json_file(path, artifact)
    else:
        write_markdown_file(path, artifact, source_name)
