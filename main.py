"""studyprep -- command-line entry point.

Startup sequence:
    1. Load pipeline configuration (needed for log_dir and output_dir)
    2. Setup logging (must happen before any code that logs)
    3. Load extraction configuration, apply CLI overrides
    4. Run the extraction pipeline with a logging progress listener
    5. Write the artifact (markdown with frontmatter, or JSON)

Exit codes: 0 on success, 1 on a recoverable failure (retry may help),
2 on a fatal one (a different file is needed).

Usage:
    python main.py path/to/notes.pdf [--output out.md|out.json] [--max-tokens N]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from studyprep.config import ExtractionSettings, PipelineSettings
from studyprep.extractor import LoggingProgressListener, process_pdf_file
from studyprep.extractor.markdown import write_artifact
from studyprep.logging import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="studyprep",
        description="Extract, chunk, and index the text of a PDF for exam preparation.",
    )
    parser.add_argument("pdf", type=Path, help="PDF file to process")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output path (.json for JSON, anything else for markdown). "
        "Defaults to <output_dir>/<pdf stem>.md",
    )
    parser.add_argument("--max-tokens", type=int, default=None, help="Token budget per chunk")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Process one PDF and write its extraction artifact."""
    args = _parse_args(argv)

    # 1. Load pipeline config first -- needed for logging and output paths
    pipeline = PipelineSettings()

    # 2. Setup logging BEFORE anything else logs
    log_path = setup_logging(pipeline)
    logger.debug("Logging to %s", log_path)

    # 3. Extraction config with CLI overrides
    overrides = {}
    if args.max_tokens is not None:
        overrides["max_chunk_tokens"] = args.max_tokens
    extraction = ExtractionSettings(**overrides)

    logger.info(
        "Config loaded -- extraction: max_chunk_tokens=%s, min_digital_chars=%s, "
        "render_scale=%s, ocr_language=%s",
        extraction.max_chunk_tokens,
        extraction.min_digital_chars,
        extraction.render_scale,
        extraction.ocr_language,
    )

    if not args.pdf.is_file():
        logger.error("File not found: %s", args.pdf)
        return 2

    # 4. Run the pipeline
    outcome = asyncio.run(
        process_pdf_file(
            args.pdf,
            settings=extraction,
            listener=LoggingProgressListener(logger),
        )
    )

    if not outcome.ok:
        error = outcome.error
        logger.error("%s (%s)", error.message, error.kind.value)
        return 1 if error.recoverable else 2

    # 5. Write the artifact
    artifact = outcome.unwrap()
    output = args.output or Path(pipeline.output_dir) / f"{args.pdf.stem}.md"
    write_artifact(output, artifact, args.pdf.name)

    for warning in artifact.metadata.warnings or []:
        logger.warning("Warning: %s", warning)
    logger.info("Run complete -- %d chunks written to %s", len(artifact.chunks), output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
