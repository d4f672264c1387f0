"""
Offline attribute resolution over saved HTML pages.

Runs every file through parse -> resolve concurrently with asyncio.gather,
prints one line per page plus a per-field source report, and writes the
records to records.json.

    python main.py                       # all of data/*.html
    python main.py page.html --url https://shop.example/item/1
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

import orjson

from extractor import extract_attributes
from models import AttributeRecord, ResolutionTrace
from parser import parse_html

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
OUTPUT_FILE = Path(__file__).parent / "records.json"

TRACED_FIELDS = ["name", "price", "currency", "size", "image"]


async def process_file(filepath: Path, url: str | None = None) -> tuple[AttributeRecord, ResolutionTrace, float]:
    """Resolve one saved HTML page. Returns (record, trace, seconds)."""
    logger.info(f"Processing {filepath.name}...")
    html = await asyncio.to_thread(filepath.read_text, encoding="utf-8")

    t0 = time.monotonic()
    parsed = parse_html(html, url or filepath.resolve().as_uri())
    record, trace = extract_attributes(parsed)
    elapsed = time.monotonic() - t0

    logger.info(
        f"  Result: {record.name} | {record.price} {record.currency} | "
        f"size={record.size} | image={'yes' if record.image else '-'}"
    )
    return record, trace, elapsed


async def process_all(
    files: list[Path], url: str | None = None
) -> tuple[list[tuple[Path, AttributeRecord, ResolutionTrace, float]], int]:
    """Resolve all files concurrently. Returns (results, failure_count)."""
    logger.info(f"Found {len(files)} HTML files to process")
    results = await asyncio.gather(*[process_file(f, url) for f in files], return_exceptions=True)

    ok: list[tuple[Path, AttributeRecord, ResolutionTrace, float]] = []
    failures = 0
    for filepath, result in zip(files, results):
        if isinstance(result, Exception):
            logger.error(f"Failed to process {filepath.name}: {result}", exc_info=result)
            failures += 1
        else:
            record, trace, elapsed = result
            ok.append((filepath, record, trace, elapsed))
    return ok, failures


def print_report(results: list[tuple[Path, AttributeRecord, ResolutionTrace, float]], failures: int) -> None:
    """Print which source supplied each field, per page and in total."""
    n = len(results)
    print(f"\n{'='*70}")
    print("RESOLUTION REPORT")
    print(f"{'='*70}")
    print(f"  Files attempted:  {n + failures}")
    print(f"  Succeeded:        {n}")
    print(f"  Failed:           {failures}")

    if not results:
        print("\n  No successful resolutions to report on.")
        return

    print(f"\n── Field sources ──")
    print(f"  {'File':<25}" + "".join(f"{f:>12}" for f in TRACED_FIELDS) + f"{'Time':>9}")
    print(f"  {'-'*(25 + 12 * len(TRACED_FIELDS) + 9)}")
    for filepath, _, trace, elapsed in results:
        sources = trace.as_dict()
        print(
            f"  {filepath.name[:24]:<25}"
            + "".join(f"{(sources[f] or '-'):>12}" for f in TRACED_FIELDS)
            + f"{elapsed:>8.3f}s"
        )

    print(f"\n── Coverage ──")
    for f in TRACED_FIELDS:
        filled = sum(1 for _, _, trace, _ in results if trace.as_dict()[f])
        print(f"  {f:<10} {filled}/{n}")
    print(f"\n{'='*70}")


async def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Resolve product attributes from saved HTML pages")
    ap.add_argument("files", nargs="*", type=Path, help="HTML files (default: data/*.html)")
    ap.add_argument("--url", help="page URL used for link and relative image resolution")
    ap.add_argument("--output", type=Path, default=OUTPUT_FILE)
    args = ap.parse_args(argv)

    files = args.files or sorted(DATA_DIR.glob("*.html"))
    results, failures = await process_all(files, args.url)

    for filepath, record, _, _ in results:
        print(f"\n  {filepath.name}")
        print(f"    Name:     {record.name}")
        print(f"    Price:    {record.price} {record.currency or ''}")
        print(f"    Size:     {record.size}")
        print(f"    Image:    {record.image}")

    args.output.write_bytes(
        orjson.dumps([r.model_dump() for _, r, _, _ in results], option=orjson.OPT_INDENT_2)
    )
    logger.info(f"Wrote {len(results)} records to {args.output}")

    print_report(results, failures)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())
