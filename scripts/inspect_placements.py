"""Print the rectangles of every image embedded in a PDF.

Rectangles are reported in native units with a bottom-left origin, the same
space signatures are baked into, so a saved document can be checked against
the placements that produced it.
"""

import sys
from pathlib import Path

import fitz  # PyMuPDF


def image_placements(pdf_bytes: bytes) -> list[dict]:
    """
    List embedded images per page with bottom-origin rectangles.

    Args:
        pdf_bytes: PDF document content

    Returns:
        One dict per image: page (1-based), x, y, width, height in points
    """
    placements = []
    pdf_doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        for page_num in range(len(pdf_doc)):
            page = pdf_doc[page_num]
            page_height = page.rect.height
            for info in page.get_image_info():
                x0, y0, x1, y1 = info["bbox"]
                placements.append(
                    {
                        "page": page_num + 1,
                        "x": x0,
                        "y": page_height - y1,
                        "width": x1 - x0,
                        "height": y1 - y0,
                    }
                )
    finally:
        pdf_doc.close()
    return placements


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print("Usage: python scripts/inspect_placements.py <pdf>")
        print("\nExample:")
        print("  python scripts/inspect_placements.py documents/dAbC123xyz.pdf")
        sys.exit(1)

    pdf_path = Path(sys.argv[1])
    if not pdf_path.exists():
        print(f"Error: PDF file not found: {pdf_path}")
        sys.exit(1)

    placements = image_placements(pdf_path.read_bytes())
    if not placements:
        print(f"No embedded images in {pdf_path}")
        return

    print(f"\n{len(placements)} image(s) in {pdf_path} (points, origin bottom-left):\n")
    for p in placements:
        print(
            f"  page {p['page']}: x={p['x']:.2f} y={p['y']:.2f} "
            f"w={p['width']:.2f} h={p['height']:.2f}"
        )


if __name__ == "__main__":
    main()
