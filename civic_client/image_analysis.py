"""
Simulated civic-issue detection on photos.

There is no vision model here: detections are picked from keywords in the
reporter's description, placed at randomised spots typical for that kind of
problem, and outlined in red on a copy of the photo.
"""

import io
import random
import time

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from .errors import ImageAnalysisError
from .logging_config import get_logger

logger = get_logger(__name__)

RED = (255, 0, 0)
INNER_RED = (255, 51, 51)
DASH_RED = (255, 102, 102)
CORNER_SIZE = 20
LABEL_FONT_SIZE = 18
JPEG_QUALITY = 90

# (keywords, type, label, confidence, region)
DETECTION_RULES = [
    (("pothole", "road", "street", "crack"), "pothole", "Road Damage/Pothole", 0.85, "road"),
    (("garbage", "trash", "litter", "waste"), "garbage", "Garbage/Litter", 0.78, "garbage"),
    (("water", "flood", "drain", "puddle"), "waterlogging", "Water Accumulation", 0.82, "water"),
    (("light", "lamp", "pole", "electric"), "streetlight", "Damaged Streetlight", 0.75, "vertical"),
    (("broken", "damaged", "sign", "fence"), "infrastructure", "Infrastructure Damage", 0.80, "infrastructure"),
]

# region -> (x_min, x_span, y_min, y_span, w_min, w_span, h_min, h_span), fractions of the image
REGIONS = {
    "road": (0.2, 0.4, 0.5, 0.3, 0.15, 0.25, 0.1, 0.2),
    "garbage": (0.1, 0.8, 0.1, 0.8, 0.1, 0.25, 0.1, 0.25),
    "water": (0.1, 0.6, 0.4, 0.4, 0.2, 0.4, 0.1, 0.3),
    "vertical": (0.2, 0.6, 0.1, 0.3, 0.05, 0.15, 0.3, 0.4),
    "infrastructure": (0.1, 0.8, 0.1, 0.8, 0.15, 0.3, 0.15, 0.3),
    "secondary": (0.5, 0.3, 0.1, 0.4, 0.1, 0.2, 0.1, 0.2),
    "general": (0.25, 0.3, 0.25, 0.3, 0.2, 0.25, 0.2, 0.25),
}


def bounding_box(width, height, region, rng=random):
    x0, xs, y0, ys, w0, ws, h0, hs = REGIONS.get(region, REGIONS["general"])
    box_w = width * (w0 + rng.random() * ws)
    box_h = height * (h0 + rng.random() * hs)
    x = width * (x0 + rng.random() * xs)
    y = height * (y0 + rng.random() * ys)
    # keep the box inside the image
    x = max(0, min(x, width - box_w))
    y = max(0, min(y, height - box_h))
    return {"x": x, "y": y, "width": box_w, "height": box_h}


def detect_issues(width, height, description="", rng=random):
    """Detections for an image of the given size. Always at least two."""
    text = (description or "").lower()
    detections = []
    for keywords, kind, label, confidence, region in DETECTION_RULES:
        if any(k in text for k in keywords):
            detections.append({
                "type": kind,
                "label": label,
                "confidence": confidence,
                "bbox": bounding_box(width, height, region, rng),
            })

    if not detections:
        detections.append({
            "type": "general",
            "label": "Civic Issue Detected",
            "confidence": 0.72,
            "bbox": bounding_box(width, height, "general", rng),
        })
        detections.append({
            "type": "secondary",
            "label": "Additional Issue Area",
            "confidence": 0.68,
            "bbox": bounding_box(width, height, "secondary", rng),
        })
    elif len(detections) == 1:
        detections.append({
            "type": "additional",
            "label": "Secondary Issue",
            "confidence": 0.70,
            "bbox": bounding_box(width, height, "secondary", rng),
        })
    return detections


def _dashed_rectangle(draw, x0, y0, x1, y1, fill, width=2, dash=5):
    edges = [((x0, y0), (x1, y0)), ((x1, y0), (x1, y1)), ((x1, y1), (x0, y1)), ((x0, y1), (x0, y0))]
    for (ax, ay), (bx, by) in edges:
        length = max(abs(bx - ax), abs(by - ay))
        if length == 0:
            continue
        pos = 0
        while pos < length:
            end = min(pos + dash, length)
            draw.line(
                [(ax + (bx - ax) * pos / length, ay + (by - ay) * pos / length),
                 (ax + (bx - ax) * end / length, ay + (by - ay) * end / length)],
                fill=fill, width=width,
            )
            pos += dash * 2


def draw_outline(draw, bbox):
    x, y, w, h = bbox["x"], bbox["y"], bbox["width"], bbox["height"]
    draw.rectangle([x, y, x + w, y + h], outline=RED, width=6)
    if w > 4 and h > 4:
        draw.rectangle([x + 2, y + 2, x + w - 2, y + h - 2], outline=INNER_RED, width=3)

    c = CORNER_SIZE
    for points in (
        [(x, y + c), (x, y), (x + c, y)],
        [(x + w - c, y), (x + w, y), (x + w, y + c)],
        [(x, y + h - c), (x, y + h), (x + c, y + h)],
        [(x + w - c, y + h), (x + w, y + h), (x + w, y + h - c)],
    ):
        draw.line(points, fill=RED, width=8, joint="curve")

    _dashed_rectangle(draw, x - 3, y - 3, x + w + 3, y + h + 3, DASH_RED)


def label_text(label, confidence):
    return f"{label} ({round(confidence * 100)}%)"


def draw_label(draw, font, x, y, label, confidence):
    text = label_text(label, confidence)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    text_w = right - left
    text_h = 24
    padding = 8
    # too close to the top edge: put the label below the box corner
    label_y = y + 50 if y < 35 else y

    box = [x - padding, label_y - text_h, x + text_w + padding, label_y + padding]
    shadow = [v + 2 for v in box]
    draw.rectangle(shadow, fill=(0, 0, 0, 128))
    draw.rectangle(box, fill=(255, 0, 0, 242), outline=(255, 255, 255), width=2)
    draw.text((x + 1, label_y - text_h + 3), text, font=font, fill=(0, 0, 0, 77))
    draw.text((x, label_y - text_h + 2), text, font=font, fill=(255, 255, 255))


def load_image(source):
    """Open bytes, a path, or a file-like upload as an RGB image."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    elif hasattr(source, "getvalue"):
        source = io.BytesIO(source.getvalue())
    with Image.open(source) as img:
        # Pillow only warns below twice the limit; refuse before decoding
        if Image.MAX_IMAGE_PIXELS and img.width * img.height > Image.MAX_IMAGE_PIXELS:
            raise ImageAnalysisError(f"Image is too large ({img.width}x{img.height} pixels)")
        return img.convert("RGB")


def annotate(image, detections):
    """Copy of ``image`` with every detection outlined and labelled."""
    canvas = image.convert("RGBA")
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default(size=LABEL_FONT_SIZE)
    for det in detections:
        draw_outline(draw, det["bbox"])
        draw_label(draw, font, det["bbox"]["x"], det["bbox"]["y"] - 15, det["label"], det["confidence"])
    return Image.alpha_composite(canvas, overlay).convert("RGB")


def to_jpeg(image, quality=JPEG_QUALITY):
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def analyze_image(source, description="", rng=None):
    """Detect and outline issues on a photo.

    Never raises for a bad image: the result carries ``success=False`` and
    the error text instead.
    """
    rng = rng or random.Random()
    start = time.time()
    try:
        image = load_image(source)
    except (UnidentifiedImageError, Image.DecompressionBombError, ImageAnalysisError, OSError, ValueError) as e:
        logger.warning("image_analysis_failed", error=str(e))
        return {
            "success": False,
            "error": str(e) or "Failed to load image",
            "annotated_image": None,
            "detected_issues": [],
            "confidence": 0,
        }

    width, height = image.size
    detections = detect_issues(width, height, description, rng)
    annotated = annotate(image, detections)
    confidence = sum(d["confidence"] for d in detections) / len(detections)
    logger.info("image_analyzed", detections=len(detections), width=width, height=height)

    return {
        "success": True,
        "annotated_image": to_jpeg(annotated),
        "detected_issues": detections,
        "confidence": confidence,
        "analysis_data": {
            "image_size": {"width": width, "height": height},
            "detection_count": len(detections),
            "processing_ms": int((time.time() - start) * 1000),
        },
    }
