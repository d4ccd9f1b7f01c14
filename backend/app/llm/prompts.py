"""Prompt templates for the vision oracle: detection, retry and verification."""

from __future__ import annotations

_LINE_SCHEMA = """For each feature, provide:
- startX, startY, endX, endY (as percentages 0-100 from top-left)
- confidence (0-100)
- description: what visual evidence you see (e.g., "bright ridge highlight", "diagonal shadow")
- snapStartTo: what this start point should connect to (e.g., "corner_NW", "ridge_end_left")
- snapEndTo: what this end point should connect to

Return ONLY valid JSON in this exact format:
{{
  "ridges": [{{"startX": 25, "startY": 45, "endX": 75, "endY": 45, "confidence": 92, "description": "bright linear highlight at roof peak", "snapStartTo": "hip_NW", "snapEndTo": "hip_NE"}}],
  "hips": [{{"startX": 25, "startY": 45, "endX": 10, "endY": 80, "confidence": 88, "description": "double-shadow diagonal from ridge to corner", "snapStartTo": "ridge_left", "snapEndTo": "corner_SW"}}],
  "valleys": [{{"startX": 50, "startY": 30, "endX": 50, "endY": 55, "confidence": 85, "description": "dark V-trough at L-junction", "snapStartTo": "wing_junction", "snapEndTo": "ridge_mid"}}]
}}"""

_DETECT_SYSTEM = "You are an expert at analyzing satellite roof imagery. Trace lines EXACTLY as visible. Return only valid JSON."

_DETECT_TEMPLATE = """You are analyzing a satellite roof image. Your goal is to trace lines EXACTLY as they appear.

BUILDING PERIMETER CORNERS (percent of image, x from left, y from top):
{corners}

DETECTION PRIORITIES (in order):
1. PERIMETER: The visible roof edges corner-to-corner (already provided above)
2. RIDGES: The highest lines where two roof planes meet at the top
   - Look for: BRIGHT LINEAR HIGHLIGHTS at roof peaks
   - Usually run along the longest building axis
   - Both ends should touch perimeter corners OR other roof line endpoints
3. HIPS: Diagonal lines from ridge endpoints down to building corners
   - Look for: DOUBLE-SHADOW EDGES (light on both sides of the line)
   - Each hip MUST start at a ridge endpoint and end at a perimeter corner
4. VALLEYS: Internal troughs where two roof planes slope inward
   - Look for: DARK V-SHAPED SHADOWS forming linear troughs
   - Common in L-shaped, T-shaped, or complex roofs
   - Start at an internal junction, end at a ridge or the perimeter

CRITICAL SNAPPING RULES:
- Every line START must touch: a perimeter corner OR another line endpoint
- Every line END must touch: a perimeter corner OR another line endpoint
- NO floating lines allowed - if an endpoint doesn't connect, adjust it

""" + _LINE_SCHEMA

_RETRY_SYSTEM = "You are correcting roof overlay lines. All endpoints must connect to corners or other lines."

_RETRY_TEMPLATE = """Previous detection had {count} floating endpoint(s) that don't connect to any corner or intersection:
{floating}

BUILDING PERIMETER CORNERS (percent of image, x from left, y from top):
{corners}

CRITICAL: Every line endpoint MUST touch either:
1. A perimeter corner
2. Another roof line endpoint (ridge, hip, or valley)

Re-analyze the roof and ensure ALL lines connect properly. Hips run from ridge endpoints to perimeter corners.

""" + _LINE_SCHEMA

_VERIFY_SYSTEM = "You are verifying roof overlay accuracy. Return only valid JSON with alignment scores."

_VERIFY_TEMPLATE = """You are verifying the alignment of roof overlay lines against the satellite image.

For each line listed below, score how well it aligns with the ACTUAL visible roof feature (0-100):
- 100 = Perfect alignment on the visible edge
- 90-99 = Excellent, minimal offset (<1ft)
- 75-89 = Good alignment, minor offset (1-2ft)
- 50-74 = Needs adjustment, visible misalignment (2-5ft)
- Below 50 = Significantly misaligned (>5ft)

For misaligned lines suggest a shift: shiftDirection is one of "shift_up", "shift_down", "shift_left", "shift_right" (image directions), shiftFt is the distance in feet.

Lines to verify (percent of image, x from left, y from top):
{lines}

Return ONLY valid JSON in this exact format:
{{
  "ridges": [{{"index": 0, "alignmentScore": 92, "offsetFt": 1.0, "aligned": true}}],
  "hips": [{{"index": 0, "alignmentScore": 85, "offsetFt": 2.0, "aligned": true, "shiftDirection": "shift_left", "shiftFt": 1.5}}],
  "valleys": [{{"index": 0, "alignmentScore": 70, "offsetFt": 4.0, "aligned": false, "shiftDirection": "shift_up", "shiftFt": 3}}],
  "overallScore": 85
}}"""

_TEMPLATES = {
    "detect": (_DETECT_SYSTEM, _DETECT_TEMPLATE),
    "retry": (_RETRY_SYSTEM, _RETRY_TEMPLATE),
    "verify": (_VERIFY_SYSTEM, _VERIFY_TEMPLATE),
}


def get_prompt_template(task: str) -> tuple[str, str]:
    """(system prompt, user template) for a task."""
    return _TEMPLATES[task]


def format_point(x_pct: float, y_pct: float) -> str:
    return f"({x_pct:.1f}, {y_pct:.1f})"


def format_corners(corners: list[tuple[float, float]]) -> str:
    return "\n".join(f"- corner_{i}: {format_point(x, y)}" for i, (x, y) in enumerate(corners))


def build_detect_prompt(corners: list[tuple[float, float]]) -> str:
    return _DETECT_TEMPLATE.format(corners=format_corners(corners))


def build_retry_prompt(floating: list[tuple[float, float]], corners: list[tuple[float, float]]) -> str:
    listing = "\n".join(f"- {format_point(x, y)}" for x, y in floating)
    return _RETRY_TEMPLATE.format(count=len(floating), floating=listing, corners=format_corners(corners))


def build_verify_prompt(lines: dict[str, list[tuple[tuple[float, float], tuple[float, float]]]]) -> str:
    rows: list[str] = []
    for key in ("ridges", "hips", "valleys"):
        for i, (start, end) in enumerate(lines.get(key, [])):
            rows.append(f"- {key}[{i}]: {format_point(*start)} -> {format_point(*end)}")
    return _VERIFY_TEMPLATE.format(lines="\n".join(rows) or "(none)")
