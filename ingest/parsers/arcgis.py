from __future__ import annotations

import json


def parse_arcgis_features(data: bytes) -> list[dict]:
    doc = json.loads(data)
    if not isinstance(doc, dict):
        return []
    # ArcGIS reports query failures with HTTP 200 and an error body
    error = doc.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else error
        raise ValueError(f"arcgis query error: {message}")
    features = doc.get("features") or []
    return list(features)
