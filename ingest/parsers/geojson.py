from __future__ import annotations

import json


def parse_geojson(data: bytes) -> list[dict]:
    doc = json.loads(data)
    if not isinstance(doc, dict) or doc.get("type") != "FeatureCollection":
        return []
    features = doc.get("features") or []
    return list(features)
