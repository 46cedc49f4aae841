from __future__ import annotations

import json


def parse_openfema_records(data: bytes) -> list[dict]:
    doc = json.loads(data)
    if not isinstance(doc, dict):
        return []
    records = doc.get("DisasterDeclarationsSummaries")
    if isinstance(records, list):
        return records
    return []
