MATCH_SCHEMA = {
    "name": "game_matches",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "required": ["matches"],
        "properties": {
            "matches": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": [
                        "external_id",
                        "game_id",
                        "confidence",
                        "home_confidence",
                        "away_confidence",
                        "reasoning",
                    ],
                    "properties": {
                        "external_id": {"type": "string"},
                        "game_id": {"type": ["integer", "null"]},
                        "confidence": {"type": "number"},
                        "home_confidence": {"type": ["number", "null"]},
                        "away_confidence": {"type": ["number", "null"]},
                        "reasoning": {"type": "string"},
                    },
                },
            }
        },
    },
}
