"""
JSON schemas for the FHIR documents the compiler accepts.

Only the parts of a StructureDefinition / SearchParameter the generator
reads are described; everything else is allowed through untouched.
"""

_EXTENSION: dict = {
    "type": "object",
    "required": ["url"],
    "properties": {
        "url": {"type": "string", "minLength": 1},
        "valueString": {"type": "string"},
        "valueUri": {"type": "string"},
        "valueUrl": {"type": "string"},
        "valueCode": {"type": "string"},
        "valueCanonical": {"type": "string"},
    },
}

_TYPE_REF: dict = {
    "type": "object",
    "properties": {
        "code": {"type": "string"},
        "profile": {"type": "array", "items": {"type": "string"}},
        "targetProfile": {"type": "array", "items": {"type": "string"}},
        "extension": {"type": "array", "items": _EXTENSION},
    },
}

ELEMENT_DEFINITION_SCHEMA: dict = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "path": {"type": "string"},
        "short": {"type": "string"},
        "min": {"type": "integer", "minimum": 0},
        "max": {"type": "string", "pattern": "^(\\*|[0-9]+)$"},
        "base": {
            "type": "object",
            "properties": {"path": {"type": "string"}},
        },
        "type": {"type": "array", "items": _TYPE_REF},
        "contentReference": {"type": "string", "pattern": "^#"},
        "fixedUri": {"type": "string"},
        "binding": {
            "type": "object",
            "required": ["strength"],
            "properties": {
                "strength": {
                    "type": "string",
                    "enum": ["required", "extensible", "preferred", "example"],
                },
                "valueSet": {"type": "string"},
            },
        },
        "slicing": {
            "type": "object",
            "properties": {
                "rules": {"type": "string", "enum": ["open", "closed", "openAtEnd"]},
            },
        },
        "constraint": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "key": {"type": "string"},
                    "severity": {"type": "string", "enum": ["error", "warning"]},
                    "expression": {"type": "string"},
                },
            },
        },
        "extension": {"type": "array", "items": _EXTENSION},
    },
}

STRUCTURE_DEFINITION_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "FHIR StructureDefinition (generator subset)",
    "description": "Snapshot-form StructureDefinition as consumed by the proto generator.",
    "type": "object",
    "required": ["resourceType", "url", "id", "kind", "snapshot"],
    "properties": {
        "resourceType": {"type": "string", "const": "StructureDefinition"},
        "url": {"type": "string", "minLength": 1},
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "kind": {
            "type": "string",
            "enum": ["primitive-type", "complex-type", "resource", "logical"],
        },
        "abstract": {"type": "boolean"},
        "derivation": {"type": "string", "enum": ["specialization", "constraint"]},
        "baseDefinition": {"type": "string"},
        "snapshot": {
            "type": "object",
            "required": ["element"],
            "properties": {
                "element": {
                    "type": "array",
                    "minItems": 1,
                    "items": ELEMENT_DEFINITION_SCHEMA,
                },
            },
        },
    },
}

SEARCH_PARAMETER_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "FHIR SearchParameter (generator subset)",
    "type": "object",
    "required": ["name", "type", "base"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "type": {
            "type": "string",
            "enum": [
                "number",
                "date",
                "string",
                "token",
                "reference",
                "composite",
                "quantity",
                "uri",
                "special",
            ],
        },
        "expression": {"type": "string"},
        "base": {"type": "array", "minItems": 1, "items": {"type": "string"}},
    },
}
