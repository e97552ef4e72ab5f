"""Common Marshmallow schemas shared across resources."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema


class RequestSchema(Schema):
    """Base for request bodies: unknown keys sent by older clients are ignored."""

    class Meta:
        unknown = EXCLUDE


class ResponseSchema(Schema):
    """Base for response bodies; fields are declared with camelCase ``data_key``."""
