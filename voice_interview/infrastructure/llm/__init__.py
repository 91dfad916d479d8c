"""Vertex AI client for interviewer replies and evaluations."""

from .client import VertexRestClient, VertexAPIError, extract_json_object

__all__ = ["VertexRestClient", "VertexAPIError", "extract_json_object"]
