"""Tools package: Agent SDK client, text utilities, and JSON parsing."""

from tools.agent_sdk_client import AgentSDKClient, classify_error
from tools.json_parsing import parse_json_response, parse_json_array
from tools.text_utils import (
    count_words,
    split_into_paragraphs,
    tail_text,
    join_sections,
    chunk_words,
)

__all__ = [
    "AgentSDKClient",
    "classify_error",
    "parse_json_response",
    "parse_json_array",
    "count_words",
    "split_into_paragraphs",
    "tail_text",
    "join_sections",
    "chunk_words",
]
