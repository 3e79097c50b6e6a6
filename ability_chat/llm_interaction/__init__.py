# ability_chat/llm_interaction/__init__.py

"""
1) Declarations ----- How abilities are described to the model
2) Adapter ---------- How to talk to the model (Gemini over HTTPS)
3) Ollama Adapter --- The same contract against a local Ollama server


declarations.py
"How the model sees our abilities"
It turns registry entries into tool declarations.
Registry names use '/' as the namespace separator, providers want '_':
sanitize_name / desanitize_name are the two directions of that rename.
Input schemas pass through when they are well-formed object schemas,
anything else becomes an empty object schema.


adapter.py
"How we talk to LLMs"
It is the transport + normalization layer.
Given a list of conversation turns and optional tool declarations,
send() returns exactly one of:
-TextReply(text)
-FunctionCallReply(name, arguments)
-ErrorReply(kind, message)
Failures are ModelError subclasses internally (transport, timeout,
upstream_status, malformed, no_candidates, blocked, unparseable,
configuration). One attempt per call, bounded by the adapter timeout.


ollama_adapter.py
"Local model, same contract"
Maps turns onto Ollama chat messages (user / assistant tool_calls / tool)
and normalizes the SDK's tool calls back into a FunctionCallReply.
"""

from .adapter import (
    ContentBlockedError,
    GeminiAdapter,
    MalformedResponseError,
    MissingCredentialError,
    ModelAdapter,
    ModelClient,
    ModelConfigurationError,
    ModelError,
    ModelTimeoutError,
    NoCandidatesError,
    TransportError,
    UnparseableResponseError,
    UpstreamStatusError,
)
from .declarations import build_declarations, desanitize_name, sanitize_name, to_tool_declaration
from .ollama_adapter import OllamaAdapter

__all__ = [
    "ContentBlockedError",
    "GeminiAdapter",
    "MalformedResponseError",
    "MissingCredentialError",
    "ModelAdapter",
    "ModelClient",
    "ModelConfigurationError",
    "ModelError",
    "ModelTimeoutError",
    "NoCandidatesError",
    "OllamaAdapter",
    "TransportError",
    "UnparseableResponseError",
    "UpstreamStatusError",
    "build_declarations",
    "desanitize_name",
    "sanitize_name",
    "to_tool_declaration",
]
