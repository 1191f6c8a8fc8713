"""LSP Proxy - transparent, logging pass-through for language servers."""

from lsp_proxy.framing import FrameParser, Message, encode_message
from lsp_proxy.sink import LogMode, LogSink

__all__ = [
    "FrameParser",
    "LogMode",
    "LogSink",
    "Message",
    "encode_message",
]

__version__ = "0.1.0"
