"""HTTP transport layer."""

from restbase.transport.gateway import Gateway, encode_body

__all__ = ["Gateway", "encode_body"]
