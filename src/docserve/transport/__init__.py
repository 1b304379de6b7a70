"""Client session handling over an abstract message channel."""

from docserve.transport.session import ClientSession

__all__ = ["ClientSession"]
