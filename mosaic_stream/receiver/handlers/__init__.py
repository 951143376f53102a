"""Receiver session handlers."""

from .receiver_handler import DecodeStats, ReceiverHandler

__all__ = ["DecodeStats", "ReceiverHandler"]
