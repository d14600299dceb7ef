"""Slot engine and HTTP service for lesson plan activity collections."""
