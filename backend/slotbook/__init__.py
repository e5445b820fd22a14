"""Slotbook: consultant availability, slot allocation and booking lifecycle."""
