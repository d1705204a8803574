"""Inventory DWH - conformance and load engine."""
