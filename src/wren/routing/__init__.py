"""Routing: ordered route table with first-match-wins dispatch.

Rules are declared during setup and compiled into an immutable table
when the app freezes.
"""
