"""Threat analysis — heuristic scoring of single network events.

Modules
───────
  classifier    — port/size/direction score, labels, blocklist override
  descriptions  — label → human-readable sentence templates
"""
