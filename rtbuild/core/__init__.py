# SPDX-License-Identifier: MIT
"""Core build-graph model: platforms, flags, entities, plans and solutions."""
