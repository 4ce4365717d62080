# SPDX-License-Identifier: MIT
"""Build configuration: options, extension selection and solution assembly."""
