# SPDX-License-Identifier: MIT
"""Extension selection.

Every available extension is builtin unless the selection says otherwise:

- ``+ name`` keeps it builtin (the default),
- ``- name`` leaves it out,
- ``* name [modules...]`` builds it as a dynamic library, optionally with
  only some of its modules.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from rtbuild.core.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rtbuild.configure.config import ExtensionSelection, ExtensionSpec

logger = logging.getLogger(__name__)


def _find(extensions: list[ExtensionSpec], name: str) -> int | None:
    lowered = name.lower()
    for i, ext in enumerate(extensions):
        if ext.name.lower() == lowered:
            return i
    return None


def select_extensions(
    available: Iterable[ExtensionSpec],
    selection: Iterable[ExtensionSelection],
) -> tuple[list[ExtensionSpec], list[ExtensionSpec]]:
    """Split the available extensions into builtin and dynamic ones.

    Names are matched case-insensitively.

    Returns:
        (builtin, dynamic) extensions. Builtin extensions keep their
        declaration order; dynamic ones follow the selection order.

    Raises:
        ConfigurationError: For an unknown name, a non-loadable extension
            selected as dynamic, or a dynamic selection matching no module.
    """
    all_extensions = list(available)
    builtin = list(all_extensions)
    dynamic: list[ExtensionSpec] = []

    for item in selection:
        if _find(all_extensions, item.name) is None:
            raise ConfigurationError(f"unrecognized extension name: {item.name}")
        if item.action == "+":
            continue
        index = _find(builtin, item.name)
        if index is None:
            # Already removed or made dynamic by an earlier entry.
            continue
        ext = builtin.pop(index)
        if item.action == "-":
            logger.debug("Extension %s removed", ext.name)
            continue

        if not ext.loadable:
            raise ConfigurationError(
                f"extension {ext.name} is not dynamically loadable"
            )
        if item.modules is None:
            modules = list(ext.modules)
        else:
            wanted = {m.lower() for m in item.modules}
            modules = [m for m in ext.modules if m.name.lower() in wanted]
        if not modules:
            raise ConfigurationError(
                f"no modules are selected for {ext.name}, "
                "check module names or use '-' to remove it"
            )
        dynamic.append(replace(ext, modules=modules))

    for ext in builtin:
        logger.info("Builtin extension %s: %s", ext.name, ", ".join(m.name for m in ext.modules))
    for ext in dynamic:
        logger.info("Dynamic extension %s: %s", ext.name, ", ".join(m.name for m in ext.modules))
    return builtin, dynamic
