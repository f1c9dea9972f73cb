from __future__ import annotations

import importlib.resources as resources
import json

from sprintmarkov.schema_constants import SCHEMA_RESOURCE_NAME, SCHEMA_RESOURCE_PACKAGE, SCHEMA_VERSION


def test_schema_resource_is_bundled_and_readable() -> None:
    """
    The report schema ships inside the package and is readable via
    importlib.resources (editable installs and wheels alike).
    """
    txt = (
        resources.files(SCHEMA_RESOURCE_PACKAGE)
        .joinpath(SCHEMA_RESOURCE_NAME)
        .read_text(encoding="utf-8")
    )
    schema = json.loads(txt)
    assert schema["$schema"].startswith("https://json-schema.org/")
    assert SCHEMA_VERSION in SCHEMA_RESOURCE_NAME
    assert set(schema["required"]) == {"meta", "model", "forecast", "scenario", "delta", "insights", "iterations", "notes"}
