"""Build confirmed plots from synced submission payloads.

Payload schemas differ between forms, so the fields holding the boundary,
the plot name parts and the region labels come from a JSON configuration
file (see ``plot_extraction_config.json``).
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from ..config import PLOT_EXTRACTION_CONFIG_FILE
from ..errors import ParseError
from ..geometry.parser import parse_ring
from ..models import Plot, Submission
from ..plots import build_plot

LOGGER = logging.getLogger(__name__)

UNKNOWN_PLOT_NAME = "Unknown"


@dataclass(frozen=True, slots=True)
class PlotExtractionConfig:
    # Tried in order; the first non-blank value wins.
    polygon_fields: List[str] = field(
        default_factory=lambda: [
            "boundary_mapping/Open_Area_GeoMapping",
            "Open_Area_GeoMapping",
            "manual_boundary",
            "boundary_mapping/manual_boundary",
        ]
    )
    # Joined with spaces, blanks skipped.
    plot_name_fields: List[str] = field(
        default_factory=lambda: ["First_Name", "Father_s_Name", "Grandfather_s_Name"]
    )
    region_field: str = "woreda"
    sub_region_field: str = "kebele"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlotExtractionConfig":
        """Build from the JSON layout (``polygonFields``, ``plotNameFields``, ...)."""

        polygon_fields = data.get("polygonFields")
        plot_name_fields = data.get("plotNameFields")
        region_field = data.get("regionField")
        sub_region_field = data.get("subRegionField")
        if not _is_str_list(polygon_fields) or not _is_str_list(plot_name_fields):
            raise ValueError("polygonFields and plotNameFields must be lists of strings")
        if not isinstance(region_field, str) or not isinstance(sub_region_field, str):
            raise ValueError("regionField and subRegionField must be strings")
        return cls(
            polygon_fields=list(polygon_fields),
            plot_name_fields=list(plot_name_fields),
            region_field=region_field,
            sub_region_field=sub_region_field,
        )


def load_extraction_config(
    path: str = PLOT_EXTRACTION_CONFIG_FILE,
) -> PlotExtractionConfig:
    """Load the extraction config, falling back to defaults when unusable."""

    started = time.perf_counter()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            config = PlotExtractionConfig.from_mapping(json.load(handle))
    except FileNotFoundError:
        LOGGER.warning("Plot extraction config %s not found; using defaults", path)
        return PlotExtractionConfig()
    except (OSError, ValueError) as exc:
        LOGGER.error(
            "Failed to load plot extraction config %s, using defaults: %s", path, exc
        )
        return PlotExtractionConfig()
    LOGGER.debug(
        "Loaded plot extraction config from %s in %.1fms",
        path,
        (time.perf_counter() - started) * 1000,
    )
    return config


def lookup_field(payload: Mapping[str, Any], path: str) -> Optional[str]:
    """Return the scalar at ``path`` as a string.

    Group paths are usually flat keys (``"group/question"``) in submission
    payloads; nested objects are walked segment by segment as a fallback.
    """

    if path in payload:
        return _scalar_to_str(payload[path])
    node: Any = payload
    for segment in path.split("/"):
        if not isinstance(node, Mapping) or segment not in node:
            return None
        node = node[segment]
    return _scalar_to_str(node)


class PlotExtractor:
    def __init__(self, config: PlotExtractionConfig | None = None) -> None:
        self.config = config or PlotExtractionConfig()
        LOGGER.debug(
            "PlotExtractor initialized: polygonFields=%d plotNameFields=%d "
            "regionField=%s subRegionField=%s",
            len(self.config.polygon_fields),
            len(self.config.plot_name_fields),
            self.config.region_field,
            self.config.sub_region_field,
        )

    def extract_plot(self, submission: Submission) -> Optional[Plot]:
        """Return a confirmed Plot, or None when the submission carries no usable polygon."""

        payload = submission.raw_data
        polygon_text = self.polygon_text(payload)
        if polygon_text is None:
            return None
        try:
            ring = parse_ring(polygon_text)
        except ParseError as exc:
            LOGGER.warning(
                "Submission %s polygon could not be parsed: %s", submission.uuid, exc
            )
            return None

        return build_plot(
            ring,
            plot_name=self.plot_name(payload),
            instance_name=submission.instance_name or submission.uuid,
            form_id=submission.form_id,
            region=lookup_field(payload, self.config.region_field) or "",
            sub_region=lookup_field(payload, self.config.sub_region_field) or "",
            is_draft=False,
            submission_uuid=submission.uuid,
        )

    def polygon_text(self, payload: Mapping[str, Any]) -> Optional[str]:
        for path in self.config.polygon_fields:
            value = lookup_field(payload, path)
            if value and value.strip():
                return value
        return None

    def plot_name(self, payload: Mapping[str, Any]) -> str:
        parts = [
            value.strip()
            for value in (lookup_field(payload, f) for f in self.config.plot_name_fields)
            if value and value.strip()
        ]
        return " ".join(parts) or UNKNOWN_PLOT_NAME


def _scalar_to_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


__all__ = [
    "PlotExtractionConfig",
    "PlotExtractor",
    "load_extraction_config",
    "lookup_field",
]
