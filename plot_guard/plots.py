"""Plot construction helpers keeping polygon and bounding box in step."""

from __future__ import annotations

import uuid as uuid_lib
from typing import Optional

from .geometry.bounding_box import bounding_box
from .geometry.parser import ring_to_wkt
from .models import Plot, Ring
from .utils import now_ms


def build_plot(
    ring: Ring,
    *,
    plot_name: str,
    instance_name: str,
    form_id: str,
    region: str = "",
    sub_region: str = "",
    is_draft: bool = True,
    submission_uuid: Optional[str] = None,
    uuid: Optional[str] = None,
    created_at: Optional[int] = None,
) -> Plot:
    """Create a Plot whose WKT and bounding box both derive from ``ring``."""

    if not is_draft and not submission_uuid:
        raise ValueError("Confirmed plots require a submission_uuid")
    return Plot(
        uuid=uuid or str(uuid_lib.uuid4()),
        plot_name=plot_name,
        instance_name=instance_name,
        polygon=ring_to_wkt(ring),
        bbox=bounding_box(ring),
        form_id=form_id,
        region=region,
        sub_region=sub_region,
        is_draft=is_draft,
        submission_uuid=submission_uuid,
        created_at=now_ms() if created_at is None else created_at,
    )
