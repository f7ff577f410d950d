"""
Roof detection and measurement services.

Pipeline stages, leaf first: calibration (geo_utils), contour extraction,
projection, measurement, and the manual editor. ``roof_pipeline`` wires them
together with the segmentation and pitch models in ``app.models`` and exposes
the ``detect`` / ``measure`` / ``estimate_pitch`` entry points.
"""
