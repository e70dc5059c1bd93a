"""stickreel: stick-figure keyframe animation and timeline-driven video export."""

__version__ = "0.1.0"
