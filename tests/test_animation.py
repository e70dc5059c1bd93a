"""Tests for turning keyframes into a one-sequence-per-frame video."""

import math

import pytest

from stickreel import animation
from stickreel.animation import build_animation, export_animation
from stickreel.export import ExportFailed, ExportSuccess
from stickreel.joints import humanoid_figure, set_joint_angle
from stickreel.models import Figure, FigureFrame, Joint
from stickreel.render import NONE, SequenceRenderer


def _keyframes() -> list[FigureFrame]:
    figure = humanoid_figure()
    raised = Figure(figure.name, set_joint_angle(figure.root, "leftArm", -math.pi / 2), figure.x, figure.y)
    return [FigureFrame([figure]), FigureFrame([raised])]


class TestBuildAnimation:
    def test_one_cut_sequence_per_frame(self):
        frames = [f.compile() for f in _keyframes()] * 3
        video = build_animation(frames, (640, 360), fps=24)
        sequences = video.sequence_definitions
        assert len(sequences) == 6
        assert all(s.enter == NONE and s.exit == NONE for s in sequences)
        assert video.total_frames(24) == 6
        for i in range(6):
            assert video.active_sequences(i, 24) == [sequences[i]]

    def test_frames_render(self):
        frame = FigureFrame([Figure("stick", Joint("root", 80.0, 0.0), 20.0, 50.0)]).compile()
        video = build_animation([frame], (100, 100), fps=10)
        pixels = SequenceRenderer(video, 100, 100, background=None, fps=10).render_frame(0)
        i = (50 * 100 + 60) * 4
        assert pixels[i + 3] == 255


class TestExportAnimation:
    def test_expands_and_exports(self, monkeypatch, tmp_path):
        captured = {}

        def fake_run_export(video, output, settings, **kwargs):
            captured.update(video=video, output=output, settings=settings)
            return ExportSuccess(output)

        monkeypatch.setattr(animation, "run_export", fake_run_export)
        keyframes = _keyframes()
        output = str(tmp_path / "anim.mp4")
        result = export_animation(keyframes, output, keyframe_fps=3, target_fps=24, width=320, height=180)

        assert result == ExportSuccess(output)
        assert captured["video"].total_frames(24) == 9
        assert (captured["settings"].fps, captured["settings"].width) == (24, 320)
        assert keyframes[1].figures[0].root.children[0].children[1].angle == pytest.approx(-math.pi / 2)

    def test_alpha_to_mp4_fails_as_value(self, tmp_path):
        result = export_animation(
            _keyframes(), str(tmp_path / "anim.mp4"), with_alpha=True, show_progress=False,
        )
        assert isinstance(result, ExportFailed)
