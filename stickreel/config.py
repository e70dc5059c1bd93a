"""Environment-driven defaults. CLI flags override these."""

import os

from dotenv import load_dotenv

load_dotenv()

FFMPEG_BIN = os.getenv("STICKREEL_FFMPEG", "ffmpeg")

TTS_CACHE_DIR = os.getenv("STICKREEL_TTS_CACHE", "tts-cache")
PROJECTS_DIR = os.getenv("STICKREEL_PROJECTS_DIR", "projects")

ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")  # Rachel
ELEVENLABS_MODEL_ID = os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2")

# Animation / export defaults
KEYFRAME_FPS = 3
TARGET_FPS = 24
VIDEO_WIDTH = 1280
VIDEO_HEIGHT = 720
BACKGROUND = "#ffffff"
