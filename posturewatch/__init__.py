"""Webcam posture monitoring service."""
