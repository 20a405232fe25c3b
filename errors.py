"""Shared error codes and user-facing messages."""

from __future__ import annotations

RECORDER_START_FAILED = "RECORDER_START_FAILED"
RECORDER_STOP_FAILED = "RECORDER_STOP_FAILED"
STORE_LOAD_FAILED = "STORE_LOAD_FAILED"
STORE_FETCH_FAILED = "STORE_FETCH_FAILED"
STORE_DELETE_FAILED = "STORE_DELETE_FAILED"
STORE_RENAME_FAILED = "STORE_RENAME_FAILED"
PLAYBACK_FAILED = "PLAYBACK_FAILED"
INVALID_NAME = "INVALID_NAME"

ERROR_MESSAGES = {
    RECORDER_START_FAILED: "Could not start recording, check the microphone.",
    RECORDER_STOP_FAILED: "Recording did not stop cleanly.",
    STORE_LOAD_FAILED: "Could not read saved recordings.",
    STORE_FETCH_FAILED: "The new recording could not be loaded.",
    STORE_DELETE_FAILED: "Recording could not be deleted.",
    STORE_RENAME_FAILED: "Recording could not be renamed.",
    PLAYBACK_FAILED: "Recording could not be played.",
    INVALID_NAME: "That name cannot be used for a recording.",
}
