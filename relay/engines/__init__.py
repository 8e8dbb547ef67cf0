"""
External tool engines: HTTP range fetching and ffmpeg.
"""
