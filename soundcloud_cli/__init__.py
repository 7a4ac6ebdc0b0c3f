"""
soundcloud-cli: download tracks, playlists and likes from SoundCloud.
"""

__version__ = "0.4.0"
